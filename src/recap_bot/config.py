"""Configuration loader with YAML parsing, env-var interpolation, and Pydantic validation."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class AIConfig(BaseModel):
    backend: str = "anthropic"  # "anthropic" | "claude_code"
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 512
    summary_temperature: float = 0.7
    followup_temperature: float = 0.8
    max_input_chars: int = 3000


class AnthropicConfig(BaseModel):
    api_key: str
    base_url: Optional[str] = None
    max_retries: int = 3
    timeout: int = 60


class ClaudeCodeConfig(BaseModel):
    cli_path: str = "claude"
    model: str = "sonnet"  # e.g. "sonnet", "opus", "haiku"
    timeout: int = 120


class ExtractionConfig(BaseModel):
    timeout: float = 10.0
    max_content_chars: int = 50000
    min_content_chars: int = 50
    user_agent: str = "recap-bot/1.0"


class StorageConfig(BaseModel):
    db_path: str = "./data/recap_bot.db"


class ConversationConfig(BaseModel):
    max_message_chars: int = 100000
    followup_context_limit: int = 10
    context_window_size: int = 5


class AppConfig(BaseModel):
    log_level: str = "INFO"
    data_dir: str = "./data"
    ai: AIConfig = Field(default_factory=AIConfig)
    anthropic: Optional[AnthropicConfig] = None
    claude_code: ClaudeCodeConfig = Field(default_factory=ClaudeCodeConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    conversation: ConversationConfig = Field(default_factory=ConversationConfig)


_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)\}")


def _interpolate_env_vars(text: str, extra: dict[str, str] | None = None) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        if extra and var_name in extra:
            return extra[var_name]
        value = os.environ.get(var_name)
        if value is None:
            return match.group(0)
        return value

    return _ENV_VAR_PATTERN.sub(_replace, text)


def load_config(config_path: str | Path = "config.yaml", env_path: str | Path = ".env") -> AppConfig:
    """Load and validate configuration from YAML file with env-var interpolation."""
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    raw_text = config_file.read_text(encoding="utf-8")

    # data_dir may be referenced by other values as ${data_dir}
    raw_data: dict[str, Any] = yaml.safe_load(raw_text) or {}
    data_dir = _interpolate_env_vars(str(raw_data.get("data_dir", "./data")))

    interpolated = _interpolate_env_vars(raw_text, extra={"data_dir": data_dir})
    data = yaml.safe_load(interpolated) or {}

    return AppConfig(**data)
