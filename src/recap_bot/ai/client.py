"""AI client abstraction with Anthropic API and Claude Code CLI backends."""

from __future__ import annotations

import asyncio
import json
import os
import platform
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from recap_bot.config import AnthropicConfig, ClaudeCodeConfig
from recap_bot.errors import GenerationFailure
from recap_bot.log import get_logger

logger = get_logger(__name__)


@dataclass
class AIResponse:
    """Unified response from any AI backend."""

    text: str
    input_tokens: int = 0
    output_tokens: int = 0
    raw: Any = None  # Backend-specific raw response


class AIClient(ABC):
    """Abstract base class for AI backends."""

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        model: str = "",
        max_tokens: int = 512,
        temperature: float = 0.7,
    ) -> AIResponse:
        """Send a single prompt and return the model's reply.

        Raises GenerationFailure on any transport or model error.
        """
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        ...


class AnthropicClient(AIClient):
    """Anthropic API backend using the official SDK."""

    def __init__(self, config: AnthropicConfig, model: str = ""):
        import anthropic

        self._model = model
        self._client = anthropic.AsyncAnthropic(
            api_key=config.api_key,
            base_url=config.base_url,
            max_retries=config.max_retries,
            timeout=config.timeout,
        )

    @property
    def model_name(self) -> str:
        return self._model

    async def complete(
        self,
        prompt: str,
        model: str = "",
        max_tokens: int = 512,
        temperature: float = 0.7,
    ) -> AIResponse:
        import anthropic

        model = model or self._model
        logger.debug("api_request", model=model, prompt_length=len(prompt))
        try:
            response = await self._client.messages.create(
                model=model,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as e:
            logger.error("api_error", model=model, error=str(e))
            raise GenerationFailure(f"Anthropic API error: {e}") from e

        logger.debug(
            "api_response",
            model=model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            stop_reason=response.stop_reason,
        )
        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        return AIResponse(
            text=text.strip(),
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            raw=response,
        )


class ClaudeCodeClient(AIClient):
    """Claude Code CLI backend using subprocess."""

    def __init__(self, config: ClaudeCodeConfig):
        self._cli_path = self._resolve_cli_path(config.cli_path)
        self._model = config.model
        self._timeout = config.timeout

    @staticmethod
    def _resolve_cli_path(cli_path: str) -> str:
        """Resolve the claude CLI path, checking common install locations."""
        if os.path.isabs(cli_path) and os.path.exists(cli_path):
            return cli_path

        found = shutil.which(cli_path)
        if found:
            return found

        # npm global installs on Windows are not always on PATH
        if platform.system() == "Windows":
            for env_var in ("APPDATA", "LOCALAPPDATA"):
                base = os.environ.get(env_var, "")
                if not base:
                    continue
                candidate = os.path.join(base, "npm", "claude.cmd")
                if os.path.exists(candidate):
                    return candidate

        return cli_path

    @property
    def model_name(self) -> str:
        return self._model

    async def complete(
        self,
        prompt: str,
        model: str = "",
        max_tokens: int = 512,
        temperature: float = 0.7,
    ) -> AIResponse:
        """Pipe the prompt to the CLI in print mode. Sampling options are not exposed by the CLI."""
        cmd = [self._cli_path, "-p", "--output-format", "json", "--model", model or self._model]

        logger.info("claude_code_request", cli_path=self._cli_path, prompt_length=len(prompt))

        # Without the API key in the environment the CLI uses subscription auth
        env = {k: v for k, v in os.environ.items() if k != "ANTHROPIC_API_KEY"}
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except FileNotFoundError as e:
            logger.error("claude_code_not_found", cli_path=self._cli_path)
            raise GenerationFailure(f"Claude Code CLI not found at '{self._cli_path}'") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(input=prompt.encode("utf-8")),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            logger.error("claude_code_timeout", timeout=self._timeout)
            raise GenerationFailure(f"Claude Code timed out after {self._timeout} seconds") from e

        stdout_text = stdout.decode("utf-8", errors="replace").strip()
        stderr_text = stderr.decode("utf-8", errors="replace").strip()

        if process.returncode != 0:
            logger.error(
                "claude_code_error",
                returncode=process.returncode,
                stderr=stderr_text,
                stdout=stdout_text[:500],
            )
            detail = stderr_text or stdout_text or "(no output)"
            raise GenerationFailure(f"Claude Code error (exit {process.returncode}): {detail}")

        return self._parse_response(stdout_text)

    def _parse_response(self, output: str) -> AIResponse:
        """Parse Claude Code CLI JSON output, falling back to plain text."""
        try:
            data = json.loads(output)
        except json.JSONDecodeError:
            return AIResponse(text=output)

        # {"result": "...", "is_error": false, ...}
        if isinstance(data, dict):
            if data.get("is_error"):
                raise GenerationFailure(f"Claude Code reported an error: {data.get('result', '')}")
            usage = data.get("usage") or {}
            return AIResponse(
                text=str(data.get("result", "")).strip(),
                input_tokens=usage.get("input_tokens", 0),
                output_tokens=usage.get("output_tokens", 0),
                raw=data,
            )
        if isinstance(data, list):
            texts = [
                item.get("result", "")
                for item in data
                if isinstance(item, dict) and item.get("type") == "result"
            ]
            return AIResponse(text="\n".join(texts).strip(), raw=data)
        return AIResponse(text=output)
