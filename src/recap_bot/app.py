"""Application orchestrator - wires all components and manages lifecycle."""

from __future__ import annotations

from recap_bot.ai.client import AIClient, AnthropicClient, ClaudeCodeClient
from recap_bot.ai.generator import Generator
from recap_bot.ai.handler import TurnOrchestrator
from recap_bot.config import AppConfig
from recap_bot.core.session import ConversationStore
from recap_bot.log import get_logger
from recap_bot.services.extraction import TextExtractor
from recap_bot.storage.database import Database
from recap_bot.storage.session_repo import SessionStateRepository

logger = get_logger(__name__)


class RecapBotApp:
    """Top-level application orchestrator."""

    def __init__(self, config: AppConfig, ai_client: AIClient | None = None):
        self.config = config
        self.db = Database(config.storage.db_path)
        self.session_repo = SessionStateRepository(self.db)
        self.store = ConversationStore(self.session_repo)
        self.extractor = TextExtractor(config.extraction)
        self.generator = Generator(ai_client or self._create_ai_client(), config.ai)
        self.orchestrator = TurnOrchestrator(
            store=self.store,
            extractor=self.extractor,
            generator=self.generator,
            conversation_config=config.conversation,
            extraction_config=config.extraction,
        )

    async def start(self) -> None:
        """Initialize and start all components."""
        await self.db.initialize()
        await self.extractor.start()
        logger.info(
            "recap_bot_started",
            backend=self.config.ai.backend,
            model=self.generator.model_name,
        )

    async def stop(self) -> None:
        """Gracefully shut down all components."""
        await self.extractor.stop()
        await self.db.close()
        logger.info("recap_bot_stopped")

    async def __aenter__(self) -> RecapBotApp:
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    def _create_ai_client(self) -> AIClient:
        """Create an AI client based on the configured backend."""
        match self.config.ai.backend:
            case "anthropic":
                if not self.config.anthropic:
                    raise ValueError(
                        "AI backend is 'anthropic' but no 'anthropic' section in config"
                    )
                return AnthropicClient(self.config.anthropic, model=self.config.ai.model)
            case "claude_code":
                return ClaudeCodeClient(self.config.claude_code)
            case _:
                raise ValueError(f"Unknown AI backend: {self.config.ai.backend}")
