"""Shared fixtures for recap-bot tests."""

from __future__ import annotations

from typing import Optional

import pytest
import structlog

from recap_bot.ai.handler import TurnOrchestrator
from recap_bot.config import ConversationConfig, ExtractionConfig
from recap_bot.core.session import ConversationStore
from recap_bot.core.types import GenerationMode
from recap_bot.errors import ExtractionFailure, GenerationFailure
from recap_bot.storage.database import Database
from recap_bot.storage.session_repo import SessionStateRepository


class FakeGenerator:
    """Records generate() calls and returns a canned reply or raises."""

    def __init__(self, reply: str = "A short summary.", error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.calls: list[dict] = []

    @property
    def model_name(self) -> str:
        return "fake-model"

    async def generate(
        self,
        mode: GenerationMode,
        text: str,
        context: Optional[str] = None,
        url: Optional[str] = None,
    ) -> str:
        self.calls.append({"mode": mode, "text": text, "context": context, "url": url})
        if self.error is not None:
            raise self.error
        return self.reply


class FakeExtractor:
    """Returns canned page text for any URL, or raises."""

    def __init__(self, text: str = "", error: Optional[Exception] = None):
        self.text = text
        self.error = error
        self.urls: list[str] = []

    async def extract(self, url: str) -> str:
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return self.text


@pytest.fixture(autouse=True)
def _isolate_structlog(monkeypatch):
    """main() binds structlog to the current sys.stderr, which pytest closes after each test.

    Disable logger caching during tests and restore defaults afterwards so no
    later test logs into a closed capture stream.
    """
    real_configure = structlog.configure

    def configure(**kwargs):
        real_configure(**{**kwargs, "cache_logger_on_first_use": False})

    monkeypatch.setattr(structlog, "configure", configure)
    yield
    structlog.reset_defaults()


PAGE_TEXT = (
    "The quarterly report shows revenue growth across every region, "
    "driven mostly by new subscription customers."
)


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "data" / "recap_bot.db")


@pytest.fixture
async def db(db_path):
    database = Database(db_path)
    await database.initialize()
    yield database
    await database.close()


@pytest.fixture
def repo(db) -> SessionStateRepository:
    return SessionStateRepository(db)


@pytest.fixture
def store(repo) -> ConversationStore:
    return ConversationStore(repo)


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def extractor() -> FakeExtractor:
    return FakeExtractor(text=PAGE_TEXT)


@pytest.fixture
def orchestrator(store, extractor, generator) -> TurnOrchestrator:
    return TurnOrchestrator(
        store=store,
        extractor=extractor,
        generator=generator,
        conversation_config=ConversationConfig(),
        extraction_config=ExtractionConfig(),
    )


@pytest.fixture
def extraction_failure() -> ExtractionFailure:
    return ExtractionFailure("Failed to fetch URL: 404 Not Found")


@pytest.fixture
def generation_failure() -> GenerationFailure:
    return GenerationFailure("Failed to generate summary. Please try again.")
