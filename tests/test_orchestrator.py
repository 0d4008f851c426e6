"""Tests for the turn orchestrator."""

from __future__ import annotations

import httpx
import pytest

from conftest import PAGE_TEXT, FakeExtractor, FakeGenerator
from recap_bot.ai.handler import NO_CONTEXT_REPLY, TurnOrchestrator
from recap_bot.config import ConversationConfig, ExtractionConfig
from recap_bot.core.session import ConversationStore
from recap_bot.core.types import EntryKind, GenerationMode, Role
from recap_bot.errors import ExtractionFailure, StorageFailure, ValidationError
from recap_bot.services.extraction import TextExtractor
from recap_bot.storage.session_repo import SessionStateRepository

LONG_TEXT = (
    "Solar capacity grew faster than any other source last year. "
    "Battery storage followed closely behind. "
    "Grid operators expect the trend to continue through the decade."
)


class TestValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("session_id,message", [("", "hi"), ("s1", ""), (None, "hi"), ("s1", None)])
    async def test_missing_fields_rejected(self, orchestrator, store, session_id, message):
        with pytest.raises(ValidationError, match="Missing sessionId or message"):
            await orchestrator.handle(session_id, message)
        assert (await store.stats("s1")).count == 0

    @pytest.mark.asyncio
    async def test_oversized_message_rejected(self, orchestrator, store, generator):
        with pytest.raises(ValidationError, match="Message too long"):
            await orchestrator.handle("s1", "x" * 100001)
        assert (await store.stats("s1")).count == 0
        assert generator.calls == []

    @pytest.mark.asyncio
    async def test_message_at_limit_accepted(self, orchestrator, store):
        await orchestrator.handle("s1", "x" * 100000)
        assert (await store.stats("s1")).count == 2


class TestUrlBranch:
    @pytest.mark.asyncio
    async def test_success(self, orchestrator, store, extractor, generator):
        reply = await orchestrator.handle("s1", "  https://example.com/post  ")

        assert reply == generator.reply
        assert extractor.urls == ["https://example.com/post"]
        assert generator.calls == [
            {
                "mode": GenerationMode.SUMMARY,
                "text": PAGE_TEXT,
                "context": None,
                "url": "https://example.com/post",
            }
        ]

        user, assistant = await store.recent("s1", 10)
        assert user.role == Role.USER
        assert user.kind == EntryKind.URL_SUMMARY
        assert user.source_url == "https://example.com/post"
        assert user.content == "Submitted URL for summarization: https://example.com/post"
        assert assistant.role == Role.ASSISTANT
        assert assistant.kind == EntryKind.URL_SUMMARY
        assert assistant.source_url == "https://example.com/post"
        assert assistant.content == reply

    @pytest.mark.asyncio
    async def test_short_extraction_is_failure(self, store, generator):
        extractor = FakeExtractor(text="x" * 30)
        orchestrator = TurnOrchestrator(store, extractor, generator)

        reply = await orchestrator.handle("s1", "https://example.com")

        assert reply.startswith("Sorry, I couldn't fetch or summarize that URL.")
        assert "Could not extract meaningful content" in reply
        assert generator.calls == []

        user, assistant = await store.recent("s1", 10)
        assert user.source_url == "https://example.com"
        assert assistant.source_url is None
        assert assistant.content == reply

    @pytest.mark.asyncio
    async def test_extraction_error_absorbed(self, store, generator, extraction_failure):
        orchestrator = TurnOrchestrator(store, FakeExtractor(error=extraction_failure), generator)

        reply = await orchestrator.handle("s1", "https://example.com/missing")

        assert reply == "Sorry, I couldn't fetch or summarize that URL. Failed to fetch URL: 404 Not Found"
        assert (await store.stats("s1")).count == 2

    @pytest.mark.asyncio
    async def test_generation_error_absorbed(self, store, extractor, generation_failure):
        orchestrator = TurnOrchestrator(store, extractor, FakeGenerator(error=generation_failure))

        reply = await orchestrator.handle("s1", "https://example.com")

        assert reply.startswith("Sorry, I couldn't fetch or summarize that URL.")
        _, assistant = await store.recent("s1", 2)
        assert assistant.source_url is None
        assert assistant.kind == EntryKind.URL_SUMMARY

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", ["http://[oops", "https://exa mple.com/x", "http://a..b/"])
    async def test_malformed_url_absorbed(self, store, generator, url):
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text=PAGE_TEXT))
        )
        orchestrator = TurnOrchestrator(
            store, TextExtractor(ExtractionConfig(), client=client), generator
        )

        reply = await orchestrator.handle("s1", url)

        assert reply.startswith("Sorry, I couldn't fetch or summarize that URL.")
        assert (await store.stats("s1")).count == 2
        assert generator.calls == []
        await client.aclose()


class TestContentBranch:
    @pytest.mark.asyncio
    async def test_success(self, orchestrator, store, generator):
        reply = await orchestrator.handle("s1", LONG_TEXT)

        assert reply == generator.reply
        assert generator.calls[0]["mode"] == GenerationMode.SUMMARY
        assert generator.calls[0]["text"] == LONG_TEXT

        user, assistant = await store.recent("s1", 10)
        assert user.kind == EntryKind.RAW_SUMMARY
        assert user.content == LONG_TEXT
        assert assistant.kind == EntryKind.RAW_SUMMARY

    @pytest.mark.asyncio
    async def test_failure_absorbed(self, store, extractor, generation_failure):
        orchestrator = TurnOrchestrator(store, extractor, FakeGenerator(error=generation_failure))

        reply = await orchestrator.handle("s1", LONG_TEXT)

        assert reply == (
            "Sorry, I couldn't generate a summary. Failed to generate summary. Please try again."
        )
        _, assistant = await store.recent("s1", 2)
        assert assistant.kind is None
        assert assistant.content == reply


class TestFollowupBranch:
    @pytest.mark.asyncio
    async def test_empty_log_short_circuits(self, orchestrator, store, generator):
        reply = await orchestrator.handle("s1", "What was that about?")

        assert reply == NO_CONTEXT_REPLY
        assert generator.calls == []

        user, assistant = await store.recent("s1", 10)
        assert user.kind == EntryKind.FOLLOWUP
        assert assistant.kind == EntryKind.FOLLOWUP
        assert assistant.content == NO_CONTEXT_REPLY

    @pytest.mark.asyncio
    async def test_uses_prior_context(self, orchestrator, generator):
        await orchestrator.handle("s1", "https://example.com")
        generator.reply = "It covers quarterly revenue."

        reply = await orchestrator.handle("s1", "What is it about?")

        assert reply == "It covers quarterly revenue."
        call = generator.calls[-1]
        assert call["mode"] == GenerationMode.FOLLOWUP
        assert call["text"] == "What is it about?"
        assert call["context"] == (
            "User submitted URL: https://example.com\nAssistant: A short summary."
        )

    @pytest.mark.asyncio
    async def test_current_question_excluded_from_context(self, orchestrator, generator):
        await orchestrator.handle("s1", LONG_TEXT)
        await orchestrator.handle("s1", "and the batteries?")

        assert "and the batteries?" not in generator.calls[-1]["context"]

    @pytest.mark.asyncio
    async def test_failure_absorbed(self, orchestrator, store, generator, generation_failure):
        await orchestrator.handle("s1", LONG_TEXT)
        generator.error = generation_failure

        reply = await orchestrator.handle("s1", "Why?")

        assert reply.startswith("Sorry, I couldn't answer your question.")
        entries = await store.recent("s1", 10)
        assert len(entries) == 4
        assert entries[-1].kind is None

    @pytest.mark.asyncio
    async def test_context_limited_to_recent_entries(self, store, extractor, generator):
        orchestrator = TurnOrchestrator(
            store,
            extractor,
            generator,
            conversation_config=ConversationConfig(followup_context_limit=2),
        )
        await orchestrator.handle("s1", "One. Two. Three.")
        await orchestrator.handle("s1", "Four. Five. Six.")

        await orchestrator.handle("s1", "ok")

        context = generator.calls[-1]["context"]
        assert "One. Two. Three." not in context
        assert "Four. Five. Six." in context


class TestTurnInvariants:
    @pytest.mark.asyncio
    async def test_two_entries_per_message(self, store, generator):
        orchestrator = TurnOrchestrator(
            store, FakeExtractor(error=ExtractionFailure("boom")), generator
        )
        messages = [
            "What is this?",
            LONG_TEXT,
            "https://example.com",
            "Tell me more",
            "A. B. C.",
        ]

        for i, message in enumerate(messages, start=1):
            await orchestrator.handle("s1", message)
            assert (await store.stats("s1")).count == 2 * i

    @pytest.mark.asyncio
    async def test_entries_alternate_user_assistant(self, orchestrator, store):
        for message in ("hello", LONG_TEXT, "https://example.com", "why"):
            await orchestrator.handle("s1", message)

        roles = [e.role for e in await store.recent("s1", 100)]
        assert roles == [Role.USER, Role.ASSISTANT] * 4

    @pytest.mark.asyncio
    async def test_storage_failure_propagates(self, db, extractor, generator):
        class BrokenRepository(SessionStateRepository):
            async def save(self, session_id, log):
                raise StorageFailure(session_id, "save")

        orchestrator = TurnOrchestrator(
            ConversationStore(BrokenRepository(db)), extractor, generator
        )

        with pytest.raises(StorageFailure):
            await orchestrator.handle("s1", LONG_TEXT)
        assert generator.calls == []

    @pytest.mark.asyncio
    async def test_reset_and_stats(self, orchestrator):
        await orchestrator.handle("s1", LONG_TEXT)
        assert (await orchestrator.stats("s1")).count == 2

        await orchestrator.reset("s1")

        assert (await orchestrator.stats("s1")).count == 0
        assert await orchestrator.handle("s1", "What?") == NO_CONTEXT_REPLY
