"""Turn handler: classify a message, call collaborators, record the exchange."""

from __future__ import annotations

from recap_bot.ai.conversation import CONTEXT_WINDOW_SIZE, build_context
from recap_bot.ai.generator import Generator
from recap_bot.config import ConversationConfig, ExtractionConfig
from recap_bot.core.classifier import classify
from recap_bot.core.session import ConversationStore
from recap_bot.core.types import EntryKind, GenerationMode, Intent, Role
from recap_bot.errors import ExtractionFailure, GenerationFailure, ValidationError
from recap_bot.log import bind_session, get_logger, unbind_session
from recap_bot.services.extraction import TextExtractor
from recap_bot.storage.models import ConversationEntry, SessionStats

logger = get_logger(__name__)

NO_CONTEXT_REPLY = (
    "I don't have any previous context to answer your question. "
    "Please provide a URL or text to summarize first."
)
URL_APOLOGY = "Sorry, I couldn't fetch or summarize that URL."
SUMMARY_APOLOGY = "Sorry, I couldn't generate a summary."
FOLLOWUP_APOLOGY = "Sorry, I couldn't answer your question."
SHORT_CONTENT_ERROR = "Could not extract meaningful content from the URL"


def _apology(prefix: str, error: Exception) -> str:
    detail = str(error).strip()
    return f"{prefix} {detail}" if detail else prefix


class TurnOrchestrator:
    """Runs one turn per inbound message.

    Every turn appends exactly one user entry followed by one assistant entry.
    Extraction and generation failures become apology replies; only
    ValidationError (before any write) and StorageFailure leave this class.
    """

    def __init__(
        self,
        store: ConversationStore,
        extractor: TextExtractor,
        generator: Generator,
        conversation_config: ConversationConfig | None = None,
        extraction_config: ExtractionConfig | None = None,
    ):
        self._store = store
        self._extractor = extractor
        self._generator = generator
        self._conversation = conversation_config or ConversationConfig()
        self._extraction = extraction_config or ExtractionConfig()

    @property
    def store(self) -> ConversationStore:
        return self._store

    def validate(self, session_id: str | None, message: str | None) -> None:
        if not session_id or not message:
            raise ValidationError("Missing sessionId or message")
        limit = self._conversation.max_message_chars
        if len(message) > limit:
            raise ValidationError(f"Message too long (max {limit:,} characters)")

    async def handle(self, session_id: str, message: str) -> str:
        """Process one inbound message and return the reply text."""
        self.validate(session_id, message)

        intent = classify(message)
        bind_session(session_id)
        try:
            logger.info("turn_classified", intent=intent.value, length=len(message))
            match intent:
                case Intent.URL:
                    reply = await self._handle_url(session_id, message.strip())
                case Intent.CONTENT:
                    reply = await self._handle_content(session_id, message)
                case _:
                    reply = await self._handle_followup(session_id, message)
            logger.info("turn_completed", intent=intent.value, reply_length=len(reply))
            return reply
        finally:
            unbind_session()

    async def reset(self, session_id: str) -> None:
        if not session_id:
            raise ValidationError("Missing sessionId")
        await self._store.clear(session_id)

    async def stats(self, session_id: str) -> SessionStats:
        if not session_id:
            raise ValidationError("Missing sessionId")
        return await self._store.stats(session_id)

    async def _handle_url(self, session_id: str, url: str) -> str:
        await self._store.append(
            session_id,
            ConversationEntry(
                role=Role.USER,
                content=f"Submitted URL for summarization: {url}",
                kind=EntryKind.URL_SUMMARY,
                source_url=url,
            ),
        )

        try:
            text = await self._extractor.extract(url)
            if len(text.strip()) < self._extraction.min_content_chars:
                raise ExtractionFailure(SHORT_CONTENT_ERROR)
            reply = await self._generator.generate(GenerationMode.SUMMARY, text, url=url)
            assistant = ConversationEntry(
                role=Role.ASSISTANT,
                content=reply,
                kind=EntryKind.URL_SUMMARY,
                source_url=url,
            )
        except (ExtractionFailure, GenerationFailure) as e:
            logger.error("url_turn_failed", url=url, error=str(e))
            assistant = ConversationEntry(
                role=Role.ASSISTANT,
                content=_apology(URL_APOLOGY, e),
                kind=EntryKind.URL_SUMMARY,
            )

        await self._store.append(session_id, assistant)
        return assistant.content

    async def _handle_content(self, session_id: str, message: str) -> str:
        await self._store.append(
            session_id,
            ConversationEntry(role=Role.USER, content=message, kind=EntryKind.RAW_SUMMARY),
        )

        try:
            reply = await self._generator.generate(GenerationMode.SUMMARY, message)
            assistant = ConversationEntry(
                role=Role.ASSISTANT, content=reply, kind=EntryKind.RAW_SUMMARY
            )
        except GenerationFailure as e:
            logger.error("content_turn_failed", error=str(e))
            assistant = ConversationEntry(role=Role.ASSISTANT, content=_apology(SUMMARY_APOLOGY, e))

        await self._store.append(session_id, assistant)
        return assistant.content

    async def _handle_followup(self, session_id: str, message: str) -> str:
        # Read before appending so the question is not part of its own context
        history = await self._store.recent(session_id, self._conversation.followup_context_limit)

        await self._store.append(
            session_id,
            ConversationEntry(role=Role.USER, content=message, kind=EntryKind.FOLLOWUP),
        )

        if not history:
            logger.info("followup_without_context")
            assistant = ConversationEntry(
                role=Role.ASSISTANT, content=NO_CONTEXT_REPLY, kind=EntryKind.FOLLOWUP
            )
        else:
            window = self._conversation.context_window_size or CONTEXT_WINDOW_SIZE
            context = build_context(history, window)
            try:
                reply = await self._generator.generate(
                    GenerationMode.FOLLOWUP, message, context=context
                )
                assistant = ConversationEntry(
                    role=Role.ASSISTANT, content=reply, kind=EntryKind.FOLLOWUP
                )
            except GenerationFailure as e:
                logger.error("followup_turn_failed", error=str(e))
                assistant = ConversationEntry(
                    role=Role.ASSISTANT, content=_apology(FOLLOWUP_APOLOGY, e)
                )

        await self._store.append(session_id, assistant)
        return assistant.content
