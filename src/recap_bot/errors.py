"""Error taxonomy for turn processing.

Extraction and generation failures are absorbed by the turn handler and turned
into apology replies. Validation errors are raised before any state changes.
Storage failures are the only fatal class and always reach the caller.
"""

from __future__ import annotations


class RecapBotError(Exception):
    """Base class for all recap-bot errors."""


class ValidationError(RecapBotError):
    """Inbound message was missing a field or exceeded the size limit."""


class ExtractionFailure(RecapBotError):
    """Fetching or extracting readable text from a URL failed."""


class GenerationFailure(RecapBotError):
    """The language-model backend did not produce a reply."""


class StorageFailure(RecapBotError):
    """A durable read or write of session state did not complete."""

    def __init__(self, session_id: str, operation: str, cause: Exception | None = None) -> None:
        self.session_id = session_id
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Storage {operation} failed for session {session_id}{detail}")
