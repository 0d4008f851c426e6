"""Shared types and enumerations."""

from __future__ import annotations

from enum import StrEnum


class Role(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class EntryKind(StrEnum):
    URL_SUMMARY = "url-summary"
    RAW_SUMMARY = "raw-summary"
    FOLLOWUP = "followup"
    QUESTION = "question"


class Intent(StrEnum):
    """What an inbound message asks for."""

    URL = "url"
    CONTENT = "content"
    FOLLOWUP = "followup"


class GenerationMode(StrEnum):
    SUMMARY = "summary"
    FOLLOWUP = "followup"
