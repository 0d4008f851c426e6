"""Classify inbound messages into URL, content-to-summarize, or follow-up."""

from __future__ import annotations

import re

from recap_bot.core.types import Intent

URL_PATTERN = re.compile(r"^https?://", re.IGNORECASE)
SENTENCE_MARKS = re.compile(r"[.!?]")

CONTENT_MIN_LENGTH = 200
CONTENT_MIN_SENTENCE_MARKS = 3


def is_url(text: str) -> bool:
    return bool(URL_PATTERN.match(text.strip()))


def is_likely_content(text: str) -> bool:
    """Heuristic: long or multi-sentence text is meant to be summarized.

    A trailing question mark always wins, so a long question is still a
    question.
    """
    trimmed = text.strip()
    if trimmed.endswith("?"):
        return False
    if len(trimmed) > CONTENT_MIN_LENGTH:
        return True
    return len(SENTENCE_MARKS.findall(trimmed)) >= CONTENT_MIN_SENTENCE_MARKS


def classify(text: str) -> Intent:
    if is_url(text):
        return Intent.URL
    if is_likely_content(text):
        return Intent.CONTENT
    return Intent.FOLLOWUP
