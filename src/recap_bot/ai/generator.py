"""Summary and follow-up generation on top of an AIClient."""

from __future__ import annotations

from typing import Optional

from recap_bot.ai.client import AIClient
from recap_bot.config import AIConfig
from recap_bot.core.types import GenerationMode
from recap_bot.errors import GenerationFailure
from recap_bot.log import get_logger

logger = get_logger(__name__)

TRUNCATION_MARKER = "\n\n[Content truncated due to length...]"

SUMMARY_FAILED = "Failed to generate summary. Please try again."
FOLLOWUP_FAILED = "Failed to answer question. Please try again."


def truncate_text(text: str, max_length: int) -> str:
    """Cut *text* to *max_length* characters, marking the cut when one is made."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + TRUNCATION_MARKER


def build_summary_prompt(text: str, url: Optional[str] = None) -> str:
    url_context = f"Source URL: {url}\n\n" if url else ""
    return (
        "You are Recap, an AI assistant that summarizes web content and documents.\n\n"
        "Task: Provide a clear, concise summary of the following content.\n\n"
        f"{url_context}Content to summarize:\n{text}\n\n"
        "Provide a well-structured summary with key points. "
        "Use bullet points or short paragraphs as appropriate."
    )


def build_followup_prompt(question: str, context: str) -> str:
    return (
        "You are Recap, an AI assistant that helps users understand and discuss "
        "content from web pages and documents.\n\n"
        f"Previous conversation context:\n{context}\n\n"
        f"Current question: {question}\n\n"
        "Provide a helpful, accurate answer based on the conversation context. "
        "If the question cannot be answered from the context, say so clearly."
    )


class Generator:
    """Builds prompts for each generation mode and calls the configured backend."""

    def __init__(self, client: AIClient, config: AIConfig):
        self._client = client
        self._config = config

    @property
    def model_name(self) -> str:
        return self._client.model_name

    async def generate(
        self,
        mode: GenerationMode,
        text: str,
        context: Optional[str] = None,
        url: Optional[str] = None,
    ) -> str:
        """Return generated text for *mode*, or raise GenerationFailure.

        Summary input is truncated to ``max_input_chars``. Follow-up mode
        treats *text* as the question and *context* as the rendered history.
        """
        if mode == GenerationMode.SUMMARY:
            prompt = build_summary_prompt(truncate_text(text, self._config.max_input_chars), url)
            temperature = self._config.summary_temperature
            failure_message = SUMMARY_FAILED
        else:
            prompt = build_followup_prompt(text, context or "")
            temperature = self._config.followup_temperature
            failure_message = FOLLOWUP_FAILED

        try:
            response = await self._client.complete(
                prompt,
                max_tokens=self._config.max_tokens,
                temperature=temperature,
            )
        except Exception as e:
            logger.error("generation_failed", mode=mode.value, error=str(e))
            raise GenerationFailure(failure_message) from e

        if not response.text:
            logger.error("generation_empty", mode=mode.value)
            raise GenerationFailure(failure_message)

        logger.info(
            "generation_completed",
            mode=mode.value,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
        )
        return response.text
