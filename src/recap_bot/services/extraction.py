"""HTTP text extraction service: fetch a page and reduce it to readable text."""

from __future__ import annotations

import html
import re
from typing import Optional
from urllib.parse import urlparse

import httpx

from recap_bot.config import ExtractionConfig
from recap_bot.errors import ExtractionFailure
from recap_bot.log import get_logger
from recap_bot.services.base import Service

logger = get_logger(__name__)

TRUNCATION_MARKER = "\n\n[Content truncated due to length...]"

# Elements whose bodies never carry readable content
EXCLUDED_TAGS = (
    "script",
    "style",
    "noscript",
    "iframe",
    "svg",
    "canvas",
    "video",
    "audio",
    "head",
    "meta",
    "link",
)

_EXCLUDED_BLOCKS = [
    re.compile(rf"<{tag}[^>]*>.*?</{tag}>", re.IGNORECASE | re.DOTALL) for tag in EXCLUDED_TAGS
]
_COMMENT = re.compile(r"<!--.*?-->", re.DOTALL)
_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")

_HTML_CONTENT_TYPES = ("text/html", "application/xhtml")


def extract_text_from_html(markup: str, max_length: int = 50000) -> str:
    """Strip markup from *markup* and return normalized plain text."""
    text = markup
    for pattern in _EXCLUDED_BLOCKS:
        text = pattern.sub(" ", text)
    text = _COMMENT.sub(" ", text)
    text = _TAG.sub(" ", text)
    text = html.unescape(text)
    text = _WHITESPACE.sub(" ", text).strip()

    if len(text) > max_length:
        text = text[:max_length] + TRUNCATION_MARKER
    return text


class TextExtractor(Service):
    """Fetches HTML pages over httpx with a bounded timeout.

    The client is created in start(); tests may inject their own
    ``httpx.AsyncClient`` (for example one built on ``httpx.MockTransport``).
    """

    def __init__(self, config: ExtractionConfig, client: Optional[httpx.AsyncClient] = None):
        self._config = config
        self._client = client
        self._owns_client = client is None

    @property
    def service_name(self) -> str:
        return "extraction"

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._config.timeout,
                follow_redirects=True,
            )
            self._owns_client = True
        logger.info("extraction_started", timeout=self._config.timeout)

    async def stop(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
        logger.info("extraction_stopped")

    async def health_check(self) -> bool:
        return self._client is not None and not self._client.is_closed

    async def fetch(self, url: str) -> str:
        """Return the HTML body at *url* or raise ExtractionFailure."""
        try:
            scheme = urlparse(url).scheme.lower()
        except ValueError as e:
            logger.warning("extraction_invalid_url", url=url, error=str(e))
            raise ExtractionFailure(f"Failed to fetch URL: {e}") from e
        if scheme not in ("http", "https"):
            raise ExtractionFailure(
                "Failed to fetch URL: Invalid URL protocol. Only HTTP and HTTPS are supported."
            )
        if self._client is None:
            raise RuntimeError("TextExtractor not started. Call start() first.")

        try:
            response = await self._client.get(
                url,
                headers={
                    "User-Agent": self._config.user_agent,
                    "Accept": "text/html,application/xhtml+xml",
                },
                timeout=self._config.timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning("extraction_timeout", url=url, timeout=self._config.timeout)
            raise ExtractionFailure(
                f"Failed to fetch URL: timed out after {self._config.timeout:g} seconds"
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            logger.warning("extraction_transport_error", url=url, error=str(e))
            raise ExtractionFailure(f"Failed to fetch URL: {e}") from e

        if not response.is_success:
            raise ExtractionFailure(
                f"Failed to fetch URL: {response.status_code} {response.reason_phrase}"
            )

        content_type = response.headers.get("content-type", "").lower()
        if not any(kind in content_type for kind in _HTML_CONTENT_TYPES):
            raise ExtractionFailure("Failed to fetch URL: URL does not return HTML content")

        return response.text

    async def extract(self, url: str) -> str:
        """Fetch *url* and return its readable text."""
        markup = await self.fetch(url)
        text = extract_text_from_html(markup, self._config.max_content_chars)
        logger.info("extraction_completed", url=url, chars=len(text))
        return text
