"""Text extraction from uploaded artifacts."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import trafilatura

logger = logging.getLogger(__name__)

_DECODABLE_MEDIA_TYPES = frozenset(
    {
        "application/json",
        "application/xml",
        "application/x-ndjson",
        "application/x-subrip",
    },
)


@dataclass(slots=True)
class ExtractionResult:
    """Result of artifact text extraction."""

    text: str
    is_success: bool
    error: str | None = None


class TextExtractor:
    """Derive plain text from stored bytes based on the media type.

    HTML goes through trafilatura; other textual types are decoded as UTF-8.
    Audio, video, and other binary payloads yield empty text so the caller
    can substitute a placeholder.
    """

    def __init__(self, *, max_chars: int = 0) -> None:
        self.max_chars = max_chars

    def extract(self, data: bytes, *, media_type: str) -> ExtractionResult:
        normalized = media_type.split(";", 1)[0].strip().lower()
        if not data:
            return ExtractionResult(text="", is_success=False, error="empty payload")
        if normalized == "text/html":
            result = extract_html_text(data.decode("utf-8", errors="replace"))
        elif normalized.startswith("text/") or normalized in _DECODABLE_MEDIA_TYPES:
            text = data.decode("utf-8", errors="replace").strip()
            result = ExtractionResult(
                text=text,
                is_success=bool(text),
                error=None if text else "no content extracted",
            )
        else:
            return ExtractionResult(
                text="",
                is_success=False,
                error=f"unsupported media type: {normalized or '<unknown>'}",
            )

        if self.max_chars > 0 and len(result.text) > self.max_chars:
            result.text = result.text[: self.max_chars].rstrip()
        return result


def extract_html_text(html: str) -> ExtractionResult:
    """Extract main content text from HTML using trafilatura.

    Falls back to a recall-oriented pass if the precise one finds nothing.
    """

    if not html.strip():
        return ExtractionResult(text="", is_success=False, error="empty HTML input")

    try:
        text = trafilatura.extract(html, include_tables=True, favor_precision=True)
    except Exception as exc:  # noqa: BLE001
        logger.warning("trafilatura.extract failed: %s", exc)
        text = None

    if not text:
        try:
            text = trafilatura.extract(html, include_tables=True, favor_recall=True)
        except Exception as exc:  # noqa: BLE001
            logger.warning("trafilatura fallback failed: %s", exc)
            return ExtractionResult(text="", is_success=False, error=f"extraction failed: {exc}")

    if not text:
        return ExtractionResult(text="", is_success=False, error="no content extracted")
    return ExtractionResult(text=text, is_success=True)
