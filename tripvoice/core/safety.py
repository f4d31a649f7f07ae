# tripvoice/core/safety.py
# -*- coding: utf-8 -*-
"""
Trip Voice Server — Text safety helpers
---------------------------------------
- Cleaning transcripts before they reach the extractor.
- Clamping the extractor's suggested reply before it is stored.

Both run on every turn and touch nothing outside their arguments.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

# Hard cap for transcript text sent to the extractor.
MAX_TRANSCRIPT_CHARS: int = 1000

# Hard cap for agentResponse kept on the record.
MAX_REPLY_CHARS: int = 512


@dataclass
class SanitizedTextResult:
    """
    Result of sanitize_transcript().

    Attributes
    ----------
    original:
        Raw text (None -> "").
    sanitized:
        Cleaned version used for extraction.
    truncated:
        True if the text was cut at MAX_TRANSCRIPT_CHARS.
    too_short:
        True if nothing is left after cleaning.
    """
    original: str
    sanitized: str
    truncated: bool
    too_short: bool


_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def sanitize_transcript(raw_text: Optional[str]) -> SanitizedTextResult:
    """
    Strip control characters, collapse whitespace, trim, truncate.
    """
    original = raw_text if isinstance(raw_text, str) else ""

    cleaned = _CONTROL_CHARS_RE.sub("", original)
    cleaned = " ".join(cleaned.split())

    truncated = False
    if len(cleaned) > MAX_TRANSCRIPT_CHARS:
        cleaned = cleaned[:MAX_TRANSCRIPT_CHARS].rstrip()
        truncated = True
        logger.debug(
            "sanitize_transcript: truncated from %d to %d chars",
            len(original),
            len(cleaned),
        )

    return SanitizedTextResult(
        original=original,
        sanitized=cleaned,
        truncated=truncated,
        too_short=not cleaned,
    )


def clamp_reply_text(reply_text: str, limit: int = MAX_REPLY_CHARS) -> str:
    """Cut a reply to `limit` chars, ending in "..." when it was cut."""
    if limit <= 0:
        return ""
    if len(reply_text) <= limit:
        return reply_text
    if limit > 3:
        return reply_text[: limit - 3].rstrip() + "..."
    return reply_text[:limit]
