# tripvoice/core/errors.py
# -*- coding: utf-8 -*-
"""
Trip Voice Server — Turn error taxonomy
---------------------------------------
Every way a turn can fail, plus the non-fatal notices the reducer emits.

Fatal (abort the turn, nothing is persisted, safe to retry):
    TranscriptionFailed, ExtractionFailed, ExtractionMalformed, PersistenceFailed

Non-fatal:
    ValidationClamped   -> notice record, logged by the reducer
    NotificationFailed  -> raised on the delivery path, always caught there
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class TurnError(Exception):
    """
    Base class for errors that abort a turn.

    `code` is a stable string for clients, `status_code` is what the HTTP
    layer answers with.
    """

    code: str = "turn_failed"
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, Any]:
        return {"success": False, "error": self.code, "message": self.message}


class TranscriptionFailed(TurnError):
    """Speech-to-text failed (transport error, bad audio, empty transcript)."""

    code = "transcription_failed"
    status_code = 502


class ExtractionFailed(TurnError):
    """The slot extractor could not be reached, errored, or timed out."""

    code = "extraction_failed"
    status_code = 502


class ExtractionMalformed(TurnError):
    """The extractor answered, but not with a JSON object."""

    code = "extraction_malformed"
    status_code = 502


class PersistenceFailed(TurnError):
    """The session store rejected or could not complete a read/write."""

    code = "persistence_failed"
    status_code = 503


class NotificationFailed(Exception):
    """Broadcast to the session channel failed. Never fails a turn."""


@dataclass(frozen=True)
class ValidationClamped:
    """An out-of-domain value from the extractor that was coerced."""

    field: str
    value: Any
    replacement: str
