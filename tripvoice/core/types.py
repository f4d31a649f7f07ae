# tripvoice/core/types.py
# -*- coding: utf-8 -*-
"""
Trip Voice Server — Shared result types
---------------------------------------
Small result containers passed between the turn stages:

- ExtractionResult : raw extractor payload + which model produced it
- ReduceResult     : next TripRecord + any values clamped on the way
- DispatchReport   : which asset was broadcast and whether it got out
- TurnResult       : what one completed turn hands back to the caller
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from tripvoice.core.errors import ValidationClamped
from tripvoice.models.trip_record import Intent, TripRecord


@dataclass
class ExtractionResult:
    """
    Result of a single extractor call, BEFORE sanitization.

    Attributes
    ----------
    payload:
        Parsed JSON object returned by the model. Untrusted.
    model:
        Model id that answered.
    raw_text:
        Full response text, kept for debugging.
    """
    payload: Dict[str, Any]
    model: str
    raw_text: str = ""


@dataclass(frozen=True)
class ReduceResult:
    record: TripRecord
    clamped: Tuple[ValidationClamped, ...] = ()


@dataclass
class DispatchReport:
    intent: Intent
    asset_id: str
    delivered: bool
    listeners: int = 0
    error: Optional[str] = None


@dataclass
class TurnResult:
    """
    Outcome of one successful turn.

    Attributes
    ----------
    record:
        The persisted next TripRecord.
    transcript:
        Text the turn was computed from.
    dispatch:
        Best-effort notification report (delivered may be False).
    model:
        Extractor model that produced the candidate, if known.
    """
    record: TripRecord
    transcript: str
    dispatch: DispatchReport
    model: Optional[str] = None
    clamped: Tuple[ValidationClamped, ...] = field(default_factory=tuple)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "success": True,
            "tripState": self.record.to_json_dict(),
            "transcript": self.transcript,
            "assetId": self.dispatch.asset_id,
            "notified": self.dispatch.delivered,
        }
