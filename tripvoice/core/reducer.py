# tripvoice/core/reducer.py
# -*- coding: utf-8 -*-
"""
Trip Voice Server — Trip state reducer
--------------------------------------
Deterministic core of a turn:

    reduce_trip(previous: TripRecord, candidate: dict | str) -> ReduceResult

1. Parse     : JSON text -> dict (ExtractionMalformed if impossible).
2. Sanitize  : clamp enums to their domain, blank/placeholder text -> unset,
               normalize place names and dates.
3. Merge     : a defined candidate value wins, otherwise the previous value
               is carried forward.
4. Intent    : re-derived from the merged slots (the model's own intent is
               only a hint for greeting / general-query detection).
5. End date  : one_way trips get start + 12 h unless the caller gave an end;
               a derived end is dropped when the trip stops being one_way.

Everything here is pure: no I/O, no clock, no randomness. The same
(previous, candidate) always gives the same record, which is what makes a
retried turn safe.
"""

from __future__ import annotations

import json
import logging
import unicodedata
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

from dateutil import parser as dtparser

from tripvoice.core.errors import ExtractionMalformed, ValidationClamped
from tripvoice.core.safety import clamp_reply_text
from tripvoice.core.types import ReduceResult
from tripvoice.models.trip_record import (
    Intent,
    Language,
    Preferences,
    TripRecord,
    TripType,
    VehicleType,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)

# Canonical date-time form shared with the extractor prompt.
DATE_FORMAT = "%d/%m/%Y %I:%M %p"
ONE_WAY_DURATION = timedelta(hours=12)

# Strings models like to emit instead of leaving a field out.
_PLACEHOLDERS = {"", "null", "none", "nil", "undefined", "unknown", "n/a", "na"}

# Synonyms for the "none" sentinel of the preference enums.
_NONE_ALIASES = {"xx", "any", "anything", "no preference"}

# Defaults that differ in every date part and in the hour. A text missing
# one of those parses differently under each and is rejected. Minutes and
# seconds are shared, so "10 AM" still means 10:00.
_PROBE_DEFAULTS = (datetime(2000, 1, 1, 0, 0), datetime(2011, 12, 31, 23, 0))


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """
    Pull a JSON object out of model output.

    Accepts plain JSON, JSON in a ``` fence, or JSON after some prose
    (first "{" to last "}"). Returns None when nothing parses to a dict.
    """
    if not text or not text.strip():
        return None

    stripped = text.strip()
    try:
        obj = json.loads(stripped)
        return obj if isinstance(obj, dict) else None
    except json.JSONDecodeError:
        pass

    start = stripped.find("{")
    end = stripped.rfind("}")
    if start == -1 or end <= start:
        return None

    try:
        obj = json.loads(stripped[start : end + 1])
    except json.JSONDecodeError:
        return None
    return obj if isinstance(obj, dict) else None


def parse_extraction(candidate: Any) -> Dict[str, Any]:
    """Turn whatever the extractor handed back into a plain dict."""
    if isinstance(candidate, Mapping):
        return dict(candidate)

    if isinstance(candidate, (bytes, bytearray)):
        try:
            candidate = bytes(candidate).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ExtractionMalformed("Extraction payload is not valid UTF-8.") from exc

    if isinstance(candidate, str):
        obj = extract_json_object(candidate)
        if obj is None:
            raise ExtractionMalformed("Extraction payload is not a JSON object.")
        return obj

    raise ExtractionMalformed(
        f"Extraction payload has unsupported type {type(candidate).__name__}."
    )


# ---------------------------------------------------------------------------
# Sanitization
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SanitizedExtraction:
    """Candidate after clamping. Unset text is None, unset enums are their sentinel."""

    intent: Intent
    source: Optional[str]
    destination: Optional[str]
    trip_type: TripType
    trip_start_date: Optional[str]
    trip_end_date: Optional[str]
    vehicle_type: VehicleType
    language: Language
    agent_response: Optional[str]
    is_greeting: bool
    is_general_query: bool


def _clamp_enum(
    enum_cls: Type[E],
    value: Any,
    fallback: E,
    field: str,
    notices: List[ValidationClamped],
) -> E:
    if value is None:
        return fallback
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        key = " ".join(value.strip().lower().split())
        if not key:
            return fallback
        if key in _NONE_ALIASES and fallback.value == "none":
            return fallback
        key = key.replace("-", "_").replace(" ", "_")
        for member in enum_cls:
            if member.value == key:
                return member

    notices.append(ValidationClamped(field=field, value=value, replacement=fallback.value))
    return fallback


def canonical_place(value: str) -> Optional[str]:
    """NFC, single spaces, and Title Case for all-lowercase ASCII names."""
    text = " ".join(unicodedata.normalize("NFC", value).split())
    if text.lower() in _PLACEHOLDERS:
        return None
    if text.isascii() and text.islower():
        text = text.title()
    return text


def parse_trip_datetime(text: str) -> Optional[datetime]:
    """
    Parse a trip date-time. The canonical "dd/mm/yyyy hh:mm AM/PM" form is
    tried first, then dateutil (day first). Text missing a date or time
    component returns None rather than borrowing one from "today".
    """
    try:
        return datetime.strptime(text, DATE_FORMAT)
    except ValueError:
        pass

    parsed: List[datetime] = []
    for default in _PROBE_DEFAULTS:
        try:
            parsed.append(dtparser.parse(text, dayfirst=True, default=default))
        except (ValueError, OverflowError):
            return None

    first, second = (d.replace(tzinfo=None) for d in parsed)
    if first != second:
        return None
    return first


def format_trip_datetime(value: datetime) -> str:
    return value.strftime(DATE_FORMAT)


def _clean_text(value: Any, field: str, notices: List[ValidationClamped]) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        notices.append(ValidationClamped(field=field, value=value, replacement="unset"))
        return None
    text = " ".join(value.split())
    if text.lower() in _PLACEHOLDERS:
        return None
    return text


def _clean_place(value: Any, field: str, notices: List[ValidationClamped]) -> Optional[str]:
    text = _clean_text(value, field, notices)
    return canonical_place(text) if text is not None else None


def _clean_date(value: Any, field: str, notices: List[ValidationClamped]) -> Optional[str]:
    text = _clean_text(value, field, notices)
    if text is None:
        return None
    parsed = parse_trip_datetime(text)
    if parsed is None:
        # Keep the model's wording; it is the best information we have.
        logger.info("Unparseable %s %r kept verbatim", field, text)
        return text
    return format_trip_datetime(parsed)


def sanitize_extraction(payload: Mapping[str, Any]) -> tuple[SanitizedExtraction, tuple[ValidationClamped, ...]]:
    """
    Clamp every field of a raw extraction into its domain.

    Returns the sanitized view plus a ValidationClamped notice for each
    value that had to be coerced.
    """
    notices: List[ValidationClamped] = []

    prefs_raw = payload.get("preferences")
    if prefs_raw is None:
        prefs_raw = {}
    elif not isinstance(prefs_raw, Mapping):
        notices.append(
            ValidationClamped(field="preferences", value=prefs_raw, replacement="none")
        )
        prefs_raw = {}

    agent_response = payload.get("agentResponse")
    if not isinstance(agent_response, str) or not agent_response.strip():
        agent_response = None

    sanitized = SanitizedExtraction(
        intent=_clamp_enum(Intent, payload.get("intent"), Intent.UNKNOWN, "intent", notices),
        source=_clean_place(payload.get("source"), "source", notices),
        destination=_clean_place(payload.get("destination"), "destination", notices),
        trip_type=_clamp_enum(
            TripType, payload.get("tripType"), TripType.NOT_DECIDED, "tripType", notices
        ),
        trip_start_date=_clean_date(payload.get("tripStartDate"), "tripStartDate", notices),
        trip_end_date=_clean_date(payload.get("tripEndDate"), "tripEndDate", notices),
        vehicle_type=_clamp_enum(
            VehicleType,
            prefs_raw.get("vehicleType"),
            VehicleType.NONE,
            "preferences.vehicleType",
            notices,
        ),
        language=_clamp_enum(
            Language,
            prefs_raw.get("language"),
            Language.NONE,
            "preferences.language",
            notices,
        ),
        agent_response=clamp_reply_text(agent_response.strip()) if agent_response else None,
        is_greeting=payload.get("isGreeting") is True,
        is_general_query=payload.get("isGeneralQuery") is True,
    )

    for notice in notices:
        logger.warning(
            "Clamped %s=%r to %r", notice.field, notice.value, notice.replacement
        )

    return sanitized, tuple(notices)


# ---------------------------------------------------------------------------
# Merge + intent
# ---------------------------------------------------------------------------


def _new_slots_supplied(previous: TripRecord, cand: SanitizedExtraction) -> bool:
    """True if the candidate defines any slot to a value the record did not hold."""
    pairs = [
        (cand.source, previous.source),
        (cand.destination, previous.destination),
        (cand.trip_start_date, previous.trip_start_date),
        (cand.trip_end_date, previous.trip_end_date),
    ]
    if cand.trip_type is not TripType.NOT_DECIDED:
        pairs.append((cand.trip_type, previous.trip_type))
    if cand.vehicle_type is not VehicleType.NONE:
        pairs.append((cand.vehicle_type, previous.preferences.vehicle_type))
    if cand.language is not Language.NONE:
        pairs.append((cand.language, previous.preferences.language))

    return any(new is not None and new != old for new, old in pairs)


def derive_intent(
    merged: TripRecord,
    *,
    greeting: bool,
    general_query: bool,
) -> Intent:
    """Next action for a merged record. First matching rule wins."""
    if greeting:
        return Intent.GREET
    if merged.source is None:
        return Intent.ASK_SOURCE
    if merged.destination is None:
        return Intent.ASK_DESTINATION
    if merged.trip_type is TripType.NOT_DECIDED:
        return Intent.ASK_TRIP_TYPE
    if merged.trip_start_date is None:
        return Intent.ASK_DATE
    # Once any preference is known we never ask again.
    if merged.preferences.known_count() == 0 and not general_query:
        return Intent.ASK_PREFERENCES
    if general_query:
        return Intent.GENERAL
    return Intent.UNKNOWN


def _one_way_end(start: Optional[str]) -> Optional[str]:
    """start + ONE_WAY_DURATION in canonical form, or None if start does not parse."""
    if start is None:
        return None
    parsed = parse_trip_datetime(start)
    if parsed is None:
        return None
    return format_trip_datetime(parsed + ONE_WAY_DURATION)


def _next_end_date(
    previous: TripRecord,
    spoken_end: Optional[str],
    trip_type: TripType,
    start: Optional[str],
) -> Optional[str]:
    """
    End date for the merged record.

    An end date the caller gave this turn always wins. Otherwise a one_way
    end is recomputed from the current start, and an end that was only ever
    derived from the previous start is dropped once the trip is not one_way.
    """
    if spoken_end is not None:
        return spoken_end
    if trip_type is TripType.ONE_WAY:
        return _one_way_end(start)

    carried = previous.trip_end_date
    if carried is not None and carried == _one_way_end(previous.trip_start_date):
        return None
    return carried


def reduce_trip(previous: TripRecord, candidate: Any) -> ReduceResult:
    """
    Compute the next authoritative TripRecord.

    Parameters
    ----------
    previous:
        Stored record (or the fresh-session default).
    candidate:
        Extractor output: a dict, or JSON text/bytes.

    Raises
    ------
    ExtractionMalformed
        If `candidate` cannot be read as a JSON object. Nothing is merged.
    """
    payload = parse_extraction(candidate)
    cand, notices = sanitize_extraction(payload)

    def pick(new, old, unset=None):
        return new if new is not unset and new is not None else old

    merged = TripRecord(
        user=previous.user,
        intent=previous.intent,
        source=pick(cand.source, previous.source),
        destination=pick(cand.destination, previous.destination),
        trip_type=pick(cand.trip_type, previous.trip_type, TripType.NOT_DECIDED),
        trip_start_date=pick(cand.trip_start_date, previous.trip_start_date),
        trip_end_date=pick(cand.trip_end_date, previous.trip_end_date),
        preferences=Preferences(
            vehicle_type=pick(
                cand.vehicle_type, previous.preferences.vehicle_type, VehicleType.NONE
            ),
            language=pick(cand.language, previous.preferences.language, Language.NONE),
        ),
    )

    greeting = cand.is_greeting or (
        cand.intent is Intent.GREET and not _new_slots_supplied(previous, cand)
    )
    general_query = cand.is_general_query or cand.intent is Intent.GENERAL

    intent = derive_intent(merged, greeting=greeting, general_query=general_query)

    next_record = merged.model_copy(
        update={
            "intent": intent,
            "trip_end_date": _next_end_date(
                previous, cand.trip_end_date, merged.trip_type, merged.trip_start_date
            ),
            "agent_response": cand.agent_response,
        }
    )

    logger.debug(
        "Reduced turn for %s: model_intent=%s -> intent=%s (clamped=%d)",
        previous.user.phone,
        cand.intent.value,
        intent.value,
        len(notices),
    )
    return ReduceResult(record=next_record, clamped=notices)
