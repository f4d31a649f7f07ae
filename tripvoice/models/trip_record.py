# tripvoice/models/trip_record.py
# -*- coding: utf-8 -*-
"""
Trip Voice Server — TripRecord model
------------------------------------
The persisted, authoritative trip booking record for one caller session.

Wire / store form uses camelCase keys so records stay readable by the
browser client and by anything already sitting in Redis:

    {
      "user": {"id": "...", "name": "...", "phone": "..."},
      "intent": "ask_date",
      "source": "Indore",
      "destination": "Rewa",
      "tripType": "round_trip",
      "tripStartDate": null,
      "tripEndDate": null,
      "preferences": {"vehicleType": "none", "language": "none"},
      "agentResponse": null
    }

Unset free-text slots are None. An empty string coming from an older record
is normalized to None on load.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Intent(str, Enum):
    """The single next conversational action."""

    GREET = "greet"
    ASK_SOURCE = "ask_source"
    ASK_DESTINATION = "ask_destination"
    ASK_TRIP_TYPE = "ask_trip_type"
    ASK_DATE = "ask_date"
    ASK_PREFERENCES = "ask_preferences"
    GENERAL = "general"
    UNKNOWN = "unknown"


class TripType(str, Enum):
    ONE_WAY = "one_way"
    ROUND_TRIP = "round_trip"
    NOT_DECIDED = "not_decided"   # same as unset for the flow


class VehicleType(str, Enum):
    SUV = "suv"
    SEDAN = "sedan"
    HATCHBACK = "hatchback"
    NONE = "none"


class Language(str, Enum):
    """Preferred language for the driver / agent."""

    EN = "en"   # English
    HI = "hi"   # Hindi
    BN = "bn"   # Bengali
    TA = "ta"   # Tamil
    TE = "te"   # Telugu
    MR = "mr"   # Marathi
    GU = "gu"   # Gujarati
    KN = "kn"   # Kannada
    ML = "ml"   # Malayalam
    PA = "pa"   # Punjabi
    OR = "or"   # Odia
    AS = "as"   # Assamese
    UR = "ur"   # Urdu
    NONE = "none"


class Identity(BaseModel):
    """Caller identity. Attached when the session is created, never changed."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    phone: str


class Preferences(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    vehicle_type: VehicleType = Field(default=VehicleType.NONE, alias="vehicleType")
    language: Language = Field(default=Language.NONE)

    def known_count(self) -> int:
        """How many preferences hold a real (non-"none") value."""
        return int(self.vehicle_type is not VehicleType.NONE) + int(
            self.language is not Language.NONE
        )


class TripRecord(BaseModel):
    """
    Authoritative trip record.

    Attributes
    ----------
    user:
        Caller identity, copied forward unchanged on every turn.
    intent:
        Next conversational action, always a member of Intent.
    source / destination:
        Canonical place names, or None when unknown.
    trip_type:
        one_way / round_trip, or not_decided when unknown.
    trip_start_date / trip_end_date:
        "dd/mm/yyyy hh:mm AM/PM" strings, or None.
    preferences:
        Vehicle type and language, "none" when unknown.
    agent_response:
        Optional reply text the extractor proposed for the latest turn.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    user: Identity
    intent: Intent = Intent.GREET

    source: Optional[str] = None
    destination: Optional[str] = None
    trip_type: TripType = Field(default=TripType.NOT_DECIDED, alias="tripType")
    trip_start_date: Optional[str] = Field(default=None, alias="tripStartDate")
    trip_end_date: Optional[str] = Field(default=None, alias="tripEndDate")

    preferences: Preferences = Field(default_factory=Preferences)
    agent_response: Optional[str] = Field(default=None, alias="agentResponse")

    @field_validator(
        "source", "destination", "trip_start_date", "trip_end_date", mode="before"
    )
    @classmethod
    def _blank_is_unset(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    # ------------------------------------------------------------------
    # Flow helpers
    # ------------------------------------------------------------------

    @property
    def mandatory_resolved(self) -> bool:
        """source, destination, trip type and start date are all known."""
        return (
            self.source is not None
            and self.destination is not None
            and self.trip_type is not TripType.NOT_DECIDED
            and self.trip_start_date is not None
        )

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def to_store_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_store_json(cls, raw: str | bytes) -> "TripRecord":
        return cls.model_validate_json(raw)


def new_trip_record(identity: Identity) -> TripRecord:
    """Fresh-session record: every slot unset, intent greet."""
    return TripRecord(user=identity, intent=Intent.GREET)
