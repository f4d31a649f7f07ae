# tests/test_trip_record.py
# -*- coding: utf-8 -*-
"""TripRecord wire form and helpers."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from tripvoice.models.trip_record import (
    Intent,
    Language,
    Preferences,
    TripRecord,
    TripType,
    VehicleType,
    new_trip_record,
)


def test_new_record_is_a_greeting_with_nothing_known(identity):
    record = new_trip_record(identity)
    assert record.intent is Intent.GREET
    assert record.user == identity
    assert not record.mandatory_resolved
    assert record.preferences.known_count() == 0


def test_wire_form_uses_camel_case(mandatory_done):
    data = mandatory_done.to_json_dict()
    assert set(data) == {
        "user",
        "intent",
        "source",
        "destination",
        "tripType",
        "tripStartDate",
        "tripEndDate",
        "preferences",
        "agentResponse",
    }
    assert data["tripType"] == "round_trip"
    assert data["preferences"] == {"vehicleType": "none", "language": "none"}
    assert data["user"] == {"id": "user-001", "name": "Asha", "phone": "9999999999"}


def test_store_json_reloads_to_an_equal_record(mandatory_done):
    assert TripRecord.from_store_json(mandatory_done.to_store_json()) == mandatory_done


def test_legacy_empty_strings_load_as_unset():
    raw = json.dumps(
        {
            "user": {"id": "1", "name": "Ravi", "phone": "8888"},
            "intent": "ask_source",
            "source": "",
            "destination": "",
            "tripType": "not_decided",
            "tripStartDate": "",
            "tripEndDate": "",
            "preferences": {"vehicleType": "none", "language": "none"},
        }
    )
    record = TripRecord.from_store_json(raw)
    assert record.source is None
    assert record.trip_start_date is None
    assert record.intent is Intent.ASK_SOURCE


def test_stored_record_with_bad_enum_is_rejected():
    raw = json.dumps(
        {"user": {"id": "1", "name": "Ravi", "phone": "8888"}, "intent": "dance"}
    )
    with pytest.raises(ValidationError):
        TripRecord.from_store_json(raw)


def test_records_are_immutable(mandatory_done):
    with pytest.raises(ValidationError):
        mandatory_done.source = "Bhopal"


def test_mandatory_resolved(identity, mandatory_done):
    assert mandatory_done.mandatory_resolved
    undecided = mandatory_done.model_copy(update={"trip_type": TripType.NOT_DECIDED})
    assert not undecided.mandatory_resolved


def test_known_count():
    assert Preferences().known_count() == 0
    assert Preferences(vehicle_type=VehicleType.SUV).known_count() == 1
    assert Preferences(vehicleType="sedan", language=Language.TA).known_count() == 2
