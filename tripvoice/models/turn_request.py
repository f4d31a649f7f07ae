# tripvoice/models/turn_request.py
# -*- coding: utf-8 -*-
"""
Trip Voice Server — TurnRequest model
-------------------------------------
Request body for a pre-transcribed turn (POST /turn, and "turn" frames on
the session WebSocket). Audio turns arrive as multipart on /transcribe and
carry the same identity fields as form parts.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, constr

from tripvoice.models.trip_record import Identity


class InputSource(str, Enum):
    """Where the text originally came from."""

    MIC = "mic"            # Caller microphone → STT done client-side
    KEYBOARD = "keyboard"  # Operator / developer typing
    TEST = "test"          # Automated tests and health checks


class TurnRequest(BaseModel):
    """
    Fields
    ------
    user_text:
        Caller utterance in plain text.
    phone:
        Stable caller identity; the session key is derived from it.
    name / id:
        Caller details, stored on the record when the session is created.
    source:
        Origin of the text, for logging.
    """

    user_text: constr(min_length=1, strip_whitespace=True) = Field(
        ...,
        description="Caller utterance in plain text.",
        examples=["mai kal indore se rewa jaunga"],
    )
    phone: constr(min_length=1, strip_whitespace=True) = Field(
        ...,
        description="Caller phone number (session identity).",
        examples=["9999999999"],
    )
    name: constr(min_length=1, strip_whitespace=True) = Field(
        ...,
        description="Caller display name.",
        examples=["Asha"],
    )
    id: constr(min_length=1, strip_whitespace=True) = Field(
        ...,
        description="Caller id in the client app.",
        examples=["user-001"],
    )
    source: InputSource = Field(
        default=InputSource.KEYBOARD,
        description="Origin of the text (mic, keyboard, test).",
    )

    def identity(self) -> Identity:
        return Identity(id=self.id, name=self.name, phone=self.phone)
