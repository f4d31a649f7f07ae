# tests/conftest.py
# -*- coding: utf-8 -*-
"""
Shared fixtures and fakes for the trip voice server tests.

The environment is pinned before any tripvoice import so the global
runtime state uses the in-memory store and no extractor key is read from
a developer's .env.
"""

from __future__ import annotations

import os

os.environ["STORE_BACKEND"] = "memory"
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "false"
os.environ["EXTRACTOR_API_KEY"] = ""

from typing import Any, Callable, Dict, List, Optional, Union  # noqa: E402

import pytest  # noqa: E402

from tripvoice.core.dispatcher import ResponseDispatcher  # noqa: E402
from tripvoice.core.orchestrator import SessionOrchestrator  # noqa: E402
from tripvoice.models.trip_record import (  # noqa: E402
    Identity,
    Preferences,
    TripRecord,
    TripType,
    new_trip_record,
)
from tripvoice.runtime_state.channels import NotificationHub  # noqa: E402
from tripvoice.runtime_state.store import InMemorySessionStore  # noqa: E402


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTranscriber:
    """Returns a fixed transcript, or raises `error` if set."""

    def __init__(self, transcript: str = "hello", error: Optional[Exception] = None) -> None:
        self.transcript = transcript
        self.error = error
        self.calls: List[bytes] = []

    def transcribe(self, audio: bytes, filename: str = "audio.webm", content_type: str = "") -> str:
        self.calls.append(audio)
        if self.error is not None:
            raise self.error
        return self.transcript


Script = Union[Dict[str, Any], str, Exception, Callable[[str, TripRecord], Any]]


class FakeExtractor:
    """
    Plays back scripted extractor answers in order. The last entry repeats.
    An Exception entry is raised; a callable is called with
    (transcript, previous).
    """

    def __init__(self, *answers: Script) -> None:
        self.answers = list(answers) or [{}]
        self.calls: List[str] = []

    def classify(self, transcript: str, previous: TripRecord) -> Any:
        index = min(len(self.calls), len(self.answers) - 1)
        self.calls.append(transcript)
        answer = self.answers[index]
        if isinstance(answer, Exception):
            raise answer
        if callable(answer):
            return answer(transcript, previous)
        return answer


class RecordingListener:
    def __init__(self, fail: bool = False) -> None:
        self.frames: List[Dict[str, Any]] = []
        self.fail = fail

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise ConnectionError("listener gone")
        self.frames.append(data)


@pytest.fixture
def identity() -> Identity:
    return Identity(id="user-001", name="Asha", phone="9999999999")


@pytest.fixture
def fresh(identity: Identity) -> TripRecord:
    return new_trip_record(identity)


@pytest.fixture
def mandatory_done(identity: Identity) -> TripRecord:
    """Every mandatory slot known, no preferences yet."""
    return TripRecord(
        user=identity,
        source="Indore",
        destination="Rewa",
        trip_type=TripType.ROUND_TRIP,
        trip_start_date="12/11/2026 12:26 PM",
        preferences=Preferences(),
    )


@pytest.fixture
def memory_store() -> InMemorySessionStore:
    return InMemorySessionStore(clock=FakeClock())


@pytest.fixture
def hub() -> NotificationHub:
    return NotificationHub()


@pytest.fixture
def make_orchestrator(memory_store: InMemorySessionStore, hub: NotificationHub):
    def _make(
        extractor: Optional[FakeExtractor] = None,
        transcriber: Optional[FakeTranscriber] = None,
        store=None,
        dispatcher: Optional[ResponseDispatcher] = None,
    ) -> SessionOrchestrator:
        return SessionOrchestrator(
            store=store if store is not None else memory_store,
            transcriber=transcriber if transcriber is not None else FakeTranscriber(),
            extractor=extractor if extractor is not None else FakeExtractor(),
            dispatcher=dispatcher
            if dispatcher is not None
            else ResponseDispatcher(hub, base_url="http://test/audio"),
            ttl_s=300,
        )

    return _make
