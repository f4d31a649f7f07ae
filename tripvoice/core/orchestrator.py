# tripvoice/core/orchestrator.py
# -*- coding: utf-8 -*-
"""
Trip Voice Server — Turn orchestrator
-------------------------------------
Runs one conversational turn for one caller:

    lock(session) ->
      1. load previous TripRecord (or a fresh greet record)
      2. transcript  (STT, unless text was given)
      3. candidate   (slot extractor)
      4. reduce      (pure)
      5. save        (refreshes TTL)
      6. dispatch    (best-effort broadcast)
    -> TurnResult

Nothing is written before step 5, so a failure in 2-5 leaves the stored
record exactly as it was and the caller can retry with the same input.
Every external call has a deadline; blocking providers run in a worker
thread.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Optional, Protocol, Type, TypeVar

from tripvoice.core.config import settings
from tripvoice.core.dispatcher import ResponseDispatcher
from tripvoice.core.errors import (
    ExtractionFailed,
    PersistenceFailed,
    TranscriptionFailed,
    TurnError,
)
from tripvoice.core.reducer import reduce_trip
from tripvoice.core.safety import sanitize_transcript
from tripvoice.core.types import ExtractionResult, TurnResult
from tripvoice.models.trip_record import Identity, TripRecord, new_trip_record
from tripvoice.runtime_state.channels import channel_for
from tripvoice.runtime_state.locks import SessionLockRegistry
from tripvoice.runtime_state.store import SessionStore, session_key_for
from tripvoice.utils import Stopwatch, bind_session

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Transcriber(Protocol):
    def transcribe(self, audio: bytes, filename: str = ..., content_type: str = ...) -> str:
        ...


class Extractor(Protocol):
    def classify(self, transcript: str, previous: TripRecord) -> Any:
        ...


async def _bounded(
    call: Awaitable[T],
    timeout_s: float,
    error_cls: Type[TurnError],
    label: str,
) -> T:
    """Await `call` under a deadline, mapping timeouts and stray errors to `error_cls`."""
    try:
        return await asyncio.wait_for(call, timeout=timeout_s)
    except TurnError:
        raise
    except asyncio.TimeoutError as exc:
        raise error_cls(f"{label} timed out after {timeout_s}s") from exc
    except Exception as exc:  # noqa: BLE001
        raise error_cls(f"{label} failed: {exc}") from exc


class SessionOrchestrator:
    """
    Parameters
    ----------
    store:
        SessionStore backend.
    transcriber / extractor:
        External capabilities (blocking; run in a thread).
    dispatcher:
        Best-effort notifier.
    locks:
        Per-session lock registry; one is created if not given.
    ttl_s:
        Session TTL written on every save.
    """

    def __init__(
        self,
        store: SessionStore,
        transcriber: Transcriber,
        extractor: Extractor,
        dispatcher: ResponseDispatcher,
        locks: Optional[SessionLockRegistry] = None,
        ttl_s: Optional[int] = None,
    ) -> None:
        self.store = store
        self.transcriber = transcriber
        self.extractor = extractor
        self.dispatcher = dispatcher
        self.locks = locks or SessionLockRegistry()
        self.ttl_s = ttl_s if ttl_s is not None else settings.session_ttl_s

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def load_or_create(self, session_key: str, identity: Identity) -> TripRecord:
        previous = await _bounded(
            self.store.load(session_key),
            settings.store_timeout_s,
            PersistenceFailed,
            f"load {session_key}",
        )
        if previous is None:
            logger.info("No stored record for %s; starting a fresh session.", session_key)
            return new_trip_record(identity)

        if previous.user != identity:
            logger.debug(
                "Identity in request differs from stored one for %s; keeping stored.",
                session_key,
            )
        return previous

    async def _transcribe(self, audio: bytes, filename: str, content_type: str) -> str:
        return await _bounded(
            asyncio.to_thread(self.transcriber.transcribe, audio, filename, content_type),
            settings.stt_timeout_s,
            TranscriptionFailed,
            "transcription",
        )

    async def _extract(self, transcript: str, previous: TripRecord) -> Any:
        return await _bounded(
            asyncio.to_thread(self.extractor.classify, transcript, previous),
            settings.extractor_timeout_s,
            ExtractionFailed,
            "extraction",
        )

    async def _save(self, session_key: str, record: TripRecord) -> None:
        await _bounded(
            self.store.save(session_key, record, self.ttl_s),
            settings.store_timeout_s,
            PersistenceFailed,
            f"save {session_key}",
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run_turn(
        self,
        identity: Identity,
        *,
        audio: Optional[bytes] = None,
        text: Optional[str] = None,
        filename: str = "audio.webm",
        content_type: str = "application/octet-stream",
    ) -> TurnResult:
        """
        Process one utterance (audio, or text that is already transcribed).

        Raises
        ------
        TranscriptionFailed, ExtractionFailed, ExtractionMalformed, PersistenceFailed
            The turn did not take effect; the stored record is unchanged.
        ValueError
            Neither audio nor text was given.
        """
        if audio is None and (text is None or not text.strip()):
            raise ValueError("A turn needs audio or non-empty text.")

        session_key = session_key_for(identity.phone)

        with bind_session(session_key):
            async with self.locks.hold(session_key):
                previous = await self.load_or_create(session_key, identity)

                if text is not None and text.strip():
                    raw_transcript = text
                else:
                    async with Stopwatch(f"transcription {session_key}", logger):
                        raw_transcript = await self._transcribe(audio or b"", filename, content_type)

                cleaned = sanitize_transcript(raw_transcript)
                if cleaned.too_short:
                    raise TranscriptionFailed("Transcript is empty after cleaning.")
                transcript = cleaned.sanitized

                async with Stopwatch(f"extraction {session_key}", logger):
                    candidate = await self._extract(transcript, previous)

                model: Optional[str] = None
                if isinstance(candidate, ExtractionResult):
                    model = candidate.model
                    candidate = candidate.payload

                reduced = reduce_trip(previous, candidate)
                record = reduced.record

                await self._save(session_key, record)
                logger.info(
                    "Turn %s: %r -> intent=%s (was %s)",
                    session_key,
                    transcript,
                    record.intent.value,
                    previous.intent.value,
                )

                report = await self.dispatcher.dispatch(channel_for(identity.phone), record.intent)

        return TurnResult(
            record=record,
            transcript=transcript,
            dispatch=report,
            model=model,
            clamped=reduced.clamped,
        )

    async def current(self, phone: str) -> Optional[TripRecord]:
        """Stored record for a caller, or None."""
        session_key = session_key_for(phone)
        return await _bounded(
            self.store.load(session_key),
            settings.store_timeout_s,
            PersistenceFailed,
            f"load {session_key}",
        )


