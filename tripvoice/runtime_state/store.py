# tripvoice/runtime_state/store.py
# -*- coding: utf-8 -*-
"""
Trip Voice Server — Session store
---------------------------------

Key-value persistence for TripRecords, one key per caller:

    trip_state:<phone>  ->  TripRecord JSON   (expires after session_ttl_s)

Two backends share the same async contract:

- RedisSessionStore     : production, `SET key value EX ttl`.
- InMemorySessionStore  : single process, lazy expiry; dev and tests.

Design notes
~~~~~~~~~~~~
- Only single-key get/put is used. No multi-key transactions.
- A stored value that no longer validates is logged and treated as absent,
  so a bad record starts a fresh session instead of wedging the caller.
- Backend errors raise PersistenceFailed; the orchestrator aborts the turn.
"""

from __future__ import annotations

import time
from typing import Callable, Dict, Optional, Tuple

import redis.asyncio as aioredis
from pydantic import ValidationError
from redis.exceptions import RedisError

from tripvoice.core.config import Settings
from tripvoice.core.errors import PersistenceFailed
from tripvoice.models.trip_record import TripRecord
from tripvoice.utils import get_logger


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

logger = get_logger("tripvoice.runtime_state")

KEY_PREFIX = "trip_state:"


def session_key_for(phone: str) -> str:
    """Store key for a caller's phone number."""
    return f"{KEY_PREFIX}{phone}"


def _decode(session_key: str, raw: str | bytes) -> Optional[TripRecord]:
    try:
        return TripRecord.from_store_json(raw)
    except ValidationError as exc:
        logger.warning(
            "[SessionStore] Stored record for %s does not validate: %s; "
            "starting a fresh session.",
            session_key,
            exc,
        )
        return None


# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------


class SessionStore:
    """
    Async get/set of a TripRecord by session key, with expiry.

    Subclasses implement `_get_raw` / `_set_raw`; decoding and error
    translation live here.
    """

    backend: str = "abstract"

    async def _get_raw(self, session_key: str) -> Optional[str | bytes]:
        raise NotImplementedError

    async def _set_raw(self, session_key: str, value: str, ttl_seconds: int) -> None:
        raise NotImplementedError

    async def load(self, session_key: str) -> Optional[TripRecord]:
        """Return the stored record, or None if absent or expired."""
        try:
            raw = await self._get_raw(session_key)
        except (RedisError, OSError) as exc:
            raise PersistenceFailed(f"Failed to load {session_key}: {exc}") from exc

        if raw is None:
            return None
        return _decode(session_key, raw)

    async def save(self, session_key: str, record: TripRecord, ttl_seconds: int) -> None:
        """Write the record and (re)start its TTL."""
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")

        try:
            await self._set_raw(session_key, record.to_store_json(), ttl_seconds)
        except (RedisError, OSError) as exc:
            raise PersistenceFailed(f"Failed to save {session_key}: {exc}") from exc

        logger.debug(
            "[SessionStore] Saved %s (intent=%s, ttl=%ds)",
            session_key,
            record.intent.value,
            ttl_seconds,
        )

    async def close(self) -> None:
        """Release backend resources. No-op by default."""


# ---------------------------------------------------------------------------
# Redis backend
# ---------------------------------------------------------------------------


class RedisSessionStore(SessionStore):
    """
    Redis-backed store.

    Parameters
    ----------
    client:
        A `redis.asyncio.Redis` instance (or anything with async get/set).
    """

    backend = "redis"

    def __init__(self, client: aioredis.Redis) -> None:
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisSessionStore":
        return cls(aioredis.from_url(url, decode_responses=True))

    async def _get_raw(self, session_key: str) -> Optional[str | bytes]:
        return await self.client.get(session_key)

    async def _set_raw(self, session_key: str, value: str, ttl_seconds: int) -> None:
        ok = await self.client.set(session_key, value, ex=ttl_seconds)
        if ok is False:
            raise RedisError(f"SET {session_key} was not applied")

    async def close(self) -> None:
        await self.client.aclose()


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


class InMemorySessionStore(SessionStore):
    """
    Process-local store with the same TTL semantics as Redis.

    Parameters
    ----------
    clock:
        Monotonic time source in seconds. Tests pass a fake one to expire
        entries without sleeping.
    """

    backend = "memory"

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: Dict[str, Tuple[str, float]] = {}

    async def _get_raw(self, session_key: str) -> Optional[str]:
        entry = self._entries.get(session_key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            logger.info("[SessionStore] Session %s expired", session_key)
            del self._entries[session_key]
            return None
        return value

    async def _set_raw(self, session_key: str, value: str, ttl_seconds: int) -> None:
        self._entries[session_key] = (value, self._clock() + ttl_seconds)

    def prune_expired(self) -> int:
        """Drop every expired entry. Returns how many were removed."""
        now = self._clock()
        stale = [key for key, (_, exp) in self._entries.items() if exp <= now]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.info("[SessionStore] Pruned %d expired sessions", len(stale))
        return len(stale)

    def __len__(self) -> int:
        return len(self._entries)


def build_session_store(config: Settings) -> SessionStore:
    """Pick the backend named by `config.store_backend`."""
    if config.store_backend == "memory":
        logger.info("[SessionStore] Using in-memory backend")
        return InMemorySessionStore()

    logger.info("[SessionStore] Using Redis backend at %s", config.redis_url)
    return RedisSessionStore.from_url(config.redis_url)
