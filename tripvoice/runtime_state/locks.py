# tripvoice/runtime_state/locks.py
# -*- coding: utf-8 -*-
"""
Per-session mutual exclusion.

A turn is a read-modify-write on one store key, so two turns for the same
caller must not interleave. Each session key gets an asyncio.Lock that is
held from load to dispatch. Locks are reference-counted and dropped once
nobody holds or waits on them, so idle sessions cost nothing.

Scope is one event loop / one server process.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class SessionLockRegistry:
    """
    One asyncio.Lock per session key, created on first use.

        async with locks.hold("trip_state:9999"):
            ...load, reduce, save, dispatch...
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, session_key: str) -> AsyncIterator[None]:
        lock = self._locks.get(session_key)
        if lock is None:
            lock = self._locks[session_key] = asyncio.Lock()
        self._users[session_key] = self._users.get(session_key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[session_key] -= 1
            if self._users[session_key] == 0:
                del self._users[session_key]
                del self._locks[session_key]

    def active(self) -> int:
        """Number of sessions with a turn running or queued."""
        return len(self._locks)
