"""
Runtime state package for the trip voice server.

Everything that lives across turns is here:

- store     : TripRecord persistence with TTL (Redis or in-memory)
- locks     : per-session mutual exclusion for a turn
- channels  : WebSocket listener hub for turn notifications

Typical usage (see core/pipeline.py):

    from tripvoice.runtime_state import session_store, notification_hub

    record = await session_store.load(session_key_for(phone))
    await notification_hub.broadcast(channel_for(phone), payload)
"""

from tripvoice.core.config import settings

from .channels import NotificationHub, channel_for
from .locks import SessionLockRegistry
from .store import (
    InMemorySessionStore,
    RedisSessionStore,
    SessionStore,
    build_session_store,
    session_key_for,
)

# Global instances used by the rest of the app
session_store: SessionStore = build_session_store(settings)
notification_hub = NotificationHub()

__all__ = [
    "InMemorySessionStore",
    "NotificationHub",
    "RedisSessionStore",
    "SessionLockRegistry",
    "SessionStore",
    "build_session_store",
    "channel_for",
    "notification_hub",
    "session_key_for",
    "session_store",
]
