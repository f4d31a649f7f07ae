# tripvoice/runtime_state/channels.py
# -*- coding: utf-8 -*-
"""
Trip Voice Server — Session notification hub
--------------------------------------------
Fan-out of turn signals to everyone listening on a caller's channel.

Clients open  WS /ws/session/{phone}  and are registered on the channel
`trip_{phone}`. After each turn the dispatcher broadcasts:

    {"type": "AGENT_RESPONSE", "intent": "...", "assetId": "...", "audioUrl": "..."}

Delivery is best-effort: a listener whose send fails is dropped and the
remaining listeners still get the frame.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Protocol, Set

logger = logging.getLogger(__name__)


def channel_for(phone: str) -> str:
    """Channel (room) name for a caller's phone number."""
    return f"trip_{phone}"


class Listener(Protocol):
    """Anything with an async send_json, e.g. fastapi.WebSocket."""

    async def send_json(self, data: Any) -> None:
        ...


class NotificationHub:
    def __init__(self) -> None:
        self._channels: Dict[str, Set[Listener]] = {}
        self._guard = asyncio.Lock()

    async def register(self, channel: str, listener: Listener) -> None:
        async with self._guard:
            self._channels.setdefault(channel, set()).add(listener)
        logger.info("Listener joined %s (%d total)", channel, self.listener_count(channel))

    async def unregister(self, channel: str, listener: Listener) -> None:
        async with self._guard:
            listeners = self._channels.get(channel)
            if not listeners:
                return
            listeners.discard(listener)
            if not listeners:
                del self._channels[channel]
        logger.info("Listener left %s", channel)

    def listener_count(self, channel: str) -> int:
        return len(self._channels.get(channel, ()))

    async def broadcast(self, channel: str, payload: Dict[str, Any]) -> int:
        """
        Send `payload` to every listener on `channel`.

        Returns the number of listeners that received it. Zero listeners is
        not an error; nobody may be connected yet.
        """
        async with self._guard:
            listeners = list(self._channels.get(channel, ()))

        delivered = 0
        dead = []
        for listener in listeners:
            try:
                await listener.send_json(payload)
                delivered += 1
            except Exception:  # noqa: BLE001
                logger.debug("Dropping dead listener on %s", channel, exc_info=True)
                dead.append(listener)

        for listener in dead:
            await self.unregister(channel, listener)

        logger.info(
            "Broadcast %s to %s (%d/%d listeners)",
            payload.get("intent"),
            channel,
            delivered,
            len(listeners),
        )
        return delivered
