# tripvoice/core/dispatcher.py
# -*- coding: utf-8 -*-
"""
Trip Voice Server — Response dispatcher
---------------------------------------
Maps the turn's final intent to a pre-recorded audio asset and broadcasts
it to the caller's channel.

The mapping is a static table with one entry per intent; `general` and
`unknown` share the fallback asset. Delivery is best-effort: any failure
or timeout is logged and reported, never raised, so the turn outcome does
not depend on who is listening.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional

from tripvoice.core.config import settings
from tripvoice.core.errors import NotificationFailed
from tripvoice.core.types import DispatchReport
from tripvoice.models.trip_record import Intent
from tripvoice.runtime_state.channels import NotificationHub

logger = logging.getLogger(__name__)

FALLBACK_ASSET = "general.mp3"

ASSET_TABLE: Mapping[Intent, str] = {
    Intent.GREET: "greet.mp3",
    Intent.ASK_SOURCE: "ask_source.mp3",
    Intent.ASK_DESTINATION: "ask_destination.mp3",
    Intent.ASK_TRIP_TYPE: "ask_trip_type.mp3",
    Intent.ASK_DATE: "ask_date.mp3",
    Intent.ASK_PREFERENCES: "ask_preferences.mp3",
    Intent.GENERAL: FALLBACK_ASSET,
    Intent.UNKNOWN: FALLBACK_ASSET,
}


def asset_for(intent: Intent) -> str:
    """Asset id for an intent. Unknown keys fall back to the general asset."""
    return ASSET_TABLE.get(intent, FALLBACK_ASSET)


def asset_url(asset_id: str, base_url: Optional[str] = None) -> str:
    base = (base_url or settings.audio_base_url).rstrip("/")
    return f"{base}/{asset_id}"


def build_signal(intent: Intent, asset_id: str, base_url: Optional[str] = None) -> Dict[str, Any]:
    """Frame sent to every listener of the session channel."""
    return {
        "type": "AGENT_RESPONSE",
        "intent": intent.value,
        "assetId": asset_id,
        "audioUrl": asset_url(asset_id, base_url),
    }


class ResponseDispatcher:
    """
    Parameters
    ----------
    hub:
        Notification hub that owns the session channels.
    timeout_s:
        Deadline for one broadcast.
    base_url:
        Where clients fetch assets from; defaults to settings.audio_base_url.
    """

    def __init__(
        self,
        hub: NotificationHub,
        timeout_s: Optional[float] = None,
        base_url: Optional[str] = None,
    ) -> None:
        self.hub = hub
        self.timeout_s = timeout_s if timeout_s is not None else settings.broadcast_timeout_s
        self.base_url = base_url

    async def _deliver(self, channel: str, payload: Dict[str, Any]) -> int:
        try:
            return await asyncio.wait_for(
                self.hub.broadcast(channel, payload), timeout=self.timeout_s
            )
        except asyncio.TimeoutError as exc:
            raise NotificationFailed(
                f"broadcast to {channel} timed out after {self.timeout_s}s"
            ) from exc
        except Exception as exc:  # noqa: BLE001
            raise NotificationFailed(f"broadcast to {channel} failed: {exc}") from exc

    async def dispatch(self, channel: str, intent: Intent) -> DispatchReport:
        asset_id = asset_for(intent)
        payload = build_signal(intent, asset_id, self.base_url)

        try:
            listeners = await self._deliver(channel, payload)
        except NotificationFailed as exc:
            logger.warning("NotificationFailed: %s", exc)
            return DispatchReport(
                intent=intent, asset_id=asset_id, delivered=False, error=str(exc)
            )

        return DispatchReport(
            intent=intent, asset_id=asset_id, delivered=True, listeners=listeners
        )
