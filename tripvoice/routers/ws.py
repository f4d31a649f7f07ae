# tripvoice/routers/ws.py
# -*- coding: utf-8 -*-
"""
Trip Voice Server — WebSocket router
------------------------------------
/ws/session/{phone}

- Registers the socket as a listener on the caller's channel, so it gets
  every AGENT_RESPONSE broadcast for that caller:

      {"type": "AGENT_RESPONSE", "intent": "ask_date",
       "assetId": "ask_date.mp3", "audioUrl": "http://.../audio/ask_date.mp3"}

- Accepts client frames:

      {"type": "ping"}
          -> {"type": "pong"}
      {"type": "turn", "user_text": "...", "name": "...", "id": "..."}
          -> {"type": "turn_result", "success": true, "tripState": {...}, ...}
          or {"type": "error", "code": "...", "message": "..."}

Bad frames get an error frame and the connection stays open.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from tripvoice.core.errors import TurnError
from tripvoice.core.orchestrator import SessionOrchestrator
from tripvoice.core.pipeline import get_orchestrator
from tripvoice.models.turn_request import TurnRequest
from tripvoice.runtime_state.channels import channel_for

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _send_error(
    websocket: WebSocket,
    code: str,
    message: str,
    details: Any | None = None,
) -> None:
    """Send a structured error frame to the client."""
    payload: Dict[str, Any] = {
        "type": "error",
        "code": code,
        "message": message,
    }
    if details is not None:
        payload["details"] = details
    try:
        await websocket.send_json(payload)
    except Exception:  # noqa: BLE001
        logger.debug("Failed to send error frame over WebSocket", exc_info=True)


async def _handle_turn(
    websocket: WebSocket,
    phone: str,
    frame: Dict[str, Any],
    orchestrator: SessionOrchestrator,
) -> None:
    try:
        request = TurnRequest(
            user_text=frame.get("user_text") or "",
            phone=phone,
            name=frame.get("name") or "",
            id=frame.get("id") or "",
            source=frame.get("source") or "keyboard",
        )
    except ValidationError as exc:
        logger.warning("Invalid turn frame over WS: %s", exc)
        await _send_error(
            websocket,
            code="invalid_turn",
            message="Turn frame needs user_text, name and id.",
            details=exc.errors(include_url=False, include_context=False),
        )
        return

    try:
        result = await orchestrator.run_turn(request.identity(), text=request.user_text)
    except TurnError as exc:
        logger.warning("WS turn failed for %s: %s", phone, exc)
        await _send_error(websocket, code=exc.code, message=exc.message)
        return

    payload = result.to_payload()
    payload["type"] = "turn_result"
    await websocket.send_json(payload)


# ---------------------------------------------------------------------------
# /ws/session/{phone}
# ---------------------------------------------------------------------------


@router.websocket("/ws/session/{phone}")
async def websocket_session(
    websocket: WebSocket,
    phone: str,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> None:
    hub = orchestrator.dispatcher.hub
    channel = channel_for(phone)

    await websocket.accept()
    await hub.register(channel, websocket)
    logger.info("WebSocket %s connected", channel)

    try:
        while True:
            try:
                frame = await websocket.receive_json()
            except ValueError:
                await _send_error(websocket, "invalid_frame", "Frames must be valid JSON.")
                continue

            if not isinstance(frame, dict):
                await _send_error(websocket, "invalid_frame", "Frames must be JSON objects.")
                continue

            msg_type = str(frame.get("type") or "").lower().strip()

            if msg_type == "ping":
                await websocket.send_json({"type": "pong"})
                continue

            if msg_type == "turn":
                await _handle_turn(websocket, phone, frame, orchestrator)
                continue

            logger.warning("Unknown frame type on %s: %r", channel, frame.get("type"))
            await _send_error(
                websocket,
                code="unknown_type",
                message=f"Unknown frame type: {frame.get('type')!r}",
            )

    except WebSocketDisconnect:
        logger.info("WebSocket %s disconnected", channel)
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unexpected error in WS %s: %s", channel, exc)
        try:
            await websocket.close(code=1011)
        except Exception:  # noqa: BLE001
            pass
    finally:
        await hub.unregister(channel, websocket)
