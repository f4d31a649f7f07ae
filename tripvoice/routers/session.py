# tripvoice/routers/session.py
# -*- coding: utf-8 -*-
"""
Trip Voice Server — session + audio routers
-------------------------------------------
Read-only views for clients:

- GET /session/{phone}   current stored TripRecord (404 if none / expired)
- GET /audio/{filename}  pre-recorded response assets named in broadcasts
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from tripvoice.core.config import settings
from tripvoice.core.errors import PersistenceFailed
from tripvoice.core.orchestrator import SessionOrchestrator
from tripvoice.core.pipeline import get_orchestrator
from tripvoice.utils import resolve_asset_path

logger = logging.getLogger(__name__)

router = APIRouter(tags=["session"])


@router.get("/session/{phone}")
async def get_session(
    phone: str,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """
    Current TripRecord for a caller.

    Handy for a client that reconnects mid-conversation and wants to
    redraw the booking card.
    """
    try:
        record = await orchestrator.current(phone)
    except PersistenceFailed as exc:
        logger.warning("GET /session/%s failed: %s", phone, exc)
        raise HTTPException(status_code=503, detail="Session store unavailable.") from exc

    if record is None:
        raise HTTPException(status_code=404, detail="No active session for this phone.")
    return {"success": True, "tripState": record.to_json_dict()}


@router.get("/audio/{filename}")
async def get_audio(filename: str) -> FileResponse:
    path = resolve_asset_path(settings.audio_dir, filename)
    if path is None:
        raise HTTPException(status_code=404, detail="Audio not found")
    return FileResponse(path, media_type="audio/mpeg")
