# tripvoice/routers/turn.py
# -*- coding: utf-8 -*-
"""
Trip Voice Server — turn router
-------------------------------
HTTP endpoints that run one conversational turn.

Flow:
  POST /transcribe  (multipart: file, name, phone, id)
  POST /turn        (TurnRequest JSON, text already transcribed)
    -> SessionOrchestrator.run_turn(...)
       - loads the caller's TripRecord (fresh greet record if none)
       - transcribes audio (only /transcribe)
       - extracts candidate slots, reduces, saves with TTL
       - broadcasts the intent asset to the caller's channel
    -> {"success": true, "tripState": {...}, "transcript", "assetId", "notified"}

A failed turn answers {"success": false, "error": <code>, "message": ...}
with 502 (STT / extractor) or 503 (store). Nothing was saved in that case.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse

from tripvoice.core.config import settings
from tripvoice.core.errors import TurnError
from tripvoice.core.orchestrator import SessionOrchestrator
from tripvoice.core.pipeline import get_orchestrator
from tripvoice.core.types import TurnResult
from tripvoice.models.trip_record import Identity
from tripvoice.models.turn_request import TurnRequest

router = APIRouter(tags=["turn"])
logger = logging.getLogger(__name__)


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "bad_request", "message": message},
    )


def _failure(exc: TurnError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def _internal_error() -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "internal_error",
            "message": "Internal server error in turn pipeline.",
        },
    )


def _ok(result: TurnResult) -> JSONResponse:
    logger.info(
        "[turn] phone=%s intent=%s asset=%s notified=%s",
        result.record.user.phone,
        result.record.intent.value,
        result.dispatch.asset_id,
        result.dispatch.delivered,
    )
    return JSONResponse(status_code=200, content=result.to_payload())


@router.post("/transcribe")
async def transcribe_turn(
    file: UploadFile | None = File(default=None),
    name: str = Form(default=""),
    phone: str = Form(default=""),
    id: str = Form(default=""),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    """
    Audio turn. The clip is sent to STT, then handled like a text turn.
    """
    if file is None:
        return _bad_request("Audio file is required")
    if not phone.strip() or not id.strip() or not name.strip():
        return _bad_request("Phone number, id and name are required")

    audio = await file.read()
    if not audio:
        return _bad_request("Audio file is empty")

    identity = Identity(id=id.strip(), name=name.strip(), phone=phone.strip())
    logger.info("[/transcribe] phone=%s bytes=%d", identity.phone, len(audio))

    try:
        result = await orchestrator.run_turn(
            identity,
            audio=audio,
            filename=file.filename or "audio.webm",
            content_type=file.content_type or "application/octet-stream",
        )
    except TurnError as exc:
        logger.warning("[/transcribe] turn failed for %s: %s", identity.phone, exc)
        return _failure(exc)
    except Exception:  # pragma: no cover - defensive guard
        logger.exception("Unhandled exception in /transcribe")
        if settings.debug:
            raise
        return _internal_error()

    return _ok(result)


@router.post("/turn")
async def text_turn(
    request: TurnRequest,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> JSONResponse:
    """
    Text turn: the client already has a transcript (or a developer typed it).
    """
    logger.info(
        "[/turn] source=%s phone=%s text=%r",
        request.source.value,
        request.phone,
        request.user_text,
    )

    try:
        result = await orchestrator.run_turn(request.identity(), text=request.user_text)
    except TurnError as exc:
        logger.warning("[/turn] turn failed for %s: %s", request.phone, exc)
        return _failure(exc)
    except Exception:  # pragma: no cover - defensive guard
        logger.exception("Unhandled exception in /turn")
        if settings.debug:
            raise
        return _internal_error()

    return _ok(result)
