# tripvoice/core/pipeline.py
# -*- coding: utf-8 -*-
"""
Trip Voice Server — Turn pipeline wiring
----------------------------------------
Builds the process-wide SessionOrchestrator from settings and the global
runtime state, and exposes it to the routers as a FastAPI dependency:

    HTTP / WS request
      -> get_orchestrator()
         - session_store      (runtime_state, Redis or memory)
         - HttpTranscriber    (providers.transcriber)
         - SlotExtractor      (providers.extractor)
         - ResponseDispatcher (core.dispatcher, notification_hub)
      -> orchestrator.run_turn(...)

Tests swap the whole orchestrator via app.dependency_overrides.
"""

from __future__ import annotations

import logging
from typing import Optional

from tripvoice.core.config import settings
from tripvoice.core.dispatcher import ResponseDispatcher
from tripvoice.core.orchestrator import SessionOrchestrator
from tripvoice.providers.extractor import SlotExtractor
from tripvoice.providers.transcriber import HttpTranscriber
from tripvoice.runtime_state import notification_hub, session_store

logger = logging.getLogger(__name__)

_orchestrator: Optional[SessionOrchestrator] = None


def build_orchestrator() -> SessionOrchestrator:
    logger.info(
        "Building orchestrator (store=%s, ttl=%ss, models=%s)",
        session_store.backend,
        settings.session_ttl_s,
        settings.extractor_model_candidates,
    )
    return SessionOrchestrator(
        store=session_store,
        transcriber=HttpTranscriber(),
        extractor=SlotExtractor(),
        dispatcher=ResponseDispatcher(notification_hub),
    )


def get_orchestrator() -> SessionOrchestrator:
    """FastAPI dependency: the process-wide orchestrator, built on first use."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = build_orchestrator()
    return _orchestrator
