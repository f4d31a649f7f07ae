# tripvoice/main.py
# -*- coding: utf-8 -*-
"""
Trip Voice Server — FastAPI application entrypoint
--------------------------------------------------
Wires everything together:

- Sets up central logging.
- Creates the FastAPI app (CORS open outside production; the browser
  client posts audio from another origin).
- Mounts routers:
    * POST /transcribe        (HTTP)      → audio turn
    * POST /turn              (HTTP)      → text turn
    * GET  /session/{phone}   (HTTP)      → current TripRecord
    * GET  /audio/{filename}  (HTTP)      → pre-recorded response assets
    * /ws/session/{phone}     (WebSocket) → turn notifications + text turns
- Closes the session store on shutdown.

Typical run command (dev):

    uvicorn tripvoice.main:app --host 0.0.0.0 --port 3000 --reload

"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tripvoice.core.config import settings
from tripvoice.routers.session import router as session_router
from tripvoice.routers.turn import router as turn_router
from tripvoice.routers.ws import router as ws_router
from tripvoice.runtime_state import session_store
from tripvoice.utils import get_logger, setup_logging


setup_logging(debug=settings.debug)
logger = get_logger(__name__)
logger.info(
    "Trip voice server starting (env=%s, store=%s, ttl=%ss)",
    settings.environment,
    settings.store_backend,
    settings.session_ttl_s,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await session_store.close()
    logger.info("Session store closed")


def create_app() -> FastAPI:
    """
    Application factory.

    Returns a configured FastAPI instance ready for uvicorn.
    """
    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    if settings.environment != "production":
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=False,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Content-Type"],
        )

    app.include_router(turn_router)
    app.include_router(session_router)
    app.include_router(ws_router)

    # ------------------------------------------------------------------
    # Meta / health endpoints
    # ------------------------------------------------------------------

    @app.get("/", tags=["meta"])
    async def root():
        return {
            "name": settings.app_name,
            "environment": settings.environment,
            "message": "Trip voice server is running.",
        }

    @app.get("/health", tags=["meta"])
    async def health_check():
        return {
            "status": "ok",
            "environment": settings.environment,
            "debug": settings.debug,
            "store_backend": settings.store_backend,
            "session_ttl_s": settings.session_ttl_s,
            "extractor_configured": bool(settings.extractor_api_key),
        }

    logger.info("FastAPI app created (env=%s)", settings.environment)
    return app


# ASGI app for uvicorn
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tripvoice.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=(settings.environment != "production"),
    )
