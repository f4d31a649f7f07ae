# tripvoice/core/config.py
# -*- coding: utf-8 -*-
"""
Trip Voice Server — Configuration
---------------------------------
Central configuration for the trip booking voice server, including:

- app metadata
- API host/port
- filesystem paths (prompts, pre-recorded audio assets)
- session store (Redis or in-memory) and session TTL
- speech-to-text service
- slot extractor (OpenRouter-compatible chat completions)
- notification / audio URLs

"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

# This file is: <repo>/tripvoice/core/config.py
APP_DIR: Path = Path(__file__).resolve().parents[1]   # .../tripvoice
ROOT_DIR: Path = APP_DIR.parent                       # .../<repo>

PROMPTS_DIR: Path = APP_DIR / "prompts"
AUDIO_DIR: Path = APP_DIR / "audio"


# ---------------------------------------------------------------------------
# Settings model
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """
    Global configuration for the trip voice server.

    This class is instantiated once at import time as `settings`
    and used everywhere in the codebase.
    """

    model_config = SettingsConfigDict(
        env_file=ROOT_DIR / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- App / server basics -----------------------------------------------
    app_name: str = "Trip Voice Server"
    environment: Literal["development", "production", "test"] = "development"
    debug: bool = True

    api_host: str = "0.0.0.0"
    api_port: int = 3000

    # --- Filesystem paths ---------------------------------------------------
    prompts_dir: Path = PROMPTS_DIR
    audio_dir: Path = AUDIO_DIR

    # --- Session store ------------------------------------------------------
    # "redis" in production, "memory" for local dev and tests.
    store_backend: Literal["redis", "memory"] = "redis"
    redis_url: str = "redis://localhost:6379/0"

    # Inactivity window; renewed on every successful save.
    session_ttl_s: int = 300
    store_timeout_s: float = 2.0

    # --- Speech-to-text -----------------------------------------------------
    stt_url: str = Field(
        default="http://localhost:8000/transcribe",
        description="Multipart STT endpoint (env: STT_URL).",
    )
    stt_timeout_s: float = 20.0

    # --- Slot extractor (OpenRouter-compatible) -----------------------------
    extractor_base_url: str = "https://openrouter.ai/api/v1/chat/completions"

    # ENV: EXTRACTOR_API_KEY=sk-or-v1-...
    extractor_api_key: str | None = Field(
        default=None,
        description="API key for the extraction model provider (env: EXTRACTOR_API_KEY).",
    )

    # Priority-ordered model list (first → last).
    extractor_model_candidates: list[str] = [
        "google/gemini-2.5-flash",
        "google/gemini-2.5-flash-lite",
    ]
    extractor_timeout_s: float = 15.0
    extractor_max_tokens: int = 1024

    # Dates in the prompt ("TODAY_DATE") are rendered in this zone.
    timezone: str = "Asia/Kolkata"

    # --- Notification channel ----------------------------------------------
    broadcast_timeout_s: float = 2.0
    # Clients fetch pre-recorded assets from here.
    audio_base_url: str = "http://localhost:3000/audio"


# Single global settings instance used by the rest of the app.
settings = Settings()
