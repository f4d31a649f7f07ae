# tripvoice/providers/transcriber.py
# -*- coding: utf-8 -*-
"""
Trip Voice Server — Speech-to-text provider
-------------------------------------------
This module is the ONLY place that knows how to talk to the STT service.

Contract of the service (multipart upload):

    POST {settings.stt_url}
        file=<audio bytes>
    200 -> {"id": "...", "transcription": "...", "chunks": 3}

Any transport error, non-200 answer, non-JSON body or empty transcription
raises TranscriptionFailed.
"""

from __future__ import annotations

import logging
from typing import Optional

import requests

from tripvoice.core.config import settings
from tripvoice.core.errors import TranscriptionFailed

logger = logging.getLogger(__name__)


class HttpTranscriber:
    """
    Blocking HTTP client for the STT service. The orchestrator runs it in a
    worker thread.

    Parameters
    ----------
    url:
        Transcription endpoint; defaults to settings.stt_url.
    timeout_s:
        Per-request HTTP timeout; defaults to settings.stt_timeout_s.
    """

    def __init__(self, url: Optional[str] = None, timeout_s: Optional[float] = None) -> None:
        self.url = url or settings.stt_url
        self.timeout_s = timeout_s if timeout_s is not None else settings.stt_timeout_s

    def transcribe(
        self,
        audio: bytes,
        filename: str = "audio.webm",
        content_type: str = "application/octet-stream",
    ) -> str:
        if not audio:
            raise TranscriptionFailed("Audio payload is empty.")

        try:
            resp = requests.post(
                self.url,
                headers={"accept": "application/json"},
                files={"file": (filename, audio, content_type)},
                timeout=self.timeout_s,
            )
        except requests.RequestException as exc:
            raise TranscriptionFailed(f"STT HTTP error: {exc}") from exc

        if resp.status_code != 200:
            text_preview = resp.text[:200].replace("\n", " ")
            raise TranscriptionFailed(f"STT HTTP {resp.status_code}: {text_preview}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise TranscriptionFailed("STT returned non-JSON response.") from exc

        transcription = data.get("transcription") if isinstance(data, dict) else None
        if not isinstance(transcription, str) or not transcription.strip():
            raise TranscriptionFailed("STT returned no transcription.")

        logger.info(
            "STT ok: id=%s chunks=%s chars=%d",
            data.get("id"),
            data.get("chunks"),
            len(transcription),
        )
        return transcription.strip()
