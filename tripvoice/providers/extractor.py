# tripvoice/providers/extractor.py
# -*- coding: utf-8 -*-
"""
Trip Voice Server — Slot extractor (OpenRouter-compatible)
----------------------------------------------------------
This module is the ONLY place that knows how to ask a language model for
slot values.

Responsibilities:
- Build the prompt from prompts/extractor_prompt.txt (today's date, the
  current TripRecord, the caller's transcript).
- Call each model in settings.extractor_model_candidates in priority order
  until one answers.
- Return the parsed JSON object as an ExtractionResult.

The payload is NOT trusted here. Domain clamping and merging happen in
core/reducer.py.

Authoritative response schema: the TripRecord fields without `user`, plus
optional `agentResponse`, `isGreeting` and `isGeneralQuery`.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from zoneinfo import ZoneInfo

import requests

from tripvoice.core.config import settings
from tripvoice.core.errors import ExtractionFailed, ExtractionMalformed
from tripvoice.core.reducer import extract_json_object
from tripvoice.core.types import ExtractionResult
from tripvoice.models.trip_record import TripRecord
from tripvoice.utils import read_text_safely

logger = logging.getLogger(__name__)

PROMPT_FILE = "extractor_prompt.txt"

_PROMPT_CACHE: Dict[str, str] = {}


class ModelCallError(Exception):
    """One model failed in a recoverable way; try the next candidate."""


# ---------------------------------------------------------------------------
# Prompt helpers
# ---------------------------------------------------------------------------


def _read_prompt_template() -> str:
    if PROMPT_FILE in _PROMPT_CACHE:
        return _PROMPT_CACHE[PROMPT_FILE]

    path = settings.prompts_dir / PROMPT_FILE
    text = read_text_safely(path, default="") or ""
    if not text.strip():
        logger.warning("Prompt file not found or empty: %s", path)
        text = (
            "TODAY_DATE: {today}\n"
            "Extract cab trip fields as a JSON object.\n"
            "CURRENT TRIP STATE:\n{state}\n"
            'USER MESSAGE:\n"{transcript}"\n'
        )
    _PROMPT_CACHE[PROMPT_FILE] = text
    return text


def today_label(tz_name: Optional[str] = None, now: Optional[datetime] = None) -> str:
    """Current local time in the prompt's date format."""
    zone = ZoneInfo(tz_name or settings.timezone)
    current = now.astimezone(zone) if now is not None else datetime.now(zone)
    return current.strftime("%d/%m/%Y %I:%M %p")


def build_prompt(transcript: str, previous: TripRecord, today: Optional[str] = None) -> str:
    state = previous.to_json_dict()
    state.pop("user", None)
    state.pop("agentResponse", None)

    return _read_prompt_template().format(
        today=today or today_label(),
        state=json.dumps(state, ensure_ascii=False, indent=2),
        transcript=transcript.replace('"', "'"),
    )


def _build_payload(prompt: str, model_name: str) -> Dict[str, Any]:
    return {
        "model": model_name,
        "messages": [{"role": "user", "content": prompt}],
        "temperature": 0.0,
        "max_tokens": settings.extractor_max_tokens,
        "response_format": {"type": "json_object"},
    }


# ---------------------------------------------------------------------------
# Model call
# ---------------------------------------------------------------------------


def call_extractor_model(prompt: str, model_name: str) -> str:
    """
    Call one chat-completions model and return the assistant's text.

    Raises
    ------
    ModelCallError
        If the HTTP/JSON fails or the reply is empty.
    """
    headers = {
        "Authorization": f"Bearer {settings.extractor_api_key}",
        "Content-Type": "application/json",
    }

    try:
        resp = requests.post(
            settings.extractor_base_url,
            headers=headers,
            json=_build_payload(prompt, model_name),
            timeout=settings.extractor_timeout_s,
        )
    except requests.RequestException as exc:
        raise ModelCallError(f"HTTP error: {exc}") from exc

    if resp.status_code != 200:
        text_preview = resp.text[:200].replace("\n", " ")
        raise ModelCallError(f"HTTP {resp.status_code}: {text_preview}")

    try:
        data = resp.json()
    except ValueError as exc:
        raise ModelCallError("non-JSON response envelope") from exc

    try:
        # OpenAI/OpenRouter-style: choices[0].message.content
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ModelCallError("response missing choices[0].message.content") from exc

    if not isinstance(content, str) or not content.strip():
        raise ModelCallError("empty content")

    return content.strip()


class SlotExtractor:
    """
    Extraction capability used by the orchestrator.

    `classify` is blocking; the orchestrator runs it in a worker thread and
    enforces the turn deadline around it.
    """

    def __init__(self, models: Optional[List[str]] = None) -> None:
        self.models = list(models or settings.extractor_model_candidates)

    def classify(self, transcript: str, previous: TripRecord) -> ExtractionResult:
        if not settings.extractor_api_key:
            raise ExtractionFailed("Extractor API key is missing.")
        if not self.models:
            raise ExtractionFailed("No extractor models configured.")

        prompt = build_prompt(transcript, previous)

        errors: List[str] = []
        for model_name in self.models:
            try:
                text = call_extractor_model(prompt, model_name)
            except ModelCallError as exc:
                logger.warning("Extractor model %s failed: %s", model_name, exc)
                errors.append(f"{model_name}: {exc}")
                continue

            payload = extract_json_object(text)
            if payload is None:
                raise ExtractionMalformed(
                    f"Model {model_name} did not return a JSON object."
                )

            logger.info("Extractor ok: model=%s keys=%s", model_name, sorted(payload))
            return ExtractionResult(payload=payload, model=model_name, raw_text=text)

        raise ExtractionFailed("All extractor models failed: " + "; ".join(errors))
