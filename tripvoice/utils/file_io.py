# tripvoice/utils/file_io.py
# -*- coding: utf-8 -*-
"""
Trip Voice Server — file_io utilities
-------------------------------------
Small, tolerant helpers for the files the server reads at runtime:
prompt templates and pre-recorded audio assets.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def read_text_safely(
    path: Path,
    default: Optional[str] = None,
    *,
    strip: bool = False,
) -> Optional[str]:
    """
    Read a UTF-8 text file and return its content.

    - On failure, logs and returns `default`.
    - If strip=True, leading/trailing whitespace is removed.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.warning("read_text_safely: failed to read %s: %s", path, exc)
        return default

    return text.strip() if strip else text


def resolve_asset_path(base_dir: Path, filename: str) -> Optional[Path]:
    """
    Resolve `filename` inside `base_dir`.

    Returns None if the name escapes the directory (e.g. "../x") or the
    file does not exist.
    """
    base = base_dir.resolve()
    try:
        candidate = (base / filename).resolve()
    except (OSError, ValueError) as exc:
        logger.warning("resolve_asset_path: bad name %r: %s", filename, exc)
        return None

    if candidate.parent != base:
        logger.warning("resolve_asset_path: rejected %r (outside %s)", filename, base)
        return None
    if not candidate.is_file():
        return None
    return candidate
