# tripvoice/utils/logging.py
# -*- coding: utf-8 -*-
"""
Trip Voice Server — logging utilities
-------------------------------------
Process logging plus a per-turn session tag.

Every record carries a `session` attribute. Inside `bind_session(key)` it is
the caller's store key, elsewhere "-", so interleaved turns from different
callers can be told apart in one log stream:

    2026-11-12 12:26:03 [INFO] tripvoice.core.orchestrator [trip_state:9999]: ...

Third-party chatter (uvicorn access, urllib3, redis) is held at WARNING
unless TRIPVOICE_NOISY_LOG_LEVEL says otherwise.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(session)s]: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_NOISY_LOGGERS = ("uvicorn.access", "uvicorn.error", "httpx", "urllib3", "redis")

_current_session: ContextVar[str] = ContextVar("tripvoice_session", default="-")


class SessionTagFilter(logging.Filter):
    """Stamp `record.session` from the active turn, if any."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "session"):
            record.session = _current_session.get()
        return True


@contextmanager
def bind_session(session_key: str) -> Iterator[None]:
    """Tag log records emitted in this block (and tasks it spawns) with `session_key`."""
    token = _current_session.set(session_key)
    try:
        yield
    finally:
        _current_session.reset(token)


def current_session() -> str:
    return _current_session.get()


def setup_logging(
    *,
    debug: bool = False,
    level: Optional[int] = None,
) -> None:
    """
    Configure root logging for the server process.

    `level` wins over `debug`; otherwise DEBUG in development, INFO
    elsewhere. Safe to call more than once: later calls re-apply levels and
    make sure every root handler stamps the session tag.
    """
    base_level = level if level is not None else (logging.DEBUG if debug else logging.INFO)

    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=base_level, format=LOG_FORMAT, datefmt=DATE_FORMAT)

    root.setLevel(base_level)
    for handler in root.handlers:
        handler.setLevel(base_level)
        if not any(isinstance(f, SessionTagFilter) for f in handler.filters):
            handler.addFilter(SessionTagFilter())

    noisy_level = os.getenv("TRIPVOICE_NOISY_LOG_LEVEL", "WARNING")
    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(noisy_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
