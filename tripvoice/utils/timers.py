# tripvoice/utils/timers.py
# -*- coding: utf-8 -*-
"""
Trip Voice Server — timing utilities
------------------------------------
Stage timing for turns (transcription, extraction, store I/O).
"""

from __future__ import annotations

import logging
import time
from typing import Optional


class Stopwatch:
    """
    Context manager that logs how long a block took.

        with Stopwatch("extraction trip_state:9999", logger):
            ...

    logs:
        extraction trip_state:9999 took 0.842 s

    The duration is also kept on `.elapsed` for callers that report it.
    Works in both `with` and `async with` blocks.
    """

    def __init__(
        self,
        label: str,
        logger: Optional[logging.Logger] = None,
        level: int = logging.INFO,
    ) -> None:
        self.label = label
        self.logger = logger or logging.getLogger(__name__)
        self.level = level
        self.elapsed: float = 0.0
        self._start: float = 0.0

    def __enter__(self) -> "Stopwatch":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, exc_tb) -> None:
        self.elapsed = time.perf_counter() - self._start
        outcome = "failed after" if exc_type is not None else "took"
        self.logger.log(self.level, "%s %s %.3f s", self.label, outcome, self.elapsed)

    async def __aenter__(self) -> "Stopwatch":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc, exc_tb) -> None:
        self.__exit__(exc_type, exc, exc_tb)
