# tripvoice/utils/__init__.py
# -*- coding: utf-8 -*-
"""
Trip Voice Server — Utility toolbox
-----------------------------------
Shared helpers used across the server:

- file_io   : safe text/asset reads
- logging   : central logging configuration, per-turn session tag
- timers    : stage timing for turns

    from tripvoice.utils import setup_logging, get_logger, bind_session, Stopwatch
"""

from __future__ import annotations

from .file_io import (  # noqa: F401
    read_text_safely,
    resolve_asset_path,
)

from .logging import (  # noqa: F401
    bind_session,
    current_session,
    get_logger,
    setup_logging,
)

from .timers import (  # noqa: F401
    Stopwatch,
)
