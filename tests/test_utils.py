# tests/test_utils.py
# -*- coding: utf-8 -*-
from __future__ import annotations

import asyncio
import logging

import pytest

from tripvoice.utils import (
    Stopwatch,
    bind_session,
    current_session,
    read_text_safely,
    resolve_asset_path,
)
from tripvoice.utils.logging import SessionTagFilter


def test_read_text_safely(tmp_path):
    path = tmp_path / "prompt.txt"
    path.write_text("  hello\n", encoding="utf-8")

    assert read_text_safely(path) == "  hello\n"
    assert read_text_safely(path, strip=True) == "hello"
    assert read_text_safely(tmp_path / "missing.txt", default="x") == "x"


def test_resolve_asset_path(tmp_path):
    (tmp_path / "greet.mp3").write_bytes(b"ID3")
    outside = tmp_path.parent / "outside.mp3"

    assert resolve_asset_path(tmp_path, "greet.mp3") == (tmp_path / "greet.mp3").resolve()
    assert resolve_asset_path(tmp_path, "nope.mp3") is None
    assert resolve_asset_path(tmp_path, f"../{outside.name}") is None


def test_stopwatch_logs_duration(caplog):
    logger = logging.getLogger("tests.stopwatch")
    with caplog.at_level(logging.INFO, logger="tests.stopwatch"):
        with Stopwatch("extraction k", logger) as sw:
            pass

    assert sw.elapsed >= 0
    assert "extraction k took" in caplog.text


def test_stopwatch_async_marks_failures(caplog):
    logger = logging.getLogger("tests.stopwatch")

    async def scenario():
        async with Stopwatch("transcription k", logger):
            raise RuntimeError("boom")

    with caplog.at_level(logging.INFO, logger="tests.stopwatch"):
        with pytest.raises(RuntimeError):
            asyncio.run(scenario())

    assert "transcription k failed after" in caplog.text


def test_session_tag_is_bound_for_the_block():
    record = logging.LogRecord("tests", logging.INFO, __file__, 1, "msg", None, None)
    tag = SessionTagFilter()

    assert current_session() == "-"
    with bind_session("trip_state:9999"):
        assert tag.filter(record)
        assert record.session == "trip_state:9999"
    assert current_session() == "-"


def test_session_tag_reaches_worker_threads():
    async def scenario():
        with bind_session("trip_state:1"):
            return await asyncio.to_thread(current_session)

    assert asyncio.run(scenario()) == "trip_state:1"
