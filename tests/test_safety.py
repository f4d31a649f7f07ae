# tests/test_safety.py
# -*- coding: utf-8 -*-
from __future__ import annotations

from tripvoice.core.safety import (
    MAX_TRANSCRIPT_CHARS,
    clamp_reply_text,
    sanitize_transcript,
)


def test_transcript_whitespace_and_control_chars_are_cleaned():
    result = sanitize_transcript("  mai kal\x00 indore \n se   rewa\x07 jaunga ")
    assert result.sanitized == "mai kal indore se rewa jaunga"
    assert not result.truncated
    assert not result.too_short


def test_empty_transcript_is_too_short():
    assert sanitize_transcript(None).too_short
    assert sanitize_transcript(" \x00\x01 ").too_short


def test_long_transcript_is_truncated():
    result = sanitize_transcript("a" * (MAX_TRANSCRIPT_CHARS + 50))
    assert result.truncated
    assert len(result.sanitized) == MAX_TRANSCRIPT_CHARS


def test_clamp_reply_text():
    assert clamp_reply_text("short") == "short"
    assert clamp_reply_text("abcdefghij", limit=8) == "abcde..."
    assert clamp_reply_text("abcdef", limit=2) == "ab"
    assert clamp_reply_text("abc", limit=0) == ""
