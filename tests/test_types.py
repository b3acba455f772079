"""Tests for dock-stream data types."""

from __future__ import annotations

import dataclasses

import dock_stream
import pytest
from dock_stream.types import ExecResult, Frame, StreamSource


def test_exec_result_defaults() -> None:
    result = ExecResult(exit_code=0)
    assert result.stdout == ""
    assert result.stderr == ""
    assert result.duration_ms == 0.0
    assert result.truncated is False


def test_exec_result_ok() -> None:
    assert ExecResult(exit_code=0, stdout="hello\n").ok is True
    assert ExecResult(exit_code=1, stderr="error\n").ok is False
    assert ExecResult(exit_code=-1).ok is False


def test_exec_result_is_frozen() -> None:
    result = ExecResult(exit_code=0)
    with pytest.raises(dataclasses.FrozenInstanceError):
        result.exit_code = 1  # type: ignore[misc]


def test_stream_source_values_match_header_tags() -> None:
    assert [int(s) for s in StreamSource] == [0, 1, 2]
    assert StreamSource(2) is StreamSource.STDERR


def test_frame_equality_and_text() -> None:
    frame = Frame(StreamSource.STDOUT, b"caf\xc3\xa9")
    assert frame == Frame(StreamSource.STDOUT, b"caf\xc3\xa9")
    assert frame.text() == "café"


def test_public_exports() -> None:
    for name in dock_stream.__all__:
        assert hasattr(dock_stream, name), name
