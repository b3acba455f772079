# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

from __future__ import annotations

import dataclasses
import enum


class StreamSource(enum.IntEnum):
    """Stream tag carried in byte 0 of a multiplexed frame header."""

    STDIN = 0
    STDOUT = 1
    STDERR = 2


@dataclasses.dataclass(frozen=True)
class Frame:
    """One demultiplexed unit of container output."""

    source: StreamSource
    payload: bytes

    def text(self) -> str:
        """Decode the payload as UTF-8, replacing invalid bytes."""
        return self.payload.decode("utf-8", errors="replace")


@dataclasses.dataclass(frozen=True)
class ExecResult:
    """Result of executing a command inside a container."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: float = 0.0
    truncated: bool = False

    @property
    def ok(self) -> bool:
        """Return True if the command exited successfully (exit code 0)."""
        return self.exit_code == 0
