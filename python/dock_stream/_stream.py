# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Stream demultiplexing for logs, attach and exec output.

When no pseudo-terminal is allocated the engine multiplexes stdin echo,
stdout and stderr into one byte stream.  Each frame has an 8-byte header:
  - byte 0: stream type (0 = stdin, 1 = stdout, 2 = stderr)
  - bytes 1-3: padding (zero)
  - bytes 4-7: payload length (big-endian uint32)

With a pseudo-terminal the engine sends raw bytes with no framing at all,
so the caller must say which shape to expect.
"""

from __future__ import annotations

import dataclasses
import struct
from typing import TYPE_CHECKING

from dock_stream.errors import FrameError
from dock_stream.types import Frame, StreamSource

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, AsyncIterable, Callable

HEADER_SIZE = 8
_HEADER_FORMAT = ">BxxxI"  # 1 byte type, 3 padding, 4 byte length
_KNOWN_SOURCES = frozenset(int(s) for s in StreamSource)


def parse_stream_header(header: bytes, offset: int = 0) -> tuple[StreamSource, int]:
    """Parse an 8-byte stream frame header.

    Args:
        header: Exactly ``HEADER_SIZE`` bytes.
        offset: Stream position of the header, reported in errors.

    Returns:
        Tuple of (stream source, payload length).

    Raises:
        FrameError: If the stream tag is not stdin, stdout or stderr.

    """
    stream_type, payload_length = struct.unpack(_HEADER_FORMAT, header)
    if stream_type not in _KNOWN_SOURCES:
        msg = f"unknown stream tag {stream_type}"
        raise FrameError(msg, offset)
    return StreamSource(stream_type), payload_length


async def demux_frames(chunks: AsyncIterable[bytes]) -> AsyncGenerator[Frame, None]:
    """Parse multiplexed frames from a chunked byte source.

    Transport chunk boundaries may not align with frame boundaries, so we
    accumulate data and parse complete frames from it.
    """
    buf = bytearray()
    offset = 0
    async for chunk in chunks:
        buf.extend(chunk)

        # Parse all complete frames from the accumulated buffer
        while len(buf) >= HEADER_SIZE:
            source, payload_length = parse_stream_header(bytes(buf[:HEADER_SIZE]), offset)
            total_frame = HEADER_SIZE + payload_length
            if len(buf) < total_frame:
                break
            payload = bytes(buf[HEADER_SIZE:total_frame])
            del buf[:total_frame]
            offset += total_frame
            yield Frame(source, payload)

    if len(buf) >= HEADER_SIZE:
        _, payload_length = parse_stream_header(bytes(buf[:HEADER_SIZE]), offset)
        missing = payload_length - (len(buf) - HEADER_SIZE)
        msg = f"stream ended mid-payload ({missing} of {payload_length} bytes missing)"
        raise FrameError(msg, offset)
    if buf:
        msg = f"stream ended mid-header ({len(buf)} of {HEADER_SIZE} bytes)"
        raise FrameError(msg, offset)


async def raw_frames(chunks: AsyncIterable[bytes]) -> AsyncGenerator[Frame, None]:
    """Pass a pseudo-terminal stream through as stdout frames."""
    async for chunk in chunks:
        if chunk:
            yield Frame(StreamSource.STDOUT, bytes(chunk))


async def raw_bytes(chunks: AsyncIterable[bytes]) -> AsyncGenerator[bytes, None]:
    """Yield transport chunks unchanged, for tar and other binary downloads."""
    async for chunk in chunks:
        if chunk:
            yield bytes(chunk)


def frame_decoder(
    *,
    tty: bool,
) -> Callable[[AsyncIterable[bytes]], AsyncGenerator[Frame, None]]:
    """Return the frame decoder matching the response's terminal mode."""
    return raw_frames if tty else demux_frames


@dataclasses.dataclass
class DemuxResult:
    """Accumulated output of a demultiplexed stream."""

    stdout_bytes: bytes = b""
    stderr_bytes: bytes = b""
    truncated: bool = False

    def stdout_text(self) -> str:
        """Decode stdout bytes to string."""
        return self.stdout_bytes.decode("utf-8", errors="replace")

    def stderr_text(self) -> str:
        """Decode stderr bytes to string."""
        return self.stderr_bytes.decode("utf-8", errors="replace")


async def collect_output(
    frames: AsyncIterable[Frame],
    max_output: int = 10 * 1024 * 1024,
) -> DemuxResult:
    """Fold a frame sequence into separate stdout/stderr buffers.

    Args:
        frames: Frames from :func:`demux_frames` or :func:`raw_frames`.
        max_output: Maximum total bytes to accumulate before truncating.

    Returns:
        DemuxResult with stdout and stderr bytes.  Stdin echo is dropped.

    """
    stdout_parts: list[bytes] = []
    stderr_parts: list[bytes] = []
    total_bytes = 0
    truncated = False

    async for frame in frames:
        if frame.source == StreamSource.STDIN or not frame.payload:
            continue

        payload = frame.payload
        if total_bytes + len(payload) > max_output:
            truncated = True
            payload = payload[: max_output - total_bytes]

        total_bytes += len(payload)
        if frame.source == StreamSource.STDOUT:
            stdout_parts.append(payload)
        else:
            stderr_parts.append(payload)

        if truncated:
            break

    return DemuxResult(
        stdout_bytes=b"".join(stdout_parts),
        stderr_bytes=b"".join(stderr_parts),
        truncated=truncated,
    )
