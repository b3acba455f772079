# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Incremental decoding of concatenated JSON documents.

Pull, build, push and event endpoints answer with a chunked body carrying
one JSON object per progress update.  The engine may flush an object
mid-write or batch several objects into a single flush, so chunk
boundaries say nothing about document boundaries.
"""

from __future__ import annotations

import codecs
import json
import re
import string
from typing import TYPE_CHECKING, Any

from dock_stream.errors import DecodeError

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, AsyncIterable

_WHITESPACE = re.compile(r"[ \t\n\r]*")
_FRAGMENT_LIMIT = 64
_NUMBER_TAIL = re.compile(r"[0-9.eE+\-]*")
_LITERALS = ("true", "false", "null", "NaN", "Infinity", "-Infinity")


async def decode_json_stream(chunks: AsyncIterable[bytes]) -> AsyncGenerator[Any, None]:
    """Yield each complete JSON value found in a chunked byte source.

    Raises:
        DecodeError: If the source carries a malformed value, ends with
            bytes that are not a complete JSON value, or is not valid UTF-8.
            Values before the bad one have already been yielded.

    """
    decoder = json.JSONDecoder()
    utf8 = codecs.getincrementaldecoder("utf-8")()
    buf = ""
    offset = 0  # bytes consumed before buf[0]

    async for chunk in chunks:
        buf += _decode_utf8(utf8, chunk, offset, buf, final=False)
        while True:
            parsed = _next_value(decoder, buf, offset, final=False)
            if parsed is None:
                break
            value, end = parsed
            offset += len(buf[:end].encode("utf-8"))
            buf = buf[end:]
            yield value

    buf += _decode_utf8(utf8, b"", offset, buf, final=True)
    while True:
        parsed = _next_value(decoder, buf, offset, final=True)
        if parsed is None:
            break
        value, end = parsed
        offset += len(buf[:end].encode("utf-8"))
        buf = buf[end:]
        yield value

    start = _WHITESPACE.match(buf).end()  # type: ignore[union-attr]
    if start < len(buf):
        offset += len(buf[:start].encode("utf-8"))
        msg = "stream ended inside an incomplete or malformed JSON value"
        raise DecodeError(msg, offset, buf[start : start + _FRAGMENT_LIMIT])


def _next_value(
    decoder: json.JSONDecoder,
    buf: str,
    offset: int,
    *,
    final: bool,
) -> tuple[Any, int] | None:
    """Parse one value at the head of *buf*, or return ``None`` if there is none yet.

    Raises:
        DecodeError: If the bytes at the head of *buf* can never become a
            valid value, however many more bytes arrive.

    """
    start = _WHITESPACE.match(buf).end()  # type: ignore[union-attr]
    if start == len(buf):
        return None
    try:
        value, end = decoder.raw_decode(buf, start)
    except json.JSONDecodeError as exc:
        if _is_incomplete(exc, buf):
            return None
        position = offset + len(buf[: exc.pos].encode("utf-8"))
        raise DecodeError(
            f"malformed JSON value ({exc.msg})",
            position,
            buf[exc.pos : exc.pos + _FRAGMENT_LIMIT],
        ) from exc
    # A bare number followed only by number characters may still grow.
    if not final and _is_number(value) and _NUMBER_TAIL.fullmatch(buf, end):
        return None
    return value, end


def _is_incomplete(exc: json.JSONDecodeError, buf: str) -> bool:
    """Return True if the parse failed only because *buf* stops too early."""
    if exc.pos >= len(buf) or exc.msg.startswith("Unterminated string"):
        return True
    rest = buf[exc.pos :]
    if exc.msg.startswith("Invalid \\uXXXX escape"):
        # exc.pos points at the "u"; fewer than four hex digits have arrived
        return len(rest) <= 5 and all(c in string.hexdigits for c in rest[1:])
    if any(literal.startswith(rest) for literal in _LITERALS):
        return True
    # "1." or "2e-" inside a container: the number may still grow
    return _NUMBER_TAIL.fullmatch(rest) is not None


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _decode_utf8(
    utf8: codecs.IncrementalDecoder,
    chunk: bytes,
    offset: int,
    buf: str,
    *,
    final: bool,
) -> str:
    try:
        return utf8.decode(chunk, final=final)
    except UnicodeDecodeError as exc:
        position = offset + len(buf.encode("utf-8"))
        msg = f"invalid UTF-8 in JSON stream ({exc.reason})"
        raise DecodeError(msg, position) from exc
