# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Raw HTTP/1.1 over a single engine connection.

Requests are serialized by hand and responses are parsed up to the end of
the headers; the body stays on the socket and is exposed as a streaming
handle so unbounded responses (logs, events, pull progress) can be consumed
lazily.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import pathlib
import urllib.parse
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Generic, TypeVar, Union

from dock_stream._tarball import pack_directory
from dock_stream.errors import SocketCommunicationError, SocketError, error_for_status

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, AsyncIterator, Callable
    from types import TracebackType

    from typing_extensions import Self

    from dock_stream._connector import Connection, Connector

logger = logging.getLogger(__name__)

T = TypeVar("T")

READ_SIZE = 65536
_EMPTY_BODY_STATUSES = frozenset({204, 304})
_IO_ERRORS = (OSError, asyncio.IncompleteReadError, ValueError)

QueryParams = Union[Mapping[str, object], Sequence[tuple[str, object]], None]
RequestBody = Union[bytes, pathlib.Path, None]


# ---------------------------------------------------------------------------
# Request serialization
# ---------------------------------------------------------------------------


def encode_query(params: QueryParams) -> str:
    """Encode query parameters, keeping order and repeated keys.

    Booleans become ``true``/``false`` and ``None`` values are dropped.
    """
    if not params:
        return ""
    items = params.items() if isinstance(params, Mapping) else params
    pairs: list[tuple[str, str]] = []
    for key, value in items:
        if value is None:
            continue
        if isinstance(value, bool):
            pairs.append((key, "true" if value else "false"))
        else:
            pairs.append((key, str(value)))
    return urllib.parse.urlencode(pairs)


def request_target(path: str, query: QueryParams = None) -> str:
    """Join an absolute path and its encoded query string."""
    encoded = encode_query(query)
    return f"{path}?{encoded}" if encoded else path


def _prepare_body(body: RequestBody, content_type: str | None) -> tuple[bytes | None, str]:
    """Resolve the body bytes and content type; directories are packed as tar."""
    if isinstance(body, pathlib.Path):
        return pack_directory(body), content_type or "application/x-tar"
    return body, content_type or "application/json"


async def send_request(  # noqa: PLR0913
    connection: Connection,
    method: str,
    path: str,
    *,
    host: str,
    query: QueryParams = None,
    headers: Mapping[str, str] | None = None,
    body: RequestBody = None,
    content_type: str | None = None,
    upgrade: bool = False,
) -> None:
    """Write an HTTP/1.1 request to the connection."""
    body_bytes, resolved_type = _prepare_body(body, content_type)
    lines = [
        f"{method} {request_target(path, query)} HTTP/1.1",
        f"Host: {host}",
    ]
    if headers:
        lines.extend(f"{name}: {value}" for name, value in headers.items())
    if body_bytes is not None:
        lines.append(f"Content-Type: {resolved_type}")
        lines.append(f"Content-Length: {len(body_bytes)}")
    if upgrade:
        lines.append("Connection: Upgrade")
        lines.append("Upgrade: tcp")
    else:
        lines.append("Connection: close")
    lines.append("")
    lines.append("")

    header_bytes = "\r\n".join(lines).encode("latin-1")
    writer = connection.writer
    try:
        writer.write(header_bytes)
        if body_bytes is not None:
            writer.write(body_bytes)
        await writer.drain()
    except OSError as exc:
        raise SocketCommunicationError(f"write failed: {exc}") from exc


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------


async def _read_status_line(reader: asyncio.StreamReader) -> int:
    """Read the HTTP status line and return the status code."""
    line = await reader.readline()
    if not line:
        msg = "empty response"
        raise SocketCommunicationError(msg)
    parts = line.decode("ascii", errors="replace").split(None, 2)
    if len(parts) < 2 or not parts[1].isdigit():  # noqa: PLR2004
        msg = f"malformed status line: {line!r}"
        raise SocketCommunicationError(msg)
    return int(parts[1])


async def _read_headers(reader: asyncio.StreamReader) -> dict[str, str]:
    """Read HTTP headers until the blank line."""
    headers: dict[str, str] = {}
    while True:
        line = await reader.readline()
        stripped = line.strip()
        if not stripped:
            break
        decoded = stripped.decode("latin-1")
        if ":" in decoded:
            key, value = decoded.split(":", 1)
            headers[key.strip().lower()] = value.strip()
    return headers


async def _iter_exact(
    reader: asyncio.StreamReader,
    length: int,
    chunk_size: int,
) -> AsyncGenerator[bytes, None]:
    """Yield exactly ``length`` bytes in transport-sized pieces."""
    remaining = length
    while remaining > 0:
        data = await reader.read(min(remaining, chunk_size))
        if not data:
            msg = f"connection closed with {remaining} of {length} body bytes unread"
            raise SocketCommunicationError(msg)
        remaining -= len(data)
        yield data


async def _iter_chunked(
    reader: asyncio.StreamReader,
    chunk_size: int,
) -> AsyncGenerator[bytes, None]:
    """Yield the payload of a chunked transfer-encoded body."""
    while True:
        size_line = await reader.readline()
        if not size_line:
            msg = "connection closed inside chunked body"
            raise SocketCommunicationError(msg)
        size_str = size_line.split(b";", 1)[0].strip().decode("ascii", errors="replace")
        if not size_str:
            continue
        try:
            size = int(size_str, 16)
        except ValueError as exc:
            msg = f"malformed chunk size line: {size_line!r}"
            raise SocketCommunicationError(msg) from exc
        if size == 0:
            # Skip trailers up to the final blank line
            while True:
                trailer = await reader.readline()
                if not trailer.strip():
                    return
        async for data in _iter_exact(reader, size, chunk_size):
            yield data
        await reader.readline()  # trailing \r\n after chunk


async def _iter_until_eof(
    reader: asyncio.StreamReader,
    chunk_size: int,
) -> AsyncGenerator[bytes, None]:
    while True:
        data = await reader.read(chunk_size)
        if not data:
            return
        yield data


class BodyReader:
    """Forward-only handle on a response body still sitting on the socket."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        headers: Mapping[str, str],
        *,
        empty: bool = False,
        chunk_size: int = READ_SIZE,
    ) -> None:
        self._reader = reader
        self._headers = headers
        self._empty = empty
        self._chunk_size = chunk_size
        self._consumed = False

    @property
    def chunked(self) -> bool:
        return self._headers.get("transfer-encoding", "").lower() == "chunked"

    async def iter_chunks(self) -> AsyncGenerator[bytes, None]:
        """Yield body bytes as they arrive.  May only be consumed once."""
        if self._consumed:
            msg = "response body already consumed"
            raise RuntimeError(msg)
        self._consumed = True
        if self._empty:
            return

        if self.chunked:
            source = _iter_chunked(self._reader, self._chunk_size)
        elif "content-length" in self._headers:
            try:
                length = int(self._headers["content-length"])
            except ValueError as exc:
                msg = f"malformed Content-Length: {self._headers['content-length']!r}"
                raise SocketCommunicationError(msg) from exc
            source = _iter_exact(self._reader, length, self._chunk_size)
        else:
            source = _iter_until_eof(self._reader, self._chunk_size)

        try:
            async for data in source:
                yield data
        except _IO_ERRORS as exc:
            raise SocketCommunicationError(f"read failed: {exc}") from exc
        finally:
            await source.aclose()

    async def read(self) -> bytes:
        """Read the whole remaining body into memory."""
        return b"".join([data async for data in self.iter_chunks()])


@dataclasses.dataclass
class RawResponse:
    """Status and headers of a response whose body has not been read yet.

    Owns its connection; closing the response releases it.
    """

    status: int
    headers: dict[str, str]
    body: BodyReader
    connection: Connection

    @property
    def ok(self) -> bool:
        return self.status < 400  # noqa: PLR2004

    async def close(self) -> None:
        await self.connection.close()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


async def _exchange(  # noqa: PLR0913
    connection: Connection,
    host: str,
    method: str,
    path: str,
    *,
    query: QueryParams,
    headers: Mapping[str, str] | None,
    body: RequestBody,
    content_type: str | None,
    upgrade: bool,
) -> tuple[int, dict[str, str]]:
    """Send the request and read the response head, mapping I/O failures."""
    try:
        await send_request(
            connection,
            method,
            path,
            host=host,
            query=query,
            headers=headers,
            body=body,
            content_type=content_type,
            upgrade=upgrade,
        )
        status = await _read_status_line(connection.reader)
        response_headers = await _read_headers(connection.reader)
    except SocketError:
        raise
    except _IO_ERRORS as exc:
        raise SocketCommunicationError(str(exc)) from exc
    return status, response_headers


async def open_response(  # noqa: PLR0913
    connector: Connector,
    method: str,
    path: str,
    *,
    query: QueryParams = None,
    headers: Mapping[str, str] | None = None,
    body: RequestBody = None,
    content_type: str | None = None,
    upgrade: bool = False,
    chunk_size: int = READ_SIZE,
) -> RawResponse:
    """Make a request and return once the status line and headers arrived.

    Opens a new connection per call.  The caller owns the returned response
    and must close it (or use it as an async context manager).
    """
    connection = await connector.open()
    try:
        status, response_headers = await _exchange(
            connection,
            connector.host_header,
            method,
            path,
            query=query,
            headers=headers,
            body=body,
            content_type=content_type,
            upgrade=upgrade,
        )
    except BaseException:
        await connection.close()
        raise

    logger.debug("%s %s -> %d", method, request_target(path, query), status)
    empty = status in _EMPTY_BODY_STATUSES or method == "HEAD"
    reader = BodyReader(connection.reader, response_headers, empty=empty, chunk_size=chunk_size)
    return RawResponse(status, response_headers, reader, connection)


async def request(  # noqa: PLR0913
    connector: Connector,
    method: str,
    path: str,
    *,
    query: QueryParams = None,
    headers: Mapping[str, str] | None = None,
    body: RequestBody = None,
    content_type: str | None = None,
) -> tuple[int, dict[str, str], bytes]:
    """Make a request and return (status, headers, body) with the body read fully."""
    response = await open_response(
        connector,
        method,
        path,
        query=query,
        headers=headers,
        body=body,
        content_type=content_type,
    )
    async with response:
        data = await response.body.read()
    return response.status, response.headers, data


async def open_stream(  # noqa: PLR0913
    connector: Connector,
    method: str,
    path: str,
    decode: Callable[[AsyncIterator[bytes]], AsyncGenerator[T, None]],
    *,
    query: QueryParams = None,
    headers: Mapping[str, str] | None = None,
    body: RequestBody = None,
    content_type: str | None = None,
    upgrade: bool = False,
    chunk_size: int = READ_SIZE,
) -> ResponseStream[T]:
    """Make a request whose body is decoded lazily by *decode*.

    Raises:
        ApiError: The classified error if the engine answers 400 or above;
            the connection is released before raising.

    """
    response = await open_response(
        connector,
        method,
        path,
        query=query,
        headers=headers,
        body=body,
        content_type=content_type,
        upgrade=upgrade,
        chunk_size=chunk_size,
    )
    if not response.ok:
        async with response:
            data = await response.body.read()
        logger.debug("%s %s failed: HTTP %d", method, path, response.status)
        raise error_for_status(response.status, data)
    return ResponseStream(response, decode)


class ResponseStream(Generic[T]):
    """Lazy, forward-only sequence of decoded items from one response.

    The connection is released when the sequence is exhausted, when producing
    the next item fails, on :meth:`aclose`, or on leaving ``async with``.
    """

    def __init__(
        self,
        response: RawResponse,
        decode: Callable[[AsyncIterator[bytes]], AsyncGenerator[T, None]],
    ) -> None:
        self._response = response
        self._items = decode(response.body.iter_chunks())
        self._closed = False

    @property
    def status(self) -> int:
        return self._response.status

    @property
    def headers(self) -> dict[str, str]:
        return self._response.headers

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> T:
        if self._closed:
            raise StopAsyncIteration
        try:
            return await self._items.__anext__()
        except BaseException:
            await self.aclose()
            raise

    async def write(self, data: bytes) -> None:
        """Send bytes to the engine over a hijacked (attach) connection."""
        if self._closed:
            msg = "stream is closed"
            raise SocketCommunicationError(msg)
        writer = self._response.connection.writer
        try:
            writer.write(data)
            await writer.drain()
        except OSError as exc:
            raise SocketCommunicationError(f"write failed: {exc}") from exc

    async def close_write(self) -> None:
        """Half-close the connection, signalling end of stdin."""
        writer = self._response.connection.writer
        if not self._closed and writer.can_write_eof():
            writer.write_eof()

    async def aclose(self) -> None:
        """Stop decoding and release the connection."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._items.aclose()
        finally:
            await self._response.close()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
