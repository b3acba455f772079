"""Shared fixtures for dock-stream tests.

Most transport tests talk to :class:`FakeDaemon`, an in-process HTTP server on
a Unix socket that records requests and replays scripted responses.  Tests
marked ``requires_engine`` run against a real Podman or Docker socket.
"""

from __future__ import annotations

import asyncio
import dataclasses
import http
import os
import pathlib
import shutil
import struct
import tempfile
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, AsyncIterator


def _path_exists(path: pathlib.Path) -> bool:
    """Check if *path* exists, returning ``False`` on ``PermissionError``."""
    try:
        return path.exists()
    except PermissionError:
        return False


def _find_socket() -> str | None:
    """Detect an available container engine socket."""
    explicit = os.environ.get("DOCK_STREAM_SOCKET")
    if explicit and _path_exists(pathlib.Path(explicit)):
        return explicit

    xdg = os.environ.get("XDG_RUNTIME_DIR", f"/run/user/{os.getuid()}")
    candidates = [
        pathlib.Path(xdg) / "podman" / "podman.sock",
        pathlib.Path("/run/podman/podman.sock"),
        pathlib.Path("/var/run/docker.sock"),
    ]
    for candidate in candidates:
        if _path_exists(candidate):
            return str(candidate)
    return None


SOCKET_PATH = _find_socket()
HAS_ENGINE = SOCKET_PATH is not None

requires_engine = pytest.mark.skipif(
    not HAS_ENGINE,
    reason="No container engine socket found (Podman or Docker)",
)


@pytest.fixture
def socket_path() -> str:
    """Return the detected socket path, or skip the test."""
    if SOCKET_PATH is None:
        pytest.skip("No container engine socket found")
    return SOCKET_PATH


# -- helpers --


def make_frame(source: int, data: bytes) -> bytes:
    """Build a multiplexed stream frame."""
    return struct.pack(">BxxxI", source, len(data)) + data


async def chunks(*parts: bytes) -> AsyncGenerator[bytes, None]:
    """Yield *parts* one at a time, like a transport would."""
    for part in parts:
        yield part


def split_every(data: bytes, size: int) -> list[bytes]:
    """Split *data* into pieces of *size* bytes (the last may be shorter)."""
    return [data[i : i + size] for i in range(0, len(data), size)]


# -- fake engine --


@dataclasses.dataclass
class RecordedRequest:
    """A request as received by the fake engine."""

    method: str
    target: str
    headers: dict[str, str]
    body: bytes
    stdin: bytes = b""

    @property
    def path(self) -> str:
        return self.target.split("?", 1)[0]

    @property
    def query(self) -> str:
        return self.target.partition("?")[2]


@dataclasses.dataclass
class FakeResponse:
    """A scripted response.

    ``parts`` are written one at a time with a flush in between; with
    ``chunked`` each part becomes one transfer-encoding chunk.  Without
    ``chunked`` a Content-Length header is sent unless ``until_eof`` is set.
    ``finish=False`` leaves a chunked body unterminated.  ``hold_open`` keeps
    the connection open until the client closes it.  ``raw`` replaces the
    whole response with the given bytes.
    """

    status: int = 200
    parts: list[bytes] = dataclasses.field(default_factory=list)
    headers: dict[str, str] = dataclasses.field(default_factory=dict)
    chunked: bool = False
    until_eof: bool = False
    finish: bool = True
    hold_open: bool = False
    raw: bytes | None = None

    async def write(self, writer: asyncio.StreamWriter) -> None:
        if self.raw is not None:
            writer.write(self.raw)
            await writer.drain()
            return
        try:
            reason = http.HTTPStatus(self.status).phrase
        except ValueError:
            reason = "Unknown"
        head = [f"HTTP/1.1 {self.status} {reason}"]
        head.extend(f"{name}: {value}" for name, value in self.headers.items())
        if self.chunked:
            head.append("Transfer-Encoding: chunked")
        elif not self.until_eof:
            head.append(f"Content-Length: {sum(len(p) for p in self.parts)}")
        writer.write(("\r\n".join(head) + "\r\n\r\n").encode("latin-1"))
        await writer.drain()

        for part in self.parts:
            if self.chunked:
                writer.write(f"{len(part):x}\r\n".encode("ascii") + part + b"\r\n")
            else:
                writer.write(part)
            await writer.drain()
            await asyncio.sleep(0.01)

        if self.chunked and self.finish and not self.hold_open:
            writer.write(b"0\r\n\r\n")
            await writer.drain()


class FakeDaemon:
    """Minimal container engine stand-in serving queued responses in order."""

    def __init__(self, path: str) -> None:
        self.path = path
        self.requests: list[RecordedRequest] = []
        self._responses: list[FakeResponse] = []
        self._writers: set[asyncio.StreamWriter] = set()
        self._server: asyncio.AbstractServer | None = None

    @property
    def uri(self) -> str:
        return f"unix://{self.path}"

    def respond(self, status: int = 200, *parts: bytes, **kwargs: object) -> FakeResponse:
        """Queue a response; keyword arguments are :class:`FakeResponse` fields."""
        response = FakeResponse(status, list(parts), **kwargs)  # type: ignore[arg-type]
        self._responses.append(response)
        return response

    def respond_json(self, data: str, status: int = 200) -> FakeResponse:
        headers = {"Content-Type": "application/json"}
        return self.respond(status, data.encode("utf-8"), headers=headers)

    async def start(self) -> None:
        self._server = await asyncio.start_unix_server(self._handle, path=self.path)

    async def stop(self) -> None:
        for writer in list(self._writers):
            writer.close()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._writers.add(writer)
        try:
            head = await reader.readuntil(b"\r\n\r\n")
            lines = head.decode("latin-1").split("\r\n")
            method, target, _ = lines[0].split(" ", 2)
            headers: dict[str, str] = {}
            for line in lines[1:]:
                if ":" in line:
                    name, value = line.split(":", 1)
                    headers[name.strip().lower()] = value.strip()
            length = int(headers.get("content-length", "0"))
            body = await reader.readexactly(length) if length else b""
            recorded = RecordedRequest(method, target, headers, body)
            self.requests.append(recorded)

            if self._responses:
                response = self._responses.pop(0)
            else:
                response = FakeResponse(404, [b'{"message":"no response queued"}'])
            await response.write(writer)
            if response.hold_open:
                # Whatever the client sends after the response, up to its half-close
                recorded.stdin = await reader.read()
        except (asyncio.IncompleteReadError, ConnectionError):
            pass
        finally:
            self._writers.discard(writer)
            writer.close()


@pytest.fixture
async def daemon() -> AsyncIterator[FakeDaemon]:
    """Start a fake engine on a short-path Unix socket."""
    directory = tempfile.mkdtemp(prefix="ds-")
    fake = FakeDaemon(os.path.join(directory, "engine.sock"))  # noqa: PTH118
    await fake.start()
    try:
        yield fake
    finally:
        await fake.stop()
        shutil.rmtree(directory, ignore_errors=True)
