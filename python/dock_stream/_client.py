# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Entry point for talking to the container engine.

:class:`DockerClient` binds one endpoint and exposes the resource facades.
Each call opens its own connection; streaming calls return a
:class:`~dock_stream._http.ResponseStream` that owns its connection until it
is exhausted or closed::

    async with DockerClient("unix:///var/run/docker.sock") as docker:
        async with await docker.images.pull(PullOptions("alpine", tag="3")) as progress:
            async for update in progress:
                print(update.get("status"))
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from dock_stream._config import DockStreamConfig, load_config
from dock_stream._connector import Connector
from dock_stream._containers import Containers, Exec
from dock_stream._endpoint import parse_endpoint, resolve_endpoint
from dock_stream._http import READ_SIZE, open_stream, request
from dock_stream._images import Images
from dock_stream._jsonstream import decode_json_stream
from dock_stream._networks import Networks, Volumes
from dock_stream.errors import DecodeError, error_for_status

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, AsyncIterator, Callable, Mapping
    from types import TracebackType

    from typing_extensions import Self

    from dock_stream._endpoint import EndpointDescriptor
    from dock_stream._http import QueryParams, RequestBody, ResponseStream, T
    from dock_stream.options import EventsOptions

logger = logging.getLogger(__name__)


class DockerClient:
    """Async client for one container engine endpoint."""

    def __init__(
        self,
        endpoint: EndpointDescriptor | str,
        *,
        api_version: str | None = None,
        chunk_size: int = READ_SIZE,
    ) -> None:
        if isinstance(endpoint, str):
            endpoint = parse_endpoint(endpoint)
        self._connector = Connector(endpoint)
        self._prefix = f"/v{api_version.lstrip('v')}" if api_version else ""
        self._chunk_size = chunk_size
        self.containers = Containers(self)
        self.exec = Exec(self)
        self.images = Images(self)
        self.networks = Networks(self)
        self.volumes = Volumes(self)

    @classmethod
    def from_config(cls, config: DockStreamConfig | None = None) -> DockerClient:
        """Build a client from config (``DOCKER_HOST`` etc.), detecting a socket if unset."""
        config = config or load_config()
        return cls(
            resolve_endpoint(config),
            api_version=config.api_version,
            chunk_size=config.chunk_size,
        )

    @property
    def connector(self) -> Connector:
        return self._connector

    @property
    def endpoint(self) -> EndpointDescriptor:
        return self._connector.endpoint

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        # Connections are per request; nothing is held open between calls.
        if self._connector.open_connections:
            logger.debug(
                "client closed with %d streams still open", self._connector.open_connections
            )

    # -- System -----------------------------------------------------------

    async def ping(self) -> str:
        """Ping the engine.  Returns ``"OK"`` on success."""
        body = await self.raw("GET", "/_ping")
        return body.decode("ascii", errors="replace").strip()

    async def version(self) -> dict[str, Any]:
        """Return version information about the engine."""
        return await self.json("GET", "/version")  # type: ignore[no-any-return]

    async def info(self) -> dict[str, Any]:
        """Return system-wide information about the engine."""
        return await self.json("GET", "/info")  # type: ignore[no-any-return]

    async def events(self, options: EventsOptions | None = None) -> ResponseStream[Any]:
        """Stream engine events as they happen.

        Runs until the engine closes the connection or the stream is closed.
        """
        query = options.query() if options is not None else None
        return await self.stream("GET", "/events", decode_json_stream, query=query)

    # -- Request helpers used by the facades ------------------------------

    def url(self, path: str) -> str:
        """Prefix *path* with the pinned API version, if any."""
        return f"{self._prefix}{path}"

    async def raw(  # noqa: PLR0913
        self,
        method: str,
        path: str,
        *,
        query: QueryParams = None,
        headers: Mapping[str, str] | None = None,
        body: RequestBody = None,
        content_type: str | None = None,
    ) -> bytes:
        """Make a request and return the body bytes, raising on a failing status."""
        status, _, data = await request(
            self._connector,
            method,
            self.url(path),
            query=query,
            headers=headers,
            body=body,
            content_type=content_type,
        )
        if status >= 400:  # noqa: PLR2004
            logger.debug("%s %s failed: HTTP %d", method, path, status)
            raise error_for_status(status, data)
        return data

    async def json(
        self,
        method: str,
        path: str,
        *,
        query: QueryParams = None,
        payload: object | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:  # noqa: ANN401
        """Make a request with an optional JSON payload and decode the JSON answer.

        Returns ``None`` for an empty body (e.g. 204 No Content).
        """
        body = json.dumps(payload).encode("utf-8") if payload is not None else None
        data = await self.raw(method, path, query=query, headers=headers, body=body)
        if not data.strip():
            return None
        try:
            return json.loads(data)
        except ValueError as exc:
            msg = f"invalid JSON in response to {method} {path}"
            raise DecodeError(msg, 0, data[:64].decode("utf-8", errors="replace")) from exc

    async def stream(  # noqa: PLR0913
        self,
        method: str,
        path: str,
        decode: Callable[[AsyncIterator[bytes]], AsyncGenerator[T, None]],
        *,
        query: QueryParams = None,
        headers: Mapping[str, str] | None = None,
        body: RequestBody = None,
        content_type: str | None = None,
        upgrade: bool = False,
    ) -> ResponseStream[T]:
        """Make a request whose body is decoded lazily by *decode*."""
        return await open_stream(
            self._connector,
            method,
            self.url(path),
            decode,
            query=query,
            headers=headers,
            body=body,
            content_type=content_type,
            upgrade=upgrade,
            chunk_size=self._chunk_size,
        )
