# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Connection-per-request transport to the container engine.

Every request opens its own connection and releases it when the response
body is consumed or abandoned.  Connections are never pooled or shared, so
a long-lived log stream cannot block other operations.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import ssl
from typing import TYPE_CHECKING

from dock_stream._endpoint import LocalEndpoint, host_header
from dock_stream.errors import SocketConnectionError

if TYPE_CHECKING:
    from types import TracebackType

    from typing_extensions import Self

    from dock_stream._endpoint import EndpointDescriptor

logger = logging.getLogger(__name__)

_STREAM_LIMIT = 2**20


class Connection:
    """An open byte stream to the engine, owned by exactly one request."""

    def __init__(
        self,
        connector: Connector,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        self._connector = connector
        self.reader = reader
        self.writer = writer
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self) -> None:
        """Release the connection.  Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._connector._release(self)
        self.writer.close()
        with contextlib.suppress(ConnectionError, ssl.SSLError):
            await self.writer.wait_closed()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


class Connector:
    """Opens connections to one engine endpoint and tracks how many are open."""

    def __init__(self, endpoint: EndpointDescriptor) -> None:
        self._endpoint = endpoint
        self._open = 0

    @property
    def endpoint(self) -> EndpointDescriptor:
        return self._endpoint

    @property
    def host_header(self) -> str:
        """``Host`` header value for requests sent through this connector."""
        return host_header(self._endpoint)

    @property
    def open_connections(self) -> int:
        """Number of connections opened and not yet released."""
        return self._open

    async def open(self) -> Connection:
        """Open a new connection to the endpoint.

        Raises:
            SocketConnectionError: If the socket is missing, the host is
                unreachable or refuses, or the TLS handshake fails.

        """
        endpoint = self._endpoint
        try:
            if isinstance(endpoint, LocalEndpoint):
                reader, writer = await asyncio.open_unix_connection(
                    endpoint.path, limit=_STREAM_LIMIT
                )
            else:
                tls: ssl.SSLContext | None = None
                if endpoint.encrypted:
                    tls = endpoint.ssl_context or ssl.create_default_context()
                reader, writer = await asyncio.open_connection(
                    endpoint.host,
                    endpoint.port,
                    ssl=tls,
                    server_hostname=endpoint.host if tls is not None else None,
                    limit=_STREAM_LIMIT,
                )
        except OSError as exc:
            raise SocketConnectionError(str(endpoint), str(exc)) from exc

        self._open += 1
        logger.debug("opened connection to %s (%d open)", endpoint, self._open)
        return Connection(self, reader, writer)

    def _release(self, connection: Connection) -> None:  # noqa: ARG002
        self._open -= 1
        logger.debug("released connection to %s (%d open)", self._endpoint, self._open)
