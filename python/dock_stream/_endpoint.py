# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Engine endpoint descriptors and their resolution from URIs and config."""

from __future__ import annotations

import dataclasses
import os
import pathlib
import ssl
import urllib.parse
from typing import TYPE_CHECKING, Union

from dock_stream.errors import EndpointError, EngineNotRunning

if TYPE_CHECKING:
    from dock_stream._config import DockStreamConfig

DEFAULT_PLAIN_PORT = 2375
DEFAULT_TLS_PORT = 2376

# The engine validates the Host header even on a Unix socket.
LOCAL_HOST_HEADER = "v1.x"


def _authority(host: str, port: int) -> str:
    # IPv6 literals are bracketed in URIs and Host headers
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


@dataclasses.dataclass(frozen=True)
class LocalEndpoint:
    """Engine listening on a Unix domain socket."""

    path: str

    def __str__(self) -> str:
        return f"unix://{self.path}"


@dataclasses.dataclass(frozen=True)
class RemoteEndpoint:
    """Engine listening on a TCP port, optionally behind TLS."""

    host: str
    port: int = DEFAULT_PLAIN_PORT
    encrypted: bool = False
    ssl_context: ssl.SSLContext | None = dataclasses.field(
        default=None, compare=False, repr=False
    )

    def __str__(self) -> str:
        scheme = "https" if self.encrypted else "tcp"
        return f"{scheme}://{_authority(self.host, self.port)}"


EndpointDescriptor = Union[LocalEndpoint, RemoteEndpoint]


def host_header(endpoint: EndpointDescriptor) -> str:
    """Return the ``Host`` header value to send to *endpoint*."""
    if isinstance(endpoint, LocalEndpoint):
        return LOCAL_HOST_HEADER
    return _authority(endpoint.host, endpoint.port)


def parse_endpoint(uri: str, *, tls: ssl.SSLContext | None = None) -> EndpointDescriptor:
    """Parse an engine URI into an endpoint descriptor.

    Supported forms:
        ``unix:///run/docker.sock`` or a bare absolute path,
        ``tcp://host:port`` and ``http://host:port`` (encrypted when *tls* is given),
        ``https://host:port``.

    Raises:
        EndpointError: For an unsupported scheme or a missing host/path.

    """
    if uri.startswith("/"):
        return LocalEndpoint(uri)

    scheme, sep, rest = uri.partition("://")
    if not sep:
        raise EndpointError(uri, f"unsupported scheme {scheme!r}")

    if scheme == "unix":
        if not rest:
            raise EndpointError(uri, "missing socket path")
        return LocalEndpoint(rest if rest.startswith("/") else f"/{rest}")

    if scheme not in ("tcp", "http", "https"):
        raise EndpointError(uri, f"unsupported scheme {scheme!r}")

    split = urllib.parse.urlsplit(f"//{rest}")
    if not split.hostname:
        raise EndpointError(uri, "missing host")
    encrypted = scheme == "https" or tls is not None
    try:
        port = split.port
    except ValueError as exc:
        raise EndpointError(uri, str(exc)) from exc
    if port is None:
        port = DEFAULT_TLS_PORT if encrypted else DEFAULT_PLAIN_PORT
    return RemoteEndpoint(split.hostname, port, encrypted=encrypted, ssl_context=tls)


def tls_context(cert_path: str | os.PathLike[str], *, verify: bool = True) -> ssl.SSLContext:
    """Build a client TLS context from ``cert.pem``/``key.pem`` (and ``ca.pem``).

    The layout matches ``DOCKER_CERT_PATH``.  When *verify* is false the
    server certificate is not checked.

    Raises:
        EndpointError: If a certificate or key is missing or unreadable.

    """
    base = pathlib.Path(cert_path)
    ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    try:
        ctx.load_cert_chain(base / "cert.pem", base / "key.pem")
        if verify:
            ctx.load_verify_locations(base / "ca.pem")
    except OSError as exc:  # includes ssl.SSLError
        raise EndpointError(str(base), f"cannot load TLS certificates ({exc})") from exc
    if not verify:
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
    return ctx


def detect_socket() -> str | None:
    """Auto-detect an available container engine socket.

    Detection order:
    1. ``DOCK_STREAM_SOCKET`` env var
    2. Podman rootless: ``$XDG_RUNTIME_DIR/podman/podman.sock``
    3. Podman system: ``/run/podman/podman.sock``
    4. Docker: ``/var/run/docker.sock``

    Returns:
        The path to the first socket found, or ``None``.

    """
    explicit = os.environ.get("DOCK_STREAM_SOCKET")
    if explicit and pathlib.Path(explicit).exists():
        return explicit

    xdg = os.environ.get("XDG_RUNTIME_DIR", f"/run/user/{os.getuid()}")
    candidates = [
        pathlib.Path(xdg) / "podman" / "podman.sock",
        pathlib.Path("/run/podman/podman.sock"),
        pathlib.Path("/var/run/docker.sock"),
    ]
    for candidate in candidates:
        if candidate.exists():
            return str(candidate)
    return None


def resolve_endpoint(config: DockStreamConfig) -> EndpointDescriptor:
    """Turn a loaded config into an endpoint, falling back to socket detection."""
    tls = None
    if config.cert_path:
        tls = tls_context(config.cert_path, verify=config.tls_verify)

    if config.host:
        return parse_endpoint(config.host, tls=tls)

    path = detect_socket()
    if path is None:
        raise EngineNotRunning
    return LocalEndpoint(path)
