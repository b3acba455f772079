# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

from __future__ import annotations

import json


class DockStreamError(Exception):
    """Base exception for all dock-stream errors."""


class EndpointError(DockStreamError):
    """The configured engine endpoint cannot be understood."""

    def __init__(self, uri: str, detail: str = "") -> None:
        self.uri = uri
        msg = f"Invalid engine endpoint {uri!r}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class SocketError(DockStreamError):
    """Error related to socket communication with the container engine."""


class SocketConnectionError(SocketError):
    """Cannot connect to the container engine (missing socket, refused, TLS failure)."""

    def __init__(self, address: str, detail: str = "") -> None:
        self.address = address
        msg = f"Cannot connect to engine at {address}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class SocketCommunicationError(SocketError):
    """Read or write failure in the middle of a request."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        msg = "Socket communication error"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class EngineNotRunning(SocketError):
    """No container engine endpoint configured and no socket found."""

    def __init__(self) -> None:
        super().__init__(
            "No container engine socket found. "
            "Is Podman or Docker running? "
            "Set DOCKER_HOST or try: systemctl --user start podman.socket"
        )


class DecodeError(DockStreamError):
    """A JSON response stream ended with bytes that do not form a value."""

    def __init__(self, detail: str, offset: int, fragment: str = "") -> None:
        self.offset = offset
        self.fragment = fragment
        msg = f"{detail} at byte {offset}"
        if fragment:
            msg = f"{msg}: {fragment!r}"
        super().__init__(msg)


class FrameError(DockStreamError):
    """A multiplexed stream violated the 8-byte frame protocol."""

    def __init__(self, detail: str, offset: int) -> None:
        self.offset = offset
        super().__init__(f"{detail} at byte {offset}")


class ApiError(DockStreamError):
    """The engine answered with a non-success HTTP status."""

    def __init__(self, status: int, body: str = "") -> None:
        self.status = status
        self.body = body
        self.message = _extract_message(body)
        msg = f"HTTP {status}"
        if self.message:
            msg = f"{msg}: {self.message}"
        super().__init__(msg)


class BadParameter(ApiError):
    """HTTP 400."""


class NotFound(ApiError):
    """HTTP 404."""


class Conflict(ApiError):
    """HTTP 409."""


class ServerFault(ApiError):
    """HTTP 500."""


class Unclassified(ApiError):
    """Any other failing status."""


_STATUS_ERRORS: dict[int, type[ApiError]] = {
    400: BadParameter,
    404: NotFound,
    409: Conflict,
    500: ServerFault,
}


def error_for_status(status: int, body: bytes | str = b"") -> ApiError:
    """Classify a failing HTTP status and response body into an ``ApiError``."""
    text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
    cls = _STATUS_ERRORS.get(status, Unclassified)
    return cls(status, text)


def raise_for_status(status: int, body: bytes | str = b"") -> None:
    """Raise the classified error when *status* is 400 or above."""
    if status >= 400:  # noqa: PLR2004
        raise error_for_status(status, body)


def _extract_message(body: str) -> str:
    """Pull the human-readable message out of an engine error body.

    The engine answers ``{"message": "..."}``; some proxies answer a bare JSON
    string or plain text.
    """
    stripped = body.strip()
    if not stripped:
        return ""
    try:
        data = json.loads(stripped)
    except ValueError:
        return stripped
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        return data["message"]
    if isinstance(data, str):
        return data
    return stripped
