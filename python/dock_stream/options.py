# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Immutable option structs for the resource endpoints.

Each struct serializes itself to the ordered query pairs and/or JSON body
its endpoint expects.  Unset (``None``) fields are left out so the engine
applies its own defaults.
"""

from __future__ import annotations

import base64
import dataclasses
import json
from typing import Any

Query = list[tuple[str, object]]


def encode_filters(filters: dict[str, list[str]] | None) -> str | None:
    """JSON-encode a filter map, or ``None`` when there is nothing to filter."""
    if not filters:
        return None
    return json.dumps(filters, separators=(",", ":"))


def _drop_none(payload: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in payload.items() if v is not None}


@dataclasses.dataclass(frozen=True)
class ContainerListOptions:
    """Options for ``GET /containers/json``."""

    all: bool = False
    limit: int | None = None
    size: bool = False
    filters: dict[str, list[str]] | None = None

    def query(self) -> Query:
        return [
            ("all", self.all),
            ("limit", self.limit),
            ("size", self.size),
            ("filters", encode_filters(self.filters)),
        ]


@dataclasses.dataclass(frozen=True)
class ContainerCreateOptions:
    """Options for ``POST /containers/create``."""

    image: str
    name: str | None = None
    cmd: tuple[str, ...] | None = None
    env: dict[str, str] | None = None
    labels: dict[str, str] | None = None
    working_dir: str | None = None
    tty: bool = False
    attach_stdin: bool = False
    open_stdin: bool = False
    host_config: dict[str, Any] | None = None

    def query(self) -> Query:
        return [("name", self.name)]

    def body(self) -> dict[str, Any]:
        env = [f"{k}={v}" for k, v in self.env.items()] if self.env else None
        return _drop_none(
            {
                "Image": self.image,
                "Cmd": list(self.cmd) if self.cmd is not None else None,
                "Env": env,
                "Labels": self.labels,
                "WorkingDir": self.working_dir,
                "Tty": self.tty,
                "AttachStdin": self.attach_stdin,
                "OpenStdin": self.open_stdin,
                "HostConfig": self.host_config,
            }
        )


@dataclasses.dataclass(frozen=True)
class LogsOptions:
    """Options for ``GET /containers/{id}/logs``."""

    follow: bool = False
    stdout: bool = True
    stderr: bool = True
    timestamps: bool = False
    since: int | None = None
    tail: int | str | None = None

    def query(self) -> Query:
        return [
            ("follow", self.follow),
            ("stdout", self.stdout),
            ("stderr", self.stderr),
            ("timestamps", self.timestamps),
            ("since", self.since),
            ("tail", self.tail),
        ]


@dataclasses.dataclass(frozen=True)
class AttachOptions:
    """Options for ``POST /containers/{id}/attach``."""

    stdin: bool = False
    stdout: bool = True
    stderr: bool = True
    logs: bool = False

    def query(self) -> Query:
        return [
            ("stream", True),
            ("stdin", self.stdin),
            ("stdout", self.stdout),
            ("stderr", self.stderr),
            ("logs", self.logs),
        ]


@dataclasses.dataclass(frozen=True)
class ExecOptions:
    """Options for ``POST /containers/{id}/exec``."""

    cmd: tuple[str, ...]
    env: dict[str, str] | None = None
    tty: bool = False
    attach_stdin: bool = False
    attach_stdout: bool = True
    attach_stderr: bool = True
    working_dir: str | None = None
    user: str | None = None
    privileged: bool = False

    def body(self) -> dict[str, Any]:
        env = [f"{k}={v}" for k, v in self.env.items()] if self.env else None
        return _drop_none(
            {
                "Cmd": list(self.cmd),
                "Env": env,
                "Tty": self.tty,
                "AttachStdin": self.attach_stdin,
                "AttachStdout": self.attach_stdout,
                "AttachStderr": self.attach_stderr,
                "WorkingDir": self.working_dir,
                "User": self.user,
                "Privileged": self.privileged,
            }
        )


@dataclasses.dataclass(frozen=True)
class RegistryAuth:
    """Registry credentials sent verbatim in the ``X-Registry-Auth`` header.

    Either ``identity_token`` or ``username``/``password`` is used.
    """

    username: str | None = None
    password: str | None = None
    email: str | None = None
    server_address: str | None = None
    identity_token: str | None = None

    def header_value(self) -> str:
        if self.identity_token is not None:
            payload: dict[str, Any] = {"identitytoken": self.identity_token}
        else:
            payload = _drop_none(
                {
                    "username": self.username,
                    "password": self.password,
                    "email": self.email,
                    "serveraddress": self.server_address,
                }
            )
        raw = json.dumps(payload).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii")


@dataclasses.dataclass(frozen=True)
class PullOptions:
    """Options for ``POST /images/create``."""

    image: str
    tag: str | None = None
    platform: str | None = None
    auth: RegistryAuth | None = None

    def query(self) -> Query:
        return [("fromImage", self.image), ("tag", self.tag), ("platform", self.platform)]

    def headers(self) -> dict[str, str]:
        if self.auth is None:
            return {}
        return {"X-Registry-Auth": self.auth.header_value()}


@dataclasses.dataclass(frozen=True)
class BuildOptions:
    """Options for ``POST /build``."""

    tag: str | None = None
    dockerfile: str | None = None
    nocache: bool = False
    rm: bool = True
    pull: bool = False
    build_args: dict[str, str] | None = None
    labels: dict[str, str] | None = None

    def query(self) -> Query:
        return [
            ("t", self.tag),
            ("dockerfile", self.dockerfile),
            ("nocache", self.nocache),
            ("rm", self.rm),
            ("pull", self.pull),
            ("buildargs", json.dumps(self.build_args) if self.build_args else None),
            ("labels", json.dumps(self.labels) if self.labels else None),
        ]


@dataclasses.dataclass(frozen=True)
class EventsOptions:
    """Options for ``GET /events``.  ``since``/``until`` are unix timestamps."""

    since: int | None = None
    until: int | None = None
    filters: dict[str, list[str]] | None = None

    def query(self) -> Query:
        return [
            ("since", self.since),
            ("until", self.until),
            ("filters", encode_filters(self.filters)),
        ]
