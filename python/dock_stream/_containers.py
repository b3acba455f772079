# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Container and exec endpoints."""

from __future__ import annotations

import json
import time
from typing import TYPE_CHECKING, Any

from dock_stream._jsonstream import decode_json_stream
from dock_stream._stream import collect_output, frame_decoder, raw_bytes
from dock_stream._tarball import pack_file
from dock_stream.options import AttachOptions, ContainerListOptions, ExecOptions, LogsOptions
from dock_stream.types import ExecResult

if TYPE_CHECKING:
    from dock_stream._client import DockerClient
    from dock_stream._http import ResponseStream
    from dock_stream.options import ContainerCreateOptions
    from dock_stream.types import Frame


class Containers:
    """Interface for ``/containers`` endpoints."""

    def __init__(self, client: DockerClient) -> None:
        self._client = client

    async def list(self, options: ContainerListOptions | None = None) -> list[dict[str, Any]]:
        """List containers.  Only running ones unless ``options.all`` is set."""
        options = options or ContainerListOptions()
        return await self._client.json(  # type: ignore[no-any-return]
            "GET", "/containers/json", query=options.query()
        )

    async def inspect(self, container_id: str) -> dict[str, Any]:
        """Return the full JSON state of a container."""
        return await self._client.json(  # type: ignore[no-any-return]
            "GET", f"/containers/{container_id}/json"
        )

    async def create(self, options: ContainerCreateOptions) -> str:
        """Create a container and return its ID."""
        data = await self._client.json(
            "POST", "/containers/create", query=options.query(), payload=options.body()
        )
        return str(data["Id"])

    async def start(self, container_id: str) -> None:
        # 204 = started, 304 = already running
        await self._client.raw("POST", f"/containers/{container_id}/start")

    async def stop(self, container_id: str, timeout: int | None = None) -> None:
        await self._client.raw("POST", f"/containers/{container_id}/stop", query={"t": timeout})

    async def restart(self, container_id: str, timeout: int | None = None) -> None:
        await self._client.raw(
            "POST", f"/containers/{container_id}/restart", query={"t": timeout}
        )

    async def kill(self, container_id: str, signal: str | None = None) -> None:
        await self._client.raw(
            "POST", f"/containers/{container_id}/kill", query={"signal": signal}
        )

    async def remove(
        self,
        container_id: str,
        *,
        force: bool = False,
        volumes: bool = False,
    ) -> None:
        await self._client.raw(
            "DELETE",
            f"/containers/{container_id}",
            query=[("force", force), ("v", volumes)],
        )

    async def pause(self, container_id: str) -> None:
        await self._client.raw("POST", f"/containers/{container_id}/pause")

    async def unpause(self, container_id: str) -> None:
        await self._client.raw("POST", f"/containers/{container_id}/unpause")

    async def rename(self, container_id: str, new_name: str) -> None:
        await self._client.raw(
            "POST", f"/containers/{container_id}/rename", query={"name": new_name}
        )

    async def changes(self, container_id: str) -> list[dict[str, Any]]:
        """List filesystem changes since the container was created.

        Each entry has ``Path`` and ``Kind`` (0 modified, 1 added, 2 deleted).
        """
        data = await self._client.json("GET", f"/containers/{container_id}/changes")
        return data or []

    async def export(self, container_id: str) -> ResponseStream[bytes]:
        """Stream the container's filesystem as a tar archive."""
        return await self._client.stream("GET", f"/containers/{container_id}/export", raw_bytes)

    async def wait(self, container_id: str) -> int:
        """Block until the container stops and return its exit code."""
        data = await self._client.json("POST", f"/containers/{container_id}/wait")
        return int(data["StatusCode"])

    async def top(self, container_id: str, ps_args: str | None = None) -> dict[str, Any]:
        """List processes running in a container."""
        return await self._client.json(  # type: ignore[no-any-return]
            "GET", f"/containers/{container_id}/top", query={"ps_args": ps_args}
        )

    async def stats(self, container_id: str) -> dict[str, Any]:
        """Fetch a one-shot resource usage snapshot."""
        return await self._client.json(  # type: ignore[no-any-return]
            "GET",
            f"/containers/{container_id}/stats",
            query=[("stream", False), ("one-shot", True)],
        )

    async def stats_stream(self, container_id: str) -> ResponseStream[Any]:
        """Stream resource usage snapshots, one JSON object per interval."""
        return await self._client.stream(
            "GET",
            f"/containers/{container_id}/stats",
            decode_json_stream,
            query={"stream": True},
        )

    async def logs(
        self,
        container_id: str,
        options: LogsOptions | None = None,
        *,
        tty: bool | None = None,
    ) -> ResponseStream[Frame]:
        """Stream a container's logs as frames.

        Args:
            container_id: Container to read logs from.
            options: Which streams to include, follow mode, tail, etc.
            tty: Whether the container has a pseudo-terminal (raw, unframed
                output).  Read from the container's config when ``None``.

        """
        options = options or LogsOptions()
        if tty is None:
            tty = await self._has_tty(container_id)
        return await self._client.stream(
            "GET",
            f"/containers/{container_id}/logs",
            frame_decoder(tty=tty),
            query=options.query(),
        )

    async def attach(
        self,
        container_id: str,
        options: AttachOptions | None = None,
        *,
        tty: bool | None = None,
    ) -> ResponseStream[Frame]:
        """Attach to a running container's stdio.

        The connection is hijacked after ``101 Switching Protocols``; use
        :meth:`ResponseStream.write` to send stdin when ``options.stdin`` is set.
        """
        options = options or AttachOptions()
        if tty is None:
            tty = await self._has_tty(container_id)
        return await self._client.stream(
            "POST",
            f"/containers/{container_id}/attach",
            frame_decoder(tty=tty),
            query=options.query(),
            upgrade=True,
        )

    async def exec_run(
        self,
        container_id: str,
        cmd: list[str] | tuple[str, ...],
        *,
        max_output: int = 10 * 1024 * 1024,
    ) -> ExecResult:
        """Execute a command inside a running container and collect its output.

        This performs three HTTP calls:
        1. Create exec instance (``POST /containers/{id}/exec``)
        2. Start exec and read the multiplexed stream (``POST /exec/{id}/start``)
        3. Inspect exec to get exit code (``GET /exec/{id}/json``)
        """
        start_time = time.monotonic()
        exec_api = self._client.exec
        exec_id = await exec_api.create(container_id, ExecOptions(cmd=tuple(cmd)))

        async with await exec_api.start(exec_id) as frames:
            output = await collect_output(frames, max_output)

        data = await exec_api.inspect(exec_id)
        exit_code = data.get("ExitCode")
        duration_ms = (time.monotonic() - start_time) * 1000
        return ExecResult(
            exit_code=int(exit_code) if exit_code is not None else -1,
            stdout=output.stdout_text(),
            stderr=output.stderr_text(),
            duration_ms=duration_ms,
            truncated=output.truncated,
        )

    async def put_archive(self, container_id: str, path: str, tar_data: bytes) -> None:
        """Extract a tar archive into *path* inside the container."""
        await self._client.raw(
            "PUT",
            f"/containers/{container_id}/archive",
            query={"path": path},
            body=tar_data,
            content_type="application/x-tar",
        )

    async def copy_file_into(
        self,
        container_id: str,
        path: str,
        data: bytes,
        *,
        mode: int = 0o644,
    ) -> None:
        """Write *data* as a root-owned file at absolute *path* in the container."""
        await self.put_archive(container_id, "/", pack_file(path, data, mode=mode))

    async def get_archive(self, container_id: str, path: str) -> bytes:
        """Return a tar archive of *path* inside the container."""
        return await self._client.raw(
            "GET", f"/containers/{container_id}/archive", query={"path": path}
        )

    async def _has_tty(self, container_id: str) -> bool:
        info = await self.inspect(container_id)
        return bool((info.get("Config") or {}).get("Tty", False))


class Exec:
    """Interface for exec instances."""

    def __init__(self, client: DockerClient) -> None:
        self._client = client

    async def create(self, container_id: str, options: ExecOptions) -> str:
        """Create an exec instance and return its ID."""
        data = await self._client.json(
            "POST", f"/containers/{container_id}/exec", payload=options.body()
        )
        return str(data["Id"])

    async def start(self, exec_id: str, *, tty: bool = False) -> ResponseStream[Frame]:
        """Start an exec instance and stream its output."""
        return await self._client.stream(
            "POST",
            f"/exec/{exec_id}/start",
            frame_decoder(tty=tty),
            body=json.dumps({"Detach": False, "Tty": tty}).encode("utf-8"),
        )

    async def inspect(self, exec_id: str) -> dict[str, Any]:
        data = await self._client.json("GET", f"/exec/{exec_id}/json")
        return data or {}

    async def resize(self, exec_id: str, height: int, width: int) -> None:
        """Resize the pseudo-terminal of an exec started with ``tty=True``."""
        await self._client.raw("POST", f"/exec/{exec_id}/resize", query={"h": height, "w": width})
