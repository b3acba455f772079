# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Network and volume endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from dock_stream.options import encode_filters

if TYPE_CHECKING:
    from dock_stream._client import DockerClient


class Networks:
    """Interface for ``/networks`` endpoints."""

    def __init__(self, client: DockerClient) -> None:
        self._client = client

    async def list(self, filters: dict[str, list[str]] | None = None) -> list[dict[str, Any]]:
        return await self._client.json(  # type: ignore[no-any-return]
            "GET", "/networks", query={"filters": encode_filters(filters)}
        )

    async def inspect(self, network_id: str) -> dict[str, Any]:
        return await self._client.json(  # type: ignore[no-any-return]
            "GET", f"/networks/{network_id}"
        )

    async def create(
        self,
        name: str,
        *,
        driver: str | None = None,
        internal: bool = False,
        labels: dict[str, str] | None = None,
    ) -> str:
        """Create a network and return its ID."""
        payload: dict[str, Any] = {"Name": name, "Internal": internal}
        if driver is not None:
            payload["Driver"] = driver
        if labels is not None:
            payload["Labels"] = labels
        data = await self._client.json("POST", "/networks/create", payload=payload)
        return str(data["Id"])

    async def remove(self, network_id: str) -> None:
        await self._client.raw("DELETE", f"/networks/{network_id}")

    async def connect(self, network_id: str, container_id: str) -> None:
        await self._client.json(
            "POST", f"/networks/{network_id}/connect", payload={"Container": container_id}
        )

    async def disconnect(self, network_id: str, container_id: str, *, force: bool = False) -> None:
        await self._client.json(
            "POST",
            f"/networks/{network_id}/disconnect",
            payload={"Container": container_id, "Force": force},
        )


class Volumes:
    """Interface for ``/volumes`` endpoints."""

    def __init__(self, client: DockerClient) -> None:
        self._client = client

    async def list(self, filters: dict[str, list[str]] | None = None) -> list[dict[str, Any]]:
        query = {"filters": encode_filters(filters)}
        data = await self._client.json("GET", "/volumes", query=query)
        return (data or {}).get("Volumes") or []

    async def inspect(self, name: str) -> dict[str, Any]:
        return await self._client.json("GET", f"/volumes/{name}")  # type: ignore[no-any-return]

    async def create(
        self,
        name: str | None = None,
        *,
        driver: str | None = None,
        labels: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Create a volume and return its description."""
        payload: dict[str, Any] = {}
        if name is not None:
            payload["Name"] = name
        if driver is not None:
            payload["Driver"] = driver
        if labels is not None:
            payload["Labels"] = labels
        return await self._client.json(  # type: ignore[no-any-return]
            "POST", "/volumes/create", payload=payload
        )

    async def remove(self, name: str, *, force: bool = False) -> None:
        await self._client.raw("DELETE", f"/volumes/{name}", query={"force": force})
