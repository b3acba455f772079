# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Image endpoints."""

from __future__ import annotations

import pathlib
from typing import TYPE_CHECKING, Any

from dock_stream._jsonstream import decode_json_stream
from dock_stream._stream import raw_bytes
from dock_stream.options import BuildOptions, encode_filters

if TYPE_CHECKING:
    import os

    from dock_stream._client import DockerClient
    from dock_stream._http import ResponseStream
    from dock_stream.options import PullOptions


class Images:
    """Interface for ``/images`` and ``/build`` endpoints."""

    def __init__(self, client: DockerClient) -> None:
        self._client = client

    async def list(
        self,
        *,
        all: bool = False,  # noqa: A002
        filters: dict[str, list[str]] | None = None,
    ) -> list[dict[str, Any]]:
        return await self._client.json(  # type: ignore[no-any-return]
            "GET", "/images/json", query=[("all", all), ("filters", encode_filters(filters))]
        )

    async def inspect(self, name: str) -> dict[str, Any]:
        return await self._client.json("GET", f"/images/{name}/json")  # type: ignore[no-any-return]

    async def history(self, name: str) -> list[dict[str, Any]]:
        return await self._client.json(  # type: ignore[no-any-return]
            "GET", f"/images/{name}/history"
        )

    async def search(self, term: str, limit: int | None = None) -> list[dict[str, Any]]:
        return await self._client.json(  # type: ignore[no-any-return]
            "GET", "/images/search", query=[("term", term), ("limit", limit)]
        )

    async def tag(self, name: str, repo: str, tag: str | None = None) -> None:
        await self._client.raw("POST", f"/images/{name}/tag", query=[("repo", repo), ("tag", tag)])

    async def remove(
        self,
        name: str,
        *,
        force: bool = False,
        noprune: bool = False,
    ) -> list[dict[str, str]]:
        """Remove an image, returning the ``Untagged``/``Deleted`` records."""
        data = await self._client.json(
            "DELETE", f"/images/{name}", query=[("force", force), ("noprune", noprune)]
        )
        return data or []

    async def pull(self, options: PullOptions) -> ResponseStream[Any]:
        """Pull an image, streaming one JSON progress object per update.

        Pull failures after the 200 response arrive as objects with an
        ``error`` key; they are yielded like any other update.
        """
        return await self._client.stream(
            "POST",
            "/images/create",
            decode_json_stream,
            query=options.query(),
            headers=options.headers(),
        )

    async def build(
        self,
        context: str | os.PathLike[str],
        options: BuildOptions | None = None,
    ) -> ResponseStream[Any]:
        """Build an image from a directory, streaming JSON progress objects.

        The directory is packed into a gzip tar and uploaded as the build context.
        """
        options = options or BuildOptions()
        return await self._client.stream(
            "POST",
            "/build",
            decode_json_stream,
            query=options.query(),
            body=pathlib.Path(context),
            content_type="application/x-tar",
        )

    async def save(self, names: list[str]) -> ResponseStream[bytes]:
        """Export one or more images as a tar stream (``names`` repeats per image)."""
        return await self._client.stream(
            "GET",
            "/images/get",
            raw_bytes,
            query=[("names", name) for name in names],
        )

    async def export(self, name: str) -> ResponseStream[bytes]:
        """Export a single image, with its tags and history, as a tar stream."""
        return await self._client.stream("GET", f"/images/{name}/get", raw_bytes)

    async def import_(self, tarball: bytes) -> ResponseStream[Any]:
        """Load images from a tar archive made by :meth:`save` or :meth:`export`.

        The archive may be uncompressed or compressed with gzip, bzip2 or xz.
        The engine reports progress as a stream of JSON objects.
        """
        return await self._client.stream(
            "POST",
            "/images/load",
            decode_json_stream,
            body=tarball,
            content_type="application/x-tar",
        )
