# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""CLI command implementations."""

from __future__ import annotations

import asyncio
import dataclasses
from typing import TYPE_CHECKING, Any, TypeVar

import click

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from dock_stream import DockerClient
    from dock_stream.cli.main import CliContext

from dock_stream.cli._output import (
    format_container_list,
    format_error,
    format_event,
    format_image_list,
    format_progress,
    format_progress_error,
    format_version,
    print_success,
    write_frame,
)

T = TypeVar("T")


def _get_ctx(ctx: click.Context) -> CliContext:
    """Extract the CliContext from Click's context object."""
    return ctx.obj  # type: ignore[no-any-return]


def _make_client(cli_ctx: CliContext) -> DockerClient:
    """Build a client from config, with ``--host`` taking precedence."""
    import dock_stream  # noqa: PLC0415

    config = dock_stream.load_config()
    if cli_ctx.host:
        config = dataclasses.replace(config, host=cli_ctx.host)
    return dock_stream.DockerClient.from_config(config)


def _run(cli_ctx: CliContext, action: Callable[[DockerClient], Awaitable[T]]) -> T:
    """Run *action* against a fresh client, turning SDK errors into exit code 1."""
    import dock_stream  # noqa: PLC0415

    async def _main() -> T:
        async with _make_client(cli_ctx) as client:
            return await action(client)

    try:
        return asyncio.run(_main())
    except dock_stream.DockStreamError as exc:
        format_error(exc)
        raise SystemExit(1) from exc


async def _show_progress(progress: Any) -> bool:  # noqa: ANN401
    """Print a pull/build progress stream.  Returns False if it reported an error."""
    ok = True
    async with progress:
        async for update in progress:
            if not isinstance(update, dict):
                continue
            if "error" in update:
                format_progress_error(str(update["error"]))
                ok = False
                continue
            line = format_progress(update)
            if line is not None:
                click.echo(line)
    return ok


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


@click.command("ping")
@click.pass_context
def ping_cmd(ctx: click.Context) -> None:
    """Check that the engine answers."""
    reply = _run(_get_ctx(ctx), lambda client: client.ping())
    print_success(f"Engine replied {reply!r}")


@click.command("version")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@click.pass_context
def version_cmd(ctx: click.Context, *, json_output: bool) -> None:
    """Show engine version information."""
    data = _run(_get_ctx(ctx), lambda client: client.version())
    format_version(data, json_output=json_output)


@click.command("events")
@click.option("--since", type=int, default=None, help="Unix timestamp to replay from.")
@click.option("--until", type=int, default=None, help="Unix timestamp to stop at.")
@click.option(
    "--filter",
    "filter_",
    multiple=True,
    help="Filter as key=value (repeatable).",
)
@click.option("--json", "json_output", is_flag=True, help="Output one JSON object per line.")
@click.pass_context
def events_cmd(
    ctx: click.Context,
    since: int | None,
    until: int | None,
    filter_: tuple[str, ...],
    *,
    json_output: bool,
) -> None:
    """Stream engine events until interrupted."""
    from dock_stream import EventsOptions  # noqa: PLC0415

    filters: dict[str, list[str]] = {}
    for item in filter_:
        key, sep, value = item.partition("=")
        if not sep:
            msg = f"Invalid filter '{item}'. Use key=value."
            raise click.BadParameter(msg, param_hint="--filter")
        filters.setdefault(key, []).append(value)

    options = EventsOptions(since=since, until=until, filters=filters or None)

    async def _follow(client: DockerClient) -> None:
        async with await client.events(options) as events:
            async for event in events:
                format_event(event, json_output=json_output)

    _run(_get_ctx(ctx), _follow)


# ---------------------------------------------------------------------------
# Containers
# ---------------------------------------------------------------------------


@click.command("ps")
@click.option("--all", "-a", "all_", is_flag=True, help="Include stopped containers.")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@click.pass_context
def ps_cmd(ctx: click.Context, *, all_: bool, json_output: bool) -> None:
    """List containers."""
    from dock_stream import ContainerListOptions  # noqa: PLC0415

    items = _run(
        _get_ctx(ctx),
        lambda client: client.containers.list(ContainerListOptions(all=all_)),
    )
    format_container_list(items, json_output=json_output)


@click.command("logs")
@click.argument("container")
@click.option("--follow", "-f", is_flag=True, help="Keep streaming new output.")
@click.option("--tail", default=None, help="Number of lines from the end (or 'all').")
@click.option("--timestamps", "-t", is_flag=True, help="Prefix lines with timestamps.")
@click.pass_context
def logs_cmd(
    ctx: click.Context,
    container: str,
    tail: str | None,
    *,
    follow: bool,
    timestamps: bool,
) -> None:
    """Print a container's stdout and stderr."""
    from dock_stream import LogsOptions  # noqa: PLC0415

    options = LogsOptions(follow=follow, timestamps=timestamps, tail=tail)

    async def _print(client: DockerClient) -> None:
        async with await client.containers.logs(container, options) as frames:
            async for frame in frames:
                write_frame(frame)

    _run(_get_ctx(ctx), _print)


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------


@click.command("images")
@click.option("--all", "-a", "all_", is_flag=True, help="Include intermediate images.")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@click.pass_context
def images_cmd(ctx: click.Context, *, all_: bool, json_output: bool) -> None:
    """List images."""
    items = _run(_get_ctx(ctx), lambda client: client.images.list(all=all_))
    format_image_list(items, json_output=json_output)


def _names_tag(image: str) -> bool:
    """True if *image* already names a tag or digest (``app:1``, ``app@sha256:..``)."""
    if "@" in image:
        return True
    # A registry port ("host:5000/app") is not a tag
    return ":" in image.rsplit("/", 1)[-1]


@click.command("pull")
@click.argument("image")
@click.option("--tag", default=None, help="Tag to pull (default: latest, unless IMAGE has one).")
@click.option("--platform", default=None, help="Platform, e.g. linux/arm64.")
@click.pass_context
def pull_cmd(ctx: click.Context, image: str, tag: str | None, platform: str | None) -> None:
    """Pull an image, showing progress."""
    from dock_stream import PullOptions  # noqa: PLC0415

    # The engine pulls every tag of a repository when none is named
    if tag is None and not _names_tag(image):
        tag = "latest"
    options = PullOptions(image, tag=tag, platform=platform)

    async def _pull(client: DockerClient) -> bool:
        return await _show_progress(await client.images.pull(options))

    if not _run(_get_ctx(ctx), _pull):
        raise SystemExit(1)
    print_success(f"Pulled {image}{':' + tag if tag else ''}")


@click.command("build")
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.option("--tag", "-t", default=None, help="Name and optional tag for the image.")
@click.option("--file", "-f", "dockerfile", default=None, help="Dockerfile path in the context.")
@click.option("--no-cache", is_flag=True, help="Do not use the build cache.")
@click.pass_context
def build_cmd(
    ctx: click.Context,
    path: str,
    tag: str | None,
    dockerfile: str | None,
    *,
    no_cache: bool,
) -> None:
    """Build an image from a context directory."""
    from dock_stream import BuildOptions  # noqa: PLC0415

    options = BuildOptions(tag=tag, dockerfile=dockerfile, nocache=no_cache)

    async def _build(client: DockerClient) -> bool:
        return await _show_progress(await client.images.build(path, options))

    if not _run(_get_ctx(ctx), _build):
        raise SystemExit(1)
    print_success(f"Built {tag}" if tag else "Build complete")
