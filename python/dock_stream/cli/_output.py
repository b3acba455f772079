# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Rich output formatters for the CLI."""

from __future__ import annotations

import datetime
import json
import sys
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from dock_stream.errors import DockStreamError
    from dock_stream.types import Frame

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from dock_stream.types import StreamSource

_console = Console()
_err_console = Console(stderr=True)


def format_container_list(items: list[dict[str, Any]], *, json_output: bool = False) -> None:
    """Print containers as returned by ``GET /containers/json``."""
    if json_output:
        click_echo_json(items)
        return

    if not items:
        _console.print("[dim]No containers found.[/dim]")
        return

    table = Table(title="Containers")
    table.add_column("Name", style="cyan")
    table.add_column("ID", style="dim")
    table.add_column("State")
    table.add_column("Image")
    table.add_column("Status")

    for item in items:
        names = item.get("Names") or []
        name = names[0].lstrip("/") if names else ""
        state = item.get("State", "")
        state_style = "green" if state == "running" else "yellow"
        table.add_row(
            name,
            str(item.get("Id", ""))[:12],
            f"[{state_style}]{state}[/{state_style}]",
            item.get("Image", ""),
            item.get("Status", ""),
        )

    _console.print(table)


def format_image_list(items: list[dict[str, Any]], *, json_output: bool = False) -> None:
    """Print images as returned by ``GET /images/json``."""
    if json_output:
        click_echo_json(items)
        return

    if not items:
        _console.print("[dim]No images found.[/dim]")
        return

    table = Table(title="Images")
    table.add_column("Tag", style="cyan")
    table.add_column("ID", style="dim")
    table.add_column("Size", justify="right")
    table.add_column("Created")

    for item in items:
        tags = item.get("RepoTags") or ["<none>:<none>"]
        image_id = str(item.get("Id", "")).removeprefix("sha256:")[:12]
        created = item.get("Created")
        created_text = (
            datetime.datetime.fromtimestamp(created, tz=datetime.timezone.utc).strftime(
                "%Y-%m-%d %H:%M"
            )
            if isinstance(created, int)
            else ""
        )
        table.add_row(", ".join(tags), image_id, _human_size(item.get("Size", 0)), created_text)

    _console.print(table)


def format_version(data: dict[str, Any], *, json_output: bool = False) -> None:
    """Print engine version information as a panel or JSON."""
    if json_output:
        click_echo_json(data)
        return

    lines = [
        f"[bold]Version:[/bold]     {data.get('Version', '')}",
        f"[bold]API:[/bold]         {data.get('ApiVersion', '')}",
        f"[bold]Min API:[/bold]     {data.get('MinAPIVersion', '')}",
        f"[bold]OS/Arch:[/bold]     {data.get('Os', '')}/{data.get('Arch', '')}",
        f"[bold]Kernel:[/bold]      {data.get('KernelVersion', '')}",
    ]
    panel = Panel("\n".join(lines), title="[cyan]Engine[/cyan]", expand=False)
    _console.print(panel)


def format_event(event: dict[str, Any], *, json_output: bool = False) -> None:
    """Print one engine event per line."""
    if json_output:
        sys.stdout.write(json.dumps(event, separators=(",", ":")) + "\n")
        sys.stdout.flush()
        return

    actor = event.get("Actor") or {}
    attributes = actor.get("Attributes") or {}
    name = attributes.get("name") or str(actor.get("ID", ""))[:12]
    ts = event.get("time")
    when = (
        datetime.datetime.fromtimestamp(ts, tz=datetime.timezone.utc).isoformat()
        if isinstance(ts, int)
        else ""
    )
    _console.print(
        f"[dim]{when}[/dim] [cyan]{event.get('Type', '')}[/cyan] "
        f"{event.get('Action', '')} {name}",
        highlight=False,
    )


def format_progress(update: dict[str, Any]) -> str | None:
    """Render a pull/build progress object as one line, or None if it has nothing to show."""
    if "stream" in update:
        return str(update["stream"]).rstrip("\n") or None
    status = update.get("status")
    if status is None:
        return None
    line = f"{update['id']}: {status}" if update.get("id") else str(status)
    if update.get("progress"):
        line = f"{line} {update['progress']}"
    return line


def write_frame(frame: Frame) -> None:
    """Write a log frame's raw payload to stdout or stderr, by source.

    Bytes go straight to the binary stream; a character split across two
    frames is reassembled by the terminal, not decoded frame by frame.
    """
    name = "stderr" if frame.source == StreamSource.STDERR else "stdout"
    out = click.get_binary_stream(name)
    out.write(frame.payload)
    out.flush()


def format_error(err: DockStreamError) -> None:
    """Print an SDK error as a rich panel with suggestions."""
    title, suggestion = _error_info(err)
    lines = [str(err)]
    if suggestion:
        lines.append(f"\n[dim]{suggestion}[/dim]")

    panel = Panel(
        "\n".join(lines),
        title=f"[red]{title}[/red]",
        expand=False,
    )
    _err_console.print(panel)


def format_progress_error(message: str) -> None:
    """Print an error reported inside a pull/build progress stream."""
    _err_console.print(f"[red]error:[/red] {message}", highlight=False)


def _error_info(err: DockStreamError) -> tuple[str, str]:
    """Map an SDK error to a title and suggestion string."""
    from dock_stream.errors import (  # noqa: PLC0415
        Conflict,
        DecodeError,
        EndpointError,
        EngineNotRunning,
        FrameError,
        NotFound,
        SocketConnectionError,
    )

    if isinstance(err, EngineNotRunning):
        return "Engine Not Found", "Start Docker or Podman, or set DOCKER_HOST."
    if isinstance(err, SocketConnectionError):
        return "Connection Failed", "Check that --host / DOCKER_HOST points at a running engine."
    if isinstance(err, EndpointError):
        return (
            "Invalid Endpoint",
            "Use unix:///path, tcp://host:port or https://host:port, and check DOCKER_CERT_PATH.",
        )
    if isinstance(err, NotFound):
        return "Not Found", "Run 'dock-stream ps --all' or 'dock-stream images' to list names."
    if isinstance(err, Conflict):
        return "Conflict", ""
    if isinstance(err, (DecodeError, FrameError)):
        return "Malformed Response", "The engine sent a stream that could not be decoded."
    return "Error", ""


def _human_size(size: object) -> str:
    value = float(size) if isinstance(size, (int, float)) else 0.0
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1000:  # noqa: PLR2004
            return f"{value:.0f}{unit}" if unit == "B" else f"{value:.1f}{unit}"
        value /= 1000
    return f"{value:.1f}TB"


def print_success(msg: str) -> None:
    """Print a success message with a checkmark."""
    _console.print(f"[green]✓[/green] {msg}")


def click_echo_json(data: object) -> None:
    """Serialize data to JSON and echo to stdout."""
    sys.stdout.write(json.dumps(data, indent=2, default=str) + "\n")
