# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""CLI entry point for dock-stream."""

from __future__ import annotations

import dataclasses
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from dock_stream import __version__, load_config


@dataclasses.dataclass
class CliContext:
    """Shared state passed through Click's context object."""

    host: str | None = None
    verbose: bool = False


def _configure_logging(*, verbose: bool) -> None:
    level = "DEBUG" if verbose else str(load_config().log_level).upper()
    if not isinstance(logging.getLevelName(level), int):
        level = "INFO"
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@click.group()
@click.option(
    "--host",
    "-H",
    envvar="DOCKER_HOST",
    default=None,
    help="Engine endpoint, e.g. unix:///var/run/docker.sock or tcp://host:2375.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.version_option(version=__version__, prog_name="dock-stream")
@click.pass_context
def cli(ctx: click.Context, host: str | None, *, verbose: bool) -> None:
    """Talk to a Docker-compatible container engine."""
    _configure_logging(verbose=verbose)
    ctx.ensure_object(dict)
    ctx.obj = CliContext(host=host, verbose=verbose)


# --- Register commands ---

from dock_stream.cli._commands import (  # noqa: E402
    build_cmd,
    events_cmd,
    images_cmd,
    logs_cmd,
    ping_cmd,
    ps_cmd,
    pull_cmd,
    version_cmd,
)

cli.add_command(ping_cmd)
cli.add_command(version_cmd)
cli.add_command(events_cmd)
cli.add_command(ps_cmd)
cli.add_command(logs_cmd)
cli.add_command(images_cmd)
cli.add_command(pull_cmd)
cli.add_command(build_cmd)
