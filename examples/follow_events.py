# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Follow engine events for a few seconds.

Opens the /events stream and prints container events as they arrive.
Leaving the ``async with`` block closes the stream and releases its
connection even though the engine would keep it open forever.

Usage:
    python examples/follow_events.py
"""

import asyncio
import contextlib

from dock_stream import DockerClient, EventsOptions

WATCH_SECONDS = 10


async def watch(client: DockerClient) -> None:
    options = EventsOptions(filters={"type": ["container"]})
    async with await client.events(options) as events:
        async for event in events:
            actor = event.get("Actor", {}).get("Attributes", {})
            print(f"{event.get('Action', '?'):<10} {actor.get('name', event.get('id', ''))}")


async def main() -> None:
    async with DockerClient.from_config() as client:
        print(f"Watching container events for {WATCH_SECONDS}s (start something!) ...")
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(watch(client), WATCH_SECONDS)
        print(f"Open connections after close: {client.connector.open_connections}")


if __name__ == "__main__":
    asyncio.run(main())
