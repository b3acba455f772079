# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Quickstart: Run a command in a throwaway container.

Pulls a small image, creates a container that idles, executes a
command inside it, prints the demultiplexed output, then removes the
container. Shows the pull -> create -> exec -> remove loop.

Usage:
    python examples/quickstart_exec.py
"""

import asyncio

from dock_stream import ContainerCreateOptions, DockerClient, PullOptions

IMAGE = "alpine"
TAG = "3"


async def main() -> None:
    async with DockerClient.from_config() as client:
        print(f"Pulling {IMAGE}:{TAG} ...")
        async with await client.images.pull(PullOptions(IMAGE, tag=TAG)) as progress:
            async for update in progress:
                if "error" in update:
                    print(f"Pull failed: {update['error']}")
                    return

        options = ContainerCreateOptions(f"{IMAGE}:{TAG}", cmd=("sleep", "300"))
        container_id = await client.containers.create(options)
        await client.containers.start(container_id)
        try:
            result = await client.containers.exec_run(
                container_id, ["sh", "-c", "uname -a; echo oops >&2"]
            )
            print()
            print(f"stdout: {result.stdout.strip()}")
            print(f"stderr: {result.stderr.strip()}")
            print(f"exit code {result.exit_code} in {result.duration_ms:.0f}ms")
        finally:
            await client.containers.remove(container_id, force=True)
            print("Container removed.")


if __name__ == "__main__":
    asyncio.run(main())
