"""Unit tests for the CLI using Click's CliRunner with a mocked client."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner
from dock_stream import DockStreamConfig, __version__
from dock_stream.cli._output import format_progress
from dock_stream.cli.main import CliContext, cli
from dock_stream.errors import EngineNotRunning, NotFound, SocketConnectionError
from dock_stream.types import Frame, StreamSource

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


class _FakeStream:
    """Stand-in for ResponseStream over a fixed list of items."""

    def __init__(self, items: list[Any]) -> None:
        self._items = list(items)
        self.closed = False

    async def __aenter__(self) -> _FakeStream:
        return self

    async def __aexit__(self, *exc: object) -> None:
        self.closed = True

    def __aiter__(self) -> _FakeStream:
        return self

    async def __anext__(self) -> Any:  # noqa: ANN401
        if not self._items:
            raise StopAsyncIteration
        return self._items.pop(0)


def _fake_client() -> MagicMock:
    client = MagicMock()
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=None)
    return client


@pytest.fixture(autouse=True)
def _no_logging_setup() -> Iterator[MagicMock]:
    with patch("dock_stream.cli.main.logging.basicConfig") as basic_config:
        yield basic_config


@pytest.fixture
def client() -> Iterator[MagicMock]:
    fake = _fake_client()
    with patch("dock_stream.cli._commands._make_client", return_value=fake):
        yield fake


# --- Scaffold tests ---


def test_cli_help() -> None:
    result = CliRunner().invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "Usage" in result.output
    for command in ("ping", "ps", "logs", "events", "pull", "build", "images", "version"):
        assert command in result.output


def test_cli_version() -> None:
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "dock-stream" in result.output
    assert __version__ in result.output


def test_cli_context_defaults() -> None:
    ctx = CliContext()
    assert ctx.host is None
    assert ctx.verbose is False


def test_verbose_sets_debug_logging(client: MagicMock, _no_logging_setup: MagicMock) -> None:
    client.ping = AsyncMock(return_value="OK")
    result = CliRunner().invoke(cli, ["--verbose", "ping"])
    assert result.exit_code == 0
    assert _no_logging_setup.call_args.kwargs["level"] == "DEBUG"


def test_default_log_level_from_config(client: MagicMock, _no_logging_setup: MagicMock) -> None:
    client.ping = AsyncMock(return_value="OK")
    CliRunner().invoke(cli, ["ping"])
    assert _no_logging_setup.call_args.kwargs["level"] == "INFO"


def test_unknown_log_level_falls_back_to_info(
    client: MagicMock, _no_logging_setup: MagicMock
) -> None:
    client.ping = AsyncMock(return_value="OK")
    config = DockStreamConfig(log_level="verbose")
    with patch("dock_stream.cli.main.load_config", return_value=config):
        result = CliRunner().invoke(cli, ["ping"])
    assert result.exit_code == 0
    assert _no_logging_setup.call_args.kwargs["level"] == "INFO"


# --- client construction ---


def test_host_option_overrides_config() -> None:
    from dock_stream.cli._commands import _make_client  # noqa: PLC0415

    client = _make_client(CliContext(host="tcp://engine.local:2375"))
    assert str(client.endpoint) == "tcp://engine.local:2375"


def test_host_from_environment(client: MagicMock) -> None:
    client.ping = AsyncMock(return_value="OK")
    with patch("dock_stream.cli._commands._make_client", return_value=client) as make:
        result = CliRunner().invoke(cli, ["ping"], env={"DOCKER_HOST": "tcp://env-host:2375"})
    assert result.exit_code == 0
    assert make.call_args.args[0].host == "tcp://env-host:2375"


def test_missing_tls_certificates_exit_cleanly(tmp_path: Path) -> None:
    env = {"DOCKER_HOST": "tcp://engine.local:2376", "DOCKER_CERT_PATH": str(tmp_path)}
    result = CliRunner().invoke(cli, ["ping"], env=env)
    assert result.exit_code == 1
    assert "Invalid Endpoint" in result.output
    assert isinstance(result.exception, SystemExit)


# --- ping / version ---


def test_ping_success(client: MagicMock) -> None:
    client.ping = AsyncMock(return_value="OK")
    result = CliRunner().invoke(cli, ["ping"])
    assert result.exit_code == 0
    assert "OK" in result.output


def test_ping_engine_not_running() -> None:
    with patch("dock_stream.cli._commands._make_client", side_effect=EngineNotRunning()):
        result = CliRunner().invoke(cli, ["ping"])
    assert result.exit_code == 1


def test_ping_connection_refused(client: MagicMock) -> None:
    client.ping = AsyncMock(side_effect=SocketConnectionError("tcp://h:2375", "refused"))
    result = CliRunner().invoke(cli, ["ping"])
    assert result.exit_code == 1


def test_version_json(client: MagicMock) -> None:
    client.version = AsyncMock(return_value={"Version": "24.0.7", "ApiVersion": "1.43"})
    result = CliRunner().invoke(cli, ["version", "--json"])
    assert result.exit_code == 0
    assert json.loads(result.output)["ApiVersion"] == "1.43"


def test_version_panel(client: MagicMock) -> None:
    client.version = AsyncMock(return_value={"Version": "24.0.7", "ApiVersion": "1.43"})
    result = CliRunner().invoke(cli, ["version"])
    assert result.exit_code == 0
    assert "24.0.7" in result.output


# --- ps / images ---


def test_ps_table(client: MagicMock) -> None:
    client.containers.list = AsyncMock(
        return_value=[
            {
                "Id": "abcdef0123456789",
                "Names": ["/web"],
                "Image": "nginx",
                "State": "running",
                "Status": "Up 2 minutes",
            }
        ]
    )
    result = CliRunner().invoke(cli, ["ps"])
    assert result.exit_code == 0
    assert "web" in result.output
    assert "abcdef012345" in result.output
    options = client.containers.list.call_args.args[0]
    assert options.all is False


def test_ps_all_json(client: MagicMock) -> None:
    client.containers.list = AsyncMock(return_value=[{"Id": "x", "Names": ["/a"]}])
    result = CliRunner().invoke(cli, ["ps", "--all", "--json"])
    assert result.exit_code == 0
    assert json.loads(result.output) == [{"Id": "x", "Names": ["/a"]}]
    assert client.containers.list.call_args.args[0].all is True


def test_ps_empty(client: MagicMock) -> None:
    client.containers.list = AsyncMock(return_value=[])
    result = CliRunner().invoke(cli, ["ps"])
    assert result.exit_code == 0
    assert "No containers found" in result.output


def test_images_table(client: MagicMock) -> None:
    client.images.list = AsyncMock(
        return_value=[
            {"Id": "sha256:0123456789abcdef", "RepoTags": ["alpine:3"], "Size": 7_800_000},
        ]
    )
    result = CliRunner().invoke(cli, ["images"])
    assert result.exit_code == 0
    assert "alpine:3" in result.output
    assert "0123456789ab" in result.output
    assert "7.8MB" in result.output


# --- logs ---


def test_logs_writes_frames(client: MagicMock) -> None:
    frames = [
        Frame(StreamSource.STDOUT, b"hello\n"),
        Frame(StreamSource.STDERR, b"warning\n"),
    ]
    client.containers.logs = AsyncMock(return_value=_FakeStream(frames))
    result = CliRunner().invoke(cli, ["logs", "web", "--tail", "5"])
    assert result.exit_code == 0
    assert "hello" in result.output
    container, options = client.containers.logs.call_args.args
    assert container == "web"
    assert options.tail == "5"
    assert options.follow is False


def test_logs_multibyte_character_split_across_frames(client: MagicMock) -> None:
    frames = [
        Frame(StreamSource.STDOUT, b"caf\xc3"),
        Frame(StreamSource.STDOUT, b"\xa9\n"),
    ]
    client.containers.logs = AsyncMock(return_value=_FakeStream(frames))
    result = CliRunner().invoke(cli, ["logs", "web"])
    assert result.exit_code == 0
    assert "café" in result.output
    assert "�" not in result.output


def test_logs_not_found(client: MagicMock) -> None:
    missing = NotFound(404, '{"message":"No such container"}')
    client.containers.logs = AsyncMock(side_effect=missing)
    result = CliRunner().invoke(cli, ["logs", "missing"])
    assert result.exit_code == 1


# --- events ---


def test_events_json_lines(client: MagicMock) -> None:
    events = [{"Type": "container", "Action": "start"}, {"Type": "image", "Action": "pull"}]
    client.events = AsyncMock(return_value=_FakeStream(events))
    result = CliRunner().invoke(cli, ["events", "--json", "--filter", "type=container"])
    assert result.exit_code == 0
    lines = [json.loads(line) for line in result.output.splitlines()]
    assert [e["Action"] for e in lines] == ["start", "pull"]
    assert client.events.call_args.args[0].filters == {"type": ["container"]}


def test_events_bad_filter(client: MagicMock) -> None:
    result = CliRunner().invoke(cli, ["events", "--filter", "nonsense"])
    assert result.exit_code == 2
    client.events.assert_not_called()


# --- pull / build ---


def test_pull_progress(client: MagicMock) -> None:
    updates = [
        {"status": "Pulling from library/alpine", "id": "3"},
        {"status": "Downloading", "id": "a1", "progress": "[==>  ]"},
        {"status": "Status: Downloaded newer image for alpine:3"},
    ]
    client.images.pull = AsyncMock(return_value=_FakeStream(updates))
    result = CliRunner().invoke(cli, ["pull", "alpine", "--tag", "3"])
    assert result.exit_code == 0
    assert "a1: Downloading [==>  ]" in result.output
    options = client.images.pull.call_args.args[0]
    assert (options.image, options.tag) == ("alpine", "3")


@pytest.mark.parametrize(
    ("image", "expected_tag"),
    [
        ("alpine", "latest"),
        ("registry.local:5000/team/app", "latest"),
        ("alpine:3.20", None),
        ("registry.local:5000/app:1", None),
        ("alpine@sha256:abc", None),
    ],
)
def test_pull_defaults_to_latest_tag(
    client: MagicMock, image: str, expected_tag: str | None
) -> None:
    client.images.pull = AsyncMock(return_value=_FakeStream([]))
    result = CliRunner().invoke(cli, ["pull", image])
    assert result.exit_code == 0
    options = client.images.pull.call_args.args[0]
    assert (options.image, options.tag) == (image, expected_tag)


def test_pull_error_in_stream_exits_nonzero(client: MagicMock) -> None:
    client.images.pull = AsyncMock(return_value=_FakeStream([{"error": "manifest unknown"}]))
    result = CliRunner().invoke(cli, ["pull", "nope"])
    assert result.exit_code == 1


def test_build(client: MagicMock, tmp_path: Path) -> None:
    (tmp_path / "Dockerfile").write_text("FROM alpine\n")
    updates = [{"stream": "Step 1/1 : FROM alpine\n"}, {"aux": {"ID": "sha256:1"}}]
    client.images.build = AsyncMock(return_value=_FakeStream(updates))
    result = CliRunner().invoke(cli, ["build", str(tmp_path), "-t", "demo", "--no-cache"])
    assert result.exit_code == 0
    assert "Step 1/1 : FROM alpine" in result.output
    path, options = client.images.build.call_args.args
    assert path == str(tmp_path)
    assert options.tag == "demo"
    assert options.nocache is True


def test_build_missing_context() -> None:
    result = CliRunner().invoke(cli, ["build", "/nonexistent/context/dir"])
    assert result.exit_code == 2


# --- format_progress ---


@pytest.mark.parametrize(
    ("update", "expected"),
    [
        ({"stream": "Step 2/3\n"}, "Step 2/3"),
        ({"stream": "\n"}, None),
        ({"status": "Waiting", "id": "abc"}, "abc: Waiting"),
        ({"status": "Extracting", "id": "abc", "progress": "[=> ]"}, "abc: Extracting [=> ]"),
        ({"status": "Digest: sha256:1"}, "Digest: sha256:1"),
        ({"aux": {"ID": "x"}}, None),
    ],
)
def test_format_progress(update: dict[str, Any], expected: str | None) -> None:
    assert format_progress(update) == expected
