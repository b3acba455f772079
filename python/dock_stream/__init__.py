# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

from __future__ import annotations

from importlib.metadata import version

from dock_stream._client import DockerClient
from dock_stream._config import DockStreamConfig, load_config
from dock_stream._connector import Connection, Connector
from dock_stream._endpoint import (
    LocalEndpoint,
    RemoteEndpoint,
    detect_socket,
    parse_endpoint,
    resolve_endpoint,
    tls_context,
)
from dock_stream._http import RawResponse, ResponseStream, open_response, open_stream, request
from dock_stream._jsonstream import decode_json_stream
from dock_stream._stream import (
    DemuxResult,
    collect_output,
    demux_frames,
    frame_decoder,
    raw_bytes,
    raw_frames,
)
from dock_stream.errors import (
    ApiError,
    BadParameter,
    Conflict,
    DecodeError,
    DockStreamError,
    EndpointError,
    EngineNotRunning,
    FrameError,
    NotFound,
    ServerFault,
    SocketCommunicationError,
    SocketConnectionError,
    SocketError,
    Unclassified,
    error_for_status,
)
from dock_stream.options import (
    AttachOptions,
    BuildOptions,
    ContainerCreateOptions,
    ContainerListOptions,
    EventsOptions,
    ExecOptions,
    LogsOptions,
    PullOptions,
    RegistryAuth,
)
from dock_stream.types import ExecResult, Frame, StreamSource

__version__ = version("dock-stream")


def get_version() -> str:
    """Return the dock-stream package version string."""
    return __version__


__all__ = [
    "ApiError",
    "AttachOptions",
    "BadParameter",
    "BuildOptions",
    "Conflict",
    "Connection",
    "Connector",
    "ContainerCreateOptions",
    "ContainerListOptions",
    "DecodeError",
    "DemuxResult",
    "DockStreamConfig",
    "DockStreamError",
    "DockerClient",
    "EndpointError",
    "EngineNotRunning",
    "EventsOptions",
    "ExecOptions",
    "ExecResult",
    "Frame",
    "FrameError",
    "LocalEndpoint",
    "LogsOptions",
    "NotFound",
    "PullOptions",
    "RawResponse",
    "RegistryAuth",
    "RemoteEndpoint",
    "ResponseStream",
    "ServerFault",
    "SocketCommunicationError",
    "SocketConnectionError",
    "SocketError",
    "StreamSource",
    "Unclassified",
    "__version__",
    "collect_output",
    "decode_json_stream",
    "demux_frames",
    "detect_socket",
    "error_for_status",
    "frame_decoder",
    "get_version",
    "load_config",
    "open_response",
    "open_stream",
    "parse_endpoint",
    "raw_bytes",
    "raw_frames",
    "request",
    "resolve_endpoint",
    "tls_context",
]
