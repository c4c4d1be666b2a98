"""Plugin interface shared by the host and every pipeline stage."""

from __future__ import annotations

import struct
import sys
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Callable, ClassVar, Optional

PLUGIN_API_VERSION = 1
PLUGIN_INIT_SYMBOL = "zm_plugin_init"
KEYFRAME_FLAG = 0x1

_HEADER_STRUCT = struct.Struct("<IIQIIQ")
HEADER_SIZE = _HEADER_STRUCT.size


class LogLevel(IntEnum):
    """Severity of a message sent through the host logger."""

    DEBUG = 0
    INFO = 1
    WARN = 2
    ERROR = 3


class PluginType(IntEnum):
    """Role a plugin plays in a pipeline."""

    INPUT = 0
    PROCESS = 1
    DETECT = 2
    OUTPUT = 3
    STORE = 4


class HwType(IntEnum):
    """Where the frame data lives."""

    CPU = 0
    CUDA = 1
    VAAPI = 2
    VTB = 3
    DXVA = 4


@dataclass(frozen=True)
class FrameHeader:
    """Header that precedes every media packet or frame in a buffer."""

    stream_id: int = 0
    hw_type: int = HwType.CPU
    handle: int = 0
    nbytes: int = 0
    flags: int = 0
    pts_usec: int = 0

    def pack(self) -> bytes:
        """Encode the header as its fixed-size wire form."""
        try:
            return _HEADER_STRUCT.pack(
                self.stream_id,
                int(self.hw_type),
                self.handle,
                self.nbytes,
                self.flags,
                self.pts_usec,
            )
        except struct.error as exc:
            raise ValueError(f"frame header field out of range: {exc}") from exc

    @classmethod
    def unpack(cls, data: bytes | bytearray | memoryview) -> "FrameHeader":
        """Decode a header from the start of ``data``."""
        view = memoryview(data).cast("B")
        if view.nbytes < HEADER_SIZE:
            raise ValueError(
                f"buffer of {view.nbytes} bytes is shorter than a frame header "
                f"({HEADER_SIZE} bytes)"
            )
        stream_id, hw_type, handle, nbytes, flags, pts_usec = _HEADER_STRUCT.unpack(
            view[:HEADER_SIZE]
        )
        return cls(stream_id, hw_type, handle, nbytes, flags, pts_usec)


def split_frame(buf: bytes | bytearray | memoryview) -> tuple[FrameHeader, bytes]:
    """Split a ``[header][payload]`` buffer into its header and payload."""
    header = FrameHeader.unpack(buf)
    return header, bytes(memoryview(buf).cast("B")[HEADER_SIZE:])


def make_frame(header: FrameHeader, payload: bytes | bytearray | memoryview = b"") -> bytes:
    """Build a ``[header][payload]`` buffer."""
    return header.pack() + bytes(payload)


def plugin_extension() -> str:
    """File extension of loadable plugins on this platform."""
    if sys.platform.startswith("win"):
        return ".dll"
    if sys.platform == "darwin":
        return ".dylib"
    return ".so"


def host_log(msg: str) -> None:
    """Write a host message to standard output."""
    print(msg, flush=True)


def publish_event(json_event: str) -> None:
    """Write an event to standard output."""
    print(f"Event: {json_event}", flush=True)


LogFn = Callable[[Any, LogLevel, str], None]
PublishFn = Callable[[Any, str], None]
FrameFn = Callable[[Any, bytes], None]


@dataclass
class HostApi:
    """Callbacks the host offers to a plugin; any of them may be absent."""

    log: Optional[LogFn] = None
    publish_evt: Optional[PublishFn] = None
    on_frame: Optional[FrameFn] = None


class Plugin:
    """Base class for pipeline plugins."""

    version: ClassVar[int] = PLUGIN_API_VERSION
    plugin_type: ClassVar[PluginType] = PluginType.PROCESS

    def __init__(self) -> None:
        self.host: Optional[HostApi] = None
        self.host_ctx: Any = None

    def start(self, host: Optional[HostApi], host_ctx: Any, json_cfg: str) -> None:
        """Attach the plugin to a host; raises on invalid configuration."""
        self.host = host
        self.host_ctx = host_ctx

    def stop(self) -> None:
        """Detach the plugin from its host."""
        self.host = None
        self.host_ctx = None

    def on_frame(self, buf: bytes) -> None:
        """Receive a ``[header][payload]`` buffer; the base plugin ignores it."""

    def _log(self, level: LogLevel, msg: str) -> None:
        if self.host is not None and self.host.log is not None:
            self.host.log(self.host_ctx, level, msg)

    def _publish_event(self, json_event: str) -> None:
        if self.host is not None and self.host.publish_evt is not None:
            self.host.publish_evt(self.host_ctx, json_event)

    def _emit_frame(self, buf: bytes) -> None:
        if self.host is not None and self.host.on_frame is not None:
            self.host.on_frame(self.host_ctx, buf)