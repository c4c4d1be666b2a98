"""Minimal output plugin that counts the frames it receives."""

from __future__ import annotations

from typing import Any, Optional

from zmpipe.plugin import HEADER_SIZE, HostApi, LogLevel, Plugin, PluginType


class HelloPlugin(Plugin):
    """Output plugin that counts every well-formed frame buffer."""

    plugin_type = PluginType.OUTPUT

    def __init__(self) -> None:
        super().__init__()
        self.frame_count = 0

    def start(self, host: Optional[HostApi], host_ctx: Any, json_cfg: str) -> None:
        """Attach to the host and announce the start."""
        super().start(host, host_ctx, json_cfg)
        self._log(LogLevel.INFO, "hello plugin start")

    def stop(self) -> None:
        """Detach from the host; the frame count is kept."""
        super().stop()

    def on_frame(self, buf: bytes) -> None:
        """Count ``buf`` if it holds at least a frame header."""
        if buf is None or memoryview(buf).nbytes < HEADER_SIZE:
            return
        self.frame_count += 1