"""Background-subtraction motion detector working on the luma plane."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np

from zmpipe.plugin import HEADER_SIZE, FrameHeader, HostApi, LogLevel, Plugin, PluginType

_INT_MAX = 2**31
_ATOI = re.compile(r"\s*([+-]?\d+)")


@dataclass
class MotionConfig:
    """Detector settings."""

    threshold: int = 18
    min_pixels: int = 800
    width: int = 0
    height: int = 0
    downscale: int = 1  # 1 = original, 2 = half, 0 = custom size
    out_w: int = 0
    out_h: int = 0


def _atoi(text: str) -> int:
    match = _ATOI.match(text)
    return int(match.group(1)) if match else 0


def parse_config(json_cfg: Optional[str]) -> MotionConfig:
    """Read detector settings from a loosely formatted JSON string."""
    cfg = MotionConfig()
    if json_cfg is None:
        return cfg
    s = json_cfg

    def find_int(key: str, current: int) -> int:
        pos = s.find(key)
        if pos == -1:
            return current
        colon = s.find(":", pos)
        if colon == -1:
            return current
        return min(max(_atoi(s[colon + 1:]), 0), 255 * 255)

    cfg.threshold = find_int("threshold", cfg.threshold)
    cfg.min_pixels = find_int("min_pixels", cfg.min_pixels)

    pos = s.find("downscale")
    if pos != -1:
        first = s.find('"', pos + 10)
        if first != -1:
            second = s.find('"', first + 1)
            if second != -1:
                value = s[first + 1:second]
                if value == "orig":
                    cfg.downscale = 1
                elif value == "half":
                    cfg.downscale = 2
                else:
                    x = value.find("x")
                    if x != -1:
                        cfg.out_w = _atoi(value)
                        cfg.out_h = _atoi(value[x + 1:])
                        cfg.downscale = 0

    cfg.threshold = min(max(cfg.threshold, 1), 255)
    cfg.min_pixels = max(cfg.min_pixels, 1)
    return cfg


class MotionBasicPlugin(Plugin):
    """Detect plugin that publishes an event when enough pixels change.

    The frame width is carried in the header's ``stream_id`` and the height
    in its ``flags``; the payload starts with the luma plane.
    """

    plugin_type = PluginType.DETECT

    def __init__(self) -> None:
        super().__init__()
        self.config: Optional[MotionConfig] = None
        self._background: Optional[np.ndarray] = None

    def start(self, host: Optional[HostApi], host_ctx: Any, json_cfg: str) -> None:
        """Attach to the host and read the configuration."""
        super().start(host, host_ctx, json_cfg)
        self.config = parse_config(json_cfg)
        self._background = None

    def stop(self) -> None:
        """Detach and drop the background model."""
        super().stop()
        self.config = None
        self._background = None

    def _ensure_background(self, size: int) -> np.ndarray:
        if self._background is None or self._background.size != size:
            self._background = np.zeros(size, dtype=np.uint8)
        return self._background

    def on_frame(self, buf: bytes) -> None:
        """Compare the frame with the background and update the background."""
        if self.config is None:
            raise RuntimeError("motion plugin has not been started")
        if buf is None:
            return
        view = memoryview(buf).cast("B")
        if view.nbytes < HEADER_SIZE:
            return
        cfg = self.config
        hdr = FrameHeader.unpack(view)
        if hdr.hw_type != 0:
            self._log(LogLevel.WARN, "GPU frame ignored")
            return
        w, h = hdr.stream_id, hdr.flags
        if not (0 < w < _INT_MAX and 0 < h < _INT_MAX):
            return
        y_size = w * h
        self._ensure_background(y_size)
        if view.nbytes < HEADER_SIZE + y_size:
            return
        luma = np.frombuffer(view, dtype=np.uint8, count=y_size, offset=HEADER_SIZE)

        if cfg.downscale == 2:
            ow, oh = w // 2, h // 2
            blocks = (
                luma.reshape(h, w)[: 2 * oh, : 2 * ow]
                .astype(np.uint16)
                .reshape(oh, 2, ow, 2)
                .sum(axis=(1, 3))
            )
            luma = (blocks // 4).astype(np.uint8).ravel()
            y_size = ow * oh
            self._ensure_background(y_size)

        background = self._background
        diff = np.abs(luma.astype(np.int16) - background.astype(np.int16))
        count = int(np.count_nonzero(diff > cfg.threshold))

        updated = (background.astype(np.uint16) * 31 + luma) // 32
        self._background = updated.astype(np.uint8)

        if count >= cfg.min_pixels:
            self._publish_event(f'{{"mon":{hdr.stream_id},"pixels":{count}}}')