"""Configuration, events and frame helpers for the RTSP capture plugin."""

from __future__ import annotations

import base64
import json
import random
import re
from dataclasses import dataclass
from typing import Optional

from zmpipe.plugin import KEYFRAME_FLAG, FrameHeader, HwType, make_frame

DEFAULT_TRANSPORT = "tcp"
DEFAULT_MAX_STREAMS = 2
INITIAL_RECONNECT_DELAY_MS = 1000
MAX_RECONNECT_DELAY_MS = 5000
RECONNECT_JITTER_MS = 200

_C_SPACE = " \t\n\v\f\r"
_STRTOL = re.compile(r"[ \t\n\v\f\r]*([+-]?\d+)")

_HW_TYPES = {
    "cuda": HwType.CUDA,
    "vaapi": HwType.VAAPI,
    "videotoolbox": HwType.VTB,
    "dxva2": HwType.DXVA,
}


class RtspConfigError(ValueError):
    """The capture configuration is empty or names no stream URL."""


@dataclass
class RtspConfig:
    """Settings of the RTSP capture plugin."""

    url: str
    transport: str = DEFAULT_TRANSPORT
    max_streams: int = DEFAULT_MAX_STREAMS
    hw_decode: bool = True


def _value_start(cfg: str, key: str) -> Optional[int]:
    """Index just past the colon that follows ``"key"``, or None."""
    quoted = f'"{key}"'
    pos = cfg.find(quoted)
    if pos == -1:
        return None
    colon = cfg.find(":", pos + len(quoted))
    if colon == -1:
        return None
    return colon + 1


def _string_value(cfg: str, key: str) -> Optional[str]:
    start = _value_start(cfg, key)
    if start is None:
        return None
    while start < len(cfg) and (cfg[start] in _C_SPACE or cfg[start] == '"'):
        start += 1
    end = cfg.find('"', start)
    if end == -1:
        return None
    return cfg[start:end]


def _skip_space(cfg: str, start: int) -> int:
    while start < len(cfg) and cfg[start] in _C_SPACE:
        start += 1
    return start


def parse_rtsp_config(json_cfg: Optional[str]) -> RtspConfig:
    """Read the capture settings from a loosely formatted JSON string.

    Raises RtspConfigError when the string is empty or holds no URL.
    """
    if not json_cfg:
        raise RtspConfigError("Empty configuration")

    url = _string_value(json_cfg, "url") or ""
    transport = _string_value(json_cfg, "transport")
    cfg = RtspConfig(url=url)
    if transport is not None:
        cfg.transport = transport

    start = _value_start(json_cfg, "max_streams")
    if start is not None:
        match = _STRTOL.match(json_cfg, _skip_space(json_cfg, start))
        if match:
            cfg.max_streams = int(match.group(1))

    start = _value_start(json_cfg, "hw_decode")
    if start is not None:
        rest = json_cfg[_skip_space(json_cfg, start):]
        if rest.startswith("true"):
            cfg.hw_decode = True
        elif rest.startswith("false"):
            cfg.hw_decode = False

    if not cfg.url:
        raise RtspConfigError("No URL specified in configuration")
    return cfg


def map_hw_type(device_name: Optional[str]) -> HwType:
    """Frame hardware type for a decoder device name such as ``"cuda"``."""
    if not device_name:
        return HwType.CPU
    return _HW_TYPES.get(device_name.lower(), HwType.CPU)


def next_reconnect_delay(
    delay_ms: int,
    jitter_ms: Optional[int] = None,
    max_delay_ms: int = MAX_RECONNECT_DELAY_MS,
) -> int:
    """Delay before the next reconnection attempt: doubled, jittered and capped.

    Without ``jitter_ms`` a random jitter of up to 200 ms either way is used.
    """
    if jitter_ms is None:
        jitter_ms = random.randint(-RECONNECT_JITTER_MS, RECONNECT_JITTER_MS)
    return min(delay_ms * 2 + jitter_ms, max_delay_ms)


def _dumps(obj: dict) -> str:
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)


def stream_connected_event(url: str, video_streams: int, audio_streams: int) -> str:
    """JSON event announcing a successful connection."""
    return _dumps(
        {
            "event": "StreamConnected",
            "url": url,
            "video_streams": video_streams,
            "audio_streams": audio_streams,
        }
    )


def stream_metadata_event(
    stream_id: int,
    codec_id: int,
    width: int,
    height: int,
    pix_fmt: int,
    profile: int,
    level: int,
    extradata: bytes = b"",
) -> str:
    """JSON event describing a video stream; extradata is base64 encoded."""
    return _dumps(
        {
            "event": "StreamMetadata",
            "stream_id": stream_id,
            "codec_id": codec_id,
            "width": width,
            "height": height,
            "pix_fmt": pix_fmt,
            "profile": profile,
            "level": level,
            "extradata": base64.b64encode(bytes(extradata or b"")).decode("ascii"),
        }
    )


def packet_frame(
    stream_id: int,
    payload: bytes,
    pts_usec: int = 0,
    keyframe: bool = False,
    handle: int = 0,
) -> bytes:
    """Build the ``[header][payload]`` buffer for one captured packet."""
    data = bytes(payload)
    header = FrameHeader(
        stream_id=stream_id,
        hw_type=HwType.CPU,
        handle=handle,
        nbytes=len(data),
        flags=KEYFRAME_FLAG if keyframe else 0,
        pts_usec=pts_usec,
    )
    return make_frame(header, data)