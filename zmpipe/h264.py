"""Helpers for H.264 Annex B byte streams."""

from __future__ import annotations

from typing import Iterator, Optional

START_CODE = b"\x00\x00\x00\x01"
NAL_TYPE_MASK = 0x1F
NAL_SPS = 7
NAL_PPS = 8


def iter_nal_units(data: bytes | bytearray | memoryview) -> Iterator[tuple[int, bytes]]:
    """Yield ``(nal_type, unit)`` for each NAL unit behind a four-byte start code.

    A unit runs from just after its start code to the next start code, or to
    the end of the data. Bytes before the first start code are skipped.
    """
    buf = bytes(data)
    size = len(buf)
    pos = buf.find(START_CODE)
    while pos != -1 and pos + len(START_CODE) < size:
        nal_start = pos + len(START_CODE)
        nxt = buf.find(START_CODE, nal_start)
        nal_end = size if nxt == -1 else nxt
        yield buf[nal_start] & NAL_TYPE_MASK, buf[nal_start:nal_end]
        pos = nxt


def extract_parameter_sets(
    data: bytes | bytearray | memoryview,
) -> Optional[tuple[bytes, bytes]]:
    """Return ``(sps, pps)`` found in ``data``, or None if either is missing.

    When a set appears more than once, the last one wins.
    """
    sps = pps = b""
    for nal_type, unit in iter_nal_units(data):
        if nal_type == NAL_SPS:
            sps = unit
        elif nal_type == NAL_PPS:
            pps = unit
    if not sps or not pps:
        return None
    return sps, pps


def build_extradata(sps: bytes | bytearray, pps: bytes | bytearray) -> bytes:
    """Codec extradata in Annex B form: ``[start][SPS][start][PPS]``."""
    return START_CODE + bytes(sps) + START_CODE + bytes(pps)