"""Runs an input plugin and fans its frames out to the other plugins."""

from __future__ import annotations

import logging
import threading
from typing import Any, Iterable, Optional

from zmpipe.plugin import HEADER_SIZE, FrameHeader, HostApi, Plugin
from zmpipe.shmring import ShmRing

logger = logging.getLogger(__name__)

_POLL_INTERVAL = 0.005


def make_ring_host_api(ring: ShmRing) -> HostApi:
    """Build a host API whose events and frames are pushed into ``ring``."""

    def publish_evt(host_ctx: Any, json_event: Optional[str]) -> None:
        if json_event is None:
            return
        if not ring.push(json_event.encode("utf-8")):
            logger.debug("CaptureThread: ring rejected event of %d chars", len(json_event))

    def on_frame(host_ctx: Any, buf: Optional[bytes]) -> None:
        if buf is None:
            return
        view = memoryview(buf).cast("B")
        if view.nbytes < HEADER_SIZE:
            return
        hdr = FrameHeader.unpack(view)
        logger.debug(
            "CaptureThread: API on_frame: stream_id=%d, bytes=%d, pts_usec=%d, "
            "flags=0x%x, hw_type=%d, payload_size=%d",
            hdr.stream_id,
            hdr.nbytes,
            hdr.pts_usec,
            hdr.flags,
            hdr.hw_type,
            view.nbytes - HEADER_SIZE,
        )
        if not ring.push(view):
            logger.debug("CaptureThread: ring rejected frame of %d bytes", view.nbytes)

    return HostApi(log=None, publish_evt=publish_evt, on_frame=on_frame)


class CaptureThread:
    """Starts an input plugin on a worker thread and forwards what it produces.

    The input plugin writes into ``ring`` through the host API; the worker
    pops every message and hands it to each output plugin.
    """

    def __init__(
        self,
        input_plugin: Plugin,
        ring: ShmRing,
        outputs: Iterable[Optional[Plugin]],
        input_config: str = "{}",
    ) -> None:
        self._input = input_plugin
        self._ring = ring
        self._outputs = list(outputs)
        self._input_config = input_config
        self._running = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._running.is_set()

    def start(self) -> None:
        """Start the worker; does nothing if it is already running."""
        with self._lock:
            if self._running.is_set():
                return
            self._running.set()
            self._thread = threading.Thread(target=self._run, name="capture", daemon=True)
            self._thread.start()

    def stop(self) -> None:
        """Stop the worker and wait for it; does nothing if it is not running."""
        with self._lock:
            if not self._running.is_set():
                return
            self._running.clear()
            thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def __enter__(self) -> "CaptureThread":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def _run(self) -> None:
        host = make_ring_host_api(self._ring)
        try:
            self._input.start(host, self._ring, self._input_config)
        except Exception:
            logger.exception("CaptureThread: input plugin failed to start")
        try:
            while self._running.is_set():
                data = self._ring.pop(timeout=_POLL_INTERVAL)
                if data is None:
                    continue
                if len(data) <= HEADER_SIZE:
                    logger.warning("CaptureThread: Received invalid data size")
                    continue
                self._fan_out(data)
        finally:
            self._input.stop()

    def _fan_out(self, data: bytes) -> None:
        for out in self._outputs:
            if out is None:
                continue
            try:
                out.on_frame(data)
            except Exception:
                logger.exception("CaptureThread: output plugin failed on frame")