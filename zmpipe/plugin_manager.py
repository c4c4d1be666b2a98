"""Creates the plugins of a pipeline and wires them together."""

from __future__ import annotations

import os
import re
import sys
import threading
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Union

from zmpipe.capture_thread import CaptureThread
from zmpipe.eventbus import EventBus
from zmpipe.hello import HelloPlugin
from zmpipe.motion import MotionBasicPlugin
from zmpipe.pipeline_loader import PluginConfig
from zmpipe.plugin import HostApi, LogLevel, Plugin, PluginType
from zmpipe.shmring import ShmRing

PluginFactory = Callable[[], Plugin]

DEFAULT_RING_SLOTS = 256
DEFAULT_SLOT_SIZE = 1024 * 1024
PLUGIN_EVENT_CHANNEL = "plugin_event"

_REGISTRY: dict[str, PluginFactory] = {
    "hello": HelloPlugin,
    "motion_basic": MotionBasicPlugin,
}
_registry_lock = threading.Lock()


class PluginLoadError(Exception):
    """A plugin could not be created, or the pipeline cannot be wired up."""


def _host_log(host_ctx: Any, level: int, msg: Optional[str]) -> None:
    try:
        name = LogLevel(level).name
    except ValueError:
        name = "INFO"
    text = msg if msg is not None else "(null)"
    print(f"[PLUGIN][{name}] {text}", file=sys.stderr, flush=True)


def _host_publish(host_ctx: Any, json_event: str) -> None:
    EventBus.instance().publish(PLUGIN_EVENT_CHANNEL, json_event)


HOST_API = HostApi(log=_host_log, publish_evt=_host_publish, on_frame=None)


def register_plugin(kind: str, factory: PluginFactory) -> None:
    """Make ``factory`` the plugin created for paths of the given kind."""
    if not kind:
        raise ValueError("plugin kind must not be empty")
    with _registry_lock:
        _REGISTRY[kind] = factory


def plugin_kind(path: Union[str, os.PathLike]) -> str:
    """Name of the plugin a path refers to: its file name without extension."""
    name = re.split(r"[\\/]", os.fspath(path))[-1]
    return os.path.splitext(name)[0]


def _create(path: str) -> Plugin:
    kind = plugin_kind(path)
    with _registry_lock:
        factory = _REGISTRY.get(kind)
    if factory is None:
        raise PluginLoadError(f"Failed to load plugin: {path}: unknown plugin kind {kind!r}")
    return factory()


@dataclass
class _Instance:
    plugin: Plugin
    config: PluginConfig


class PluginManager:
    """Holds the plugins of one pipeline and runs them."""

    def __init__(
        self, ring_slots: int = DEFAULT_RING_SLOTS, slot_size: int = DEFAULT_SLOT_SIZE
    ) -> None:
        self._ring_slots = ring_slots
        self._slot_size = slot_size
        self._loaded: list[Plugin] = []
        self._pipeline: list[_Instance] = []
        self._ring: Optional[ShmRing] = None
        self._capture: Optional[CaptureThread] = None
        self._input_index: Optional[int] = None

    def load_plugin(self, path: Union[str, os.PathLike]) -> Plugin:
        """Create a single plugin outside any pipeline and return it."""
        plugin = _create(os.fspath(path))
        self._loaded.append(plugin)
        return plugin

    def load_pipeline(self, pipeline: Iterable[PluginConfig]) -> None:
        """Create one plugin for each entry, in order.

        Raises PluginLoadError at the first entry that cannot be created;
        the plugins created before it stay loaded.
        """
        self._pipeline = []
        for pcfg in pipeline:
            self._pipeline.append(_Instance(_create(pcfg.path), pcfg))

    def start_all(self) -> None:
        """Start the first input plugin on a capture thread and every other plugin."""
        if not self._pipeline:
            return
        input_index = next(
            (
                i
                for i, inst in enumerate(self._pipeline)
                if inst.plugin.plugin_type == PluginType.INPUT
            ),
            None,
        )
        if input_index is None:
            raise PluginLoadError("No input plugin found in pipeline.")
        source = self._pipeline[input_index]
        others = [inst for i, inst in enumerate(self._pipeline) if i != input_index]

        self._input_index = input_index
        self._ring = ShmRing(self._ring_slots, self._slot_size)
        self._capture = CaptureThread(
            source.plugin,
            self._ring,
            [inst.plugin for inst in others],
            source.config.config_json,
        )
        self._capture.start()

        for inst in others:
            inst.plugin.start(HOST_API, None, inst.config.config_json)

    def stop_all(self) -> None:
        """Stop the capture thread and every plugin."""
        running_input = None
        if self._capture is not None:
            self._capture.stop()
            self._capture = None
            if self._input_index is not None:
                running_input = self._pipeline[self._input_index].plugin
        for inst in self._pipeline:
            if inst.plugin is not running_input:
                inst.plugin.stop()
        self._input_index = None

    def plugin_count(self) -> int:
        """Number of plugins in the loaded pipeline."""
        return len(self._pipeline)

    def plugin(self, index: int) -> Optional[Plugin]:
        """Plugin at ``index`` of the pipeline, or None if there is none."""
        if 0 <= index < len(self._pipeline):
            return self._pipeline[index].plugin
        return None

    def __enter__(self) -> "PluginManager":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop_all()