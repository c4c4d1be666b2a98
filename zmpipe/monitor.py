"""Start the plugin pipeline configured for a monitor."""

from __future__ import annotations

import os
import sys
from typing import Optional, Union

from zmpipe.capture_thread import CaptureThread
from zmpipe.pipeline_loader import PipelineError, PipelineLoader
from zmpipe.plugin import PluginType
from zmpipe.plugin_manager import PluginLoadError, PluginManager
from zmpipe.shmring import ShmRing

DEFAULT_DB_PATH = "pipelines.db"
RING_SLOTS = 256
RING_SLOT_SIZE = 1024 * 1024


def start_monitor(
    monitor_id: int, db_path: Union[str, os.PathLike] = DEFAULT_DB_PATH
) -> Optional[CaptureThread]:
    """Start the capture pipeline stored in the database for ``monitor_id``.

    Returns the running capture thread, which the caller stops, or None
    when no pipeline or no input plugin is configured.
    """
    loader = PipelineLoader(db_path, is_json=False)
    try:
        pipeline = loader.load(monitor_id)
    except PipelineError:
        print("startMonitor: no pipeline configured for monitor", file=sys.stderr)
        return None

    manager = PluginManager()
    try:
        manager.load_pipeline(pipeline)
    except PluginLoadError as exc:
        print(f"startMonitor: {exc}", file=sys.stderr)
    plugins = [manager.plugin(i) for i in range(manager.plugin_count())]

    input_plugin = None
    outputs = []
    for plugin in plugins:
        if plugin.plugin_type == PluginType.INPUT:
            input_plugin = plugin
        else:
            outputs.append(plugin)
    if input_plugin is None:
        print("startMonitor: no INPUT plugin found", file=sys.stderr)
        return None

    ring = ShmRing(RING_SLOTS, RING_SLOT_SIZE)
    capture = CaptureThread(input_plugin, ring, outputs, "{}")
    capture.start()
    return capture