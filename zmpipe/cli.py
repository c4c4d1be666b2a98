"""Command that loads a pipeline description and runs its plugins."""

from __future__ import annotations

import os
import sys
import time
from typing import Optional, Sequence, Union

from zmpipe.pipeline_loader import PipelineError, PipelineLoader
from zmpipe.plugin_manager import PluginLoadError, PluginManager

PROG = "zmpipe"


def _print_usage() -> None:
    print(f"Usage: {PROG} --pipeline <pipeline.json>")
    print(f"       or: {PROG} --pipelines-dir <dir>")


def find_pipeline_file(pipelines_dir: Union[str, os.PathLike]) -> Optional[str]:
    """Path of the first ``.json`` file in ``pipelines_dir``, or None."""
    with os.scandir(pipelines_dir) as entries:
        names = sorted(entry.path for entry in entries)
    return next((path for path in names if os.path.splitext(path)[1] == ".json"), None)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run a pipeline until interrupted; returns the process exit status."""
    args = sys.argv[1:] if argv is None else list(argv)
    pipeline_file = ""
    pipelines_dir = ""
    it = iter(args)
    for arg in it:
        if arg == "--pipeline":
            value = next(it, None)
            if value is not None:
                pipeline_file = value
        elif arg == "--pipelines-dir":
            value = next(it, None)
            if value is not None:
                pipelines_dir = value
        elif arg in ("-h", "--help"):
            _print_usage()
            return 0

    if not pipeline_file and not pipelines_dir:
        _print_usage()
        return 1

    if not pipeline_file:
        try:
            found = find_pipeline_file(pipelines_dir)
        except OSError as exc:
            print(f"Cannot read {pipelines_dir}: {exc}", file=sys.stderr)
            return 2
        if found is None:
            print(f"No pipeline JSON found in {pipelines_dir}", file=sys.stderr)
            return 2
        pipeline_file = found
        print(f"Using pipeline: {pipeline_file}")

    is_json = len(pipeline_file) > 5 and pipeline_file.endswith(".json")
    loader = PipelineLoader(pipeline_file, is_json)
    try:
        pipeline = loader.load()
    except PipelineError as exc:
        print(f"Failed to load pipeline: {pipeline_file} ({exc})", file=sys.stderr)
        return 3
    loader.print_progress()

    manager = PluginManager()
    try:
        manager.load_pipeline(pipeline)
    except PluginLoadError as exc:
        print(f"Failed to load plugins for pipeline. ({exc})", file=sys.stderr)
        return 4

    try:
        manager.start_all()
    except PluginLoadError as exc:
        print(f"PluginManager::startAll: {exc}", file=sys.stderr)
    print("[zm-core] Pipeline running. Press Ctrl+C to exit.", flush=True)
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        manager.stop_all()
    return 0