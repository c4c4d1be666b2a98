"""Load a plugin pipeline description from a JSON file or an SQLite database."""

from __future__ import annotations

import json
import logging
import os
import sqlite3
from contextlib import closing
from dataclasses import dataclass
from typing import Any, Union

from zmpipe.plugin import plugin_extension

logger = logging.getLogger(__name__)

_PIPELINE_QUERY = (
    "SELECT pi.path FROM pipelines p "
    "JOIN plugin_instances pi ON pi.pipeline_id = p.id "
    "WHERE p.monitor_id = ?;"
)


@dataclass
class PluginConfig:
    """Where a plugin is found and the JSON configuration it is started with."""

    path: str = ""
    config_json: str = ""


class PipelineError(Exception):
    """The pipeline description could not be read or is empty."""


def _dump(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), sort_keys=True, ensure_ascii=False)


class PipelineLoader:
    """Reads the ordered list of plugins that make up a pipeline."""

    def __init__(self, path: Union[str, os.PathLike], is_json: bool = False) -> None:
        self.path = os.fspath(path)
        self.is_json = is_json
        self.pipeline: list[PluginConfig] = []
        self.progress: list[str] = []

    def load(self, monitor_id: int = 0) -> list[PluginConfig]:
        """Load the pipeline; ``monitor_id`` selects it in database mode.

        Raises PipelineError when the source cannot be read or holds no plugins.
        """
        self.pipeline = []
        self.progress = []
        if self.is_json:
            self._load_json()
        else:
            self._load_db(monitor_id)
        if not self.pipeline:
            raise PipelineError(f"no plugins configured in {self.path}")
        return self.pipeline

    def _add(self, pcfg: PluginConfig) -> None:
        self.pipeline.append(pcfg)
        self.progress.append(f"Loaded plugin {pcfg.path}")

    def _load_json(self) -> None:
        try:
            with open(self.path, encoding="utf-8") as fh:
                root = json.load(fh)
        except OSError as exc:
            raise PipelineError(f"Cannot open file: {self.path}") from exc
        except ValueError as exc:
            raise PipelineError(f"Exception parsing JSON {self.path}: {exc}") from exc
        if not isinstance(root, dict):
            raise PipelineError(f"JSON root is not an object in {self.path}")
        if "plugins" not in root:
            raise PipelineError(f'"plugins" key not found in {self.path}')
        plugins = root["plugins"]
        if not isinstance(plugins, list):
            raise PipelineError(f'"plugins" is not an array in {self.path}')
        for entry in plugins:
            self._add_json_plugin(entry)

    def _add_json_plugin(self, entry: Any) -> None:
        if not isinstance(entry, dict):
            logger.warning("A plugin entry is not an object in %s", self.path)
            return
        pcfg = PluginConfig()
        if "path" in entry:
            pcfg.path = self._string_field(entry, "path")
        elif "kind" in entry:
            kind = self._string_field(entry, "kind")
            pcfg.path = f"plugins/{kind}/{kind}{plugin_extension()}"
        if "config" in entry:
            pcfg.config_json = _dump(entry["config"])
        elif "cfg" in entry:
            pcfg.config_json = _dump(entry["cfg"])
        self._add(pcfg)
        children = entry.get("children")
        if isinstance(children, list):
            for child in children:
                self._add_json_plugin(child)

    def _string_field(self, entry: dict, key: str) -> str:
        value = entry[key]
        if not isinstance(value, str):
            raise PipelineError(f'"{key}" is not a string in {self.path}')
        return value

    def _load_db(self, monitor_id: int) -> None:
        try:
            with closing(sqlite3.connect(self.path)) as conn:
                rows = conn.execute(_PIPELINE_QUERY, (monitor_id,)).fetchall()
        except sqlite3.Error as exc:
            raise PipelineError(f"Cannot read pipeline DB {self.path}: {exc}") from exc
        for (path,) in rows:
            self._add(PluginConfig(path="" if path is None else str(path), config_json="{}"))

    def print_progress(self) -> None:
        """Print what the last load did."""
        print("[PipelineLoader] Progress log:")
        for msg in self.progress:
            print(f"  {msg}")