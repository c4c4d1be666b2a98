import json
import sqlite3
from contextlib import closing

import pytest

from zmpipe.pipeline_loader import PipelineError, PipelineLoader, PluginConfig
from zmpipe.plugin import plugin_extension


def make_db(path):
    with closing(sqlite3.connect(path)) as conn:
        conn.executescript(
            "CREATE TABLE pipelines(id INTEGER PRIMARY KEY, monitor_id INTEGER);"
            "CREATE TABLE plugin_instances(id INTEGER PRIMARY KEY, pipeline_id INTEGER, path TEXT);"
            "INSERT INTO pipelines(id, monitor_id) VALUES (1, 42);"
            "INSERT INTO plugin_instances(pipeline_id, path) VALUES (1, 'foo.so');"
            "INSERT INTO plugin_instances(pipeline_id, path) VALUES (1, 'bar.so');"
        )
        conn.commit()


def write_json(tmp_path, data):
    path = tmp_path / "pipeline.json"
    path.write_text(json.dumps(data) if not isinstance(data, str) else data)
    return path


def test_load_from_db(tmp_path):
    db = tmp_path / "test_pipelines.db"
    make_db(db)
    loader = PipelineLoader(db)
    pipeline = loader.load(42)
    assert [p.path for p in pipeline] == ["foo.so", "bar.so"]
    assert [p.config_json for p in loader.pipeline] == ["{}", "{}"]


def test_db_unknown_monitor_raises(tmp_path):
    db = tmp_path / "test_pipelines.db"
    make_db(db)
    with pytest.raises(PipelineError):
        PipelineLoader(db).load(7)


def test_db_without_schema_raises(tmp_path):
    with pytest.raises(PipelineError):
        PipelineLoader(tmp_path / "empty.db").load(1)


def test_json_kind_path_and_children(tmp_path):
    path = write_json(
        tmp_path,
        {
            "plugins": [
                {
                    "kind": "capture_rtsp",
                    "config": {"url": "rtsp://localhost:8554/cam", "b": 1},
                    "children": [
                        {"path": "/opt/decode.so", "cfg": {"threads": 2}},
                        {"kind": "hello"},
                    ],
                }
            ]
        },
    )
    pipeline = PipelineLoader(path, is_json=True).load()
    ext = plugin_extension()
    assert pipeline == [
        PluginConfig(f"plugins/capture_rtsp/capture_rtsp{ext}", '{"b":1,"url":"rtsp://localhost:8554/cam"}'),
        PluginConfig("/opt/decode.so", '{"threads":2}'),
        PluginConfig(f"plugins/hello/hello{ext}", ""),
    ]


def test_json_skips_non_object_entries(tmp_path):
    path = write_json(tmp_path, {"plugins": [5, {"path": "a.so"}]})
    assert PipelineLoader(path, is_json=True).load() == [PluginConfig("a.so", "")]


@pytest.mark.parametrize(
    "data",
    [
        [1, 2],
        {"other": []},
        {"plugins": {}},
        {"plugins": []},
        {"plugins": ["x"]},
        {"plugins": [{"path": 3}]},
        "{not json",
    ],
)
def test_json_errors(tmp_path, data):
    path = write_json(tmp_path, data)
    with pytest.raises(PipelineError):
        PipelineLoader(path, is_json=True).load()


def test_json_missing_file_raises(tmp_path):
    with pytest.raises(PipelineError, match="Cannot open file"):
        PipelineLoader(tmp_path / "missing.json", is_json=True).load()


def test_print_progress(tmp_path, capsys):
    path = write_json(tmp_path, {"plugins": [{"path": "a.so"}]})
    loader = PipelineLoader(path, is_json=True)
    loader.load()
    loader.print_progress()
    assert capsys.readouterr().out == "[PipelineLoader] Progress log:\n  Loaded plugin a.so\n"