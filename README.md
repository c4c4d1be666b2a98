# zmpipe

zmpipe runs video monitoring pipelines made of plugins. An input plugin
produces frames. A capture thread passes them through a bounded ring buffer
and hands each one to every other plugin in the pipeline. Plugins report what
they find as JSON events on an in-process event bus.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## What is included

The package has two built-in plugin kinds:

- `hello` (`zmpipe.hello.HelloPlugin`) is an output plugin. It counts every
  frame buffer that holds at least a frame header and keeps the count in
  `frame_count`.
- `motion_basic` (`zmpipe.motion.MotionBasicPlugin`) is a detect plugin. It
  compares the luma plane of each frame with a running background. When at
  least `min_pixels` pixels differ by more than `threshold`, it publishes
  `{"mon": <stream_id>, "pixels": <count>}`. The frame width is read from the
  header's `stream_id` and the height from its `flags`. The plugin accepts
  `"downscale": "half"`, which averages 2x2 blocks before comparing.

## What is not included

The package has no plugin that captures from a camera or RTSP stream. It has
no video decoder and no plugin that writes recordings to disk. A pipeline
needs an input plugin to do anything. You supply one yourself by subclassing
`zmpipe.plugin.Plugin` with `plugin_type = PluginType.INPUT` and registering
it with `register_plugin`.

For an RTSP input, `zmpipe.rtsp_config` provides the parts that do not touch
the network:

- `parse_rtsp_config` reads the settings: `url`, `transport`, `max_streams`
  and `hw_decode`.
- `next_reconnect_delay` gives the reconnection delay: it doubles, adds jitter
  and is capped.
- `stream_connected_event` and `stream_metadata_event` format the events.
- `map_hw_type` maps device names to hardware types.
- `packet_frame` builds frame buffers.

`zmpipe.h264` finds NAL units and SPS/PPS parameter sets in Annex B data, and
builds codec extradata from them.

## Running a pipeline

A pipeline is a JSON file with a `plugins` array. Each entry names a plugin
by `kind` or by `path`. It may carry its settings under `config` (or `cfg`),
and it may list `children`, which are added to the pipeline right after their
parent.

A plugin is chosen by the file name of its path, without the extension. For
example, `plugins/motion_basic/motion_basic.so` selects `motion_basic`.

```json
{
  "plugins": [
    {
      "kind": "my_input",
      "config": {"url": "rtsp://localhost:8554/mystream"},
      "children": [
        {"kind": "motion_basic", "config": {"threshold": 18, "min_pixels": 800}}
      ]
    }
  ]
}
```

Start it with:

```
zmpipe --pipeline pipeline.json
```

You can also let zmpipe use the first `.json` file in a directory, taking the
names in sorted order:

```
zmpipe --pipelines-dir ./pipelines
```

A file whose name does not end in `.json` is read as an SQLite database. Its
`pipelines(id, monitor_id)` and `plugin_instances(pipeline_id, path)` tables
are queried for monitor 0.

The command stops with exit status 3 if the pipeline cannot be loaded. It
stops with exit status 4 if a plugin kind is unknown. Plugin kinds registered
in your own code are not known to the command, since the command only sees
the built-in kinds.

If no input plugin is present, the command reports it and keeps running
without starting any plugin. Otherwise it runs until you press Ctrl+C, then
stops every plugin.

## Using the library

- `zmpipe.pipeline_loader.PipelineLoader(path, is_json)` reads a pipeline.
  `load(monitor_id)` returns a list of `PluginConfig(path, config_json)`. It
  raises `PipelineError` if the source cannot be read or holds no plugins.
- `zmpipe.plugin_manager.PluginManager` creates the plugins of a pipeline
  with `load_pipeline`, which raises `PluginLoadError` for an unknown kind.
  `start_all()` starts the first input plugin on a `CaptureThread` and every
  other plugin as an output. `stop_all()` stops them all.
- `zmpipe.plugin_manager.register_plugin(kind, factory)` adds plugin kinds.
- `zmpipe.capture_thread.CaptureThread` runs an input plugin with a host API
  from `make_ring_host_api(ring)`. It pops each buffer from the ring and
  passes it to the outputs.
- `zmpipe.plugin` defines the interface:
  - `Plugin`, with `start`, `stop` and `on_frame`.
  - `HostApi`, with the `log`, `publish_evt` and `on_frame` callbacks.
  - `FrameHeader`, the 32-byte binary header, with `pack` and `unpack`.
  - `make_frame` and `split_frame`.
- `zmpipe.eventbus.EventBus` is a thread-safe publish/subscribe bus. Events
  from plugins started by `PluginManager` arrive on `EventBus.instance()` on
  the `plugin_event` channel.
- `zmpipe.shmring.ShmRing(slot_count, slot_size)` is an in-process ring of
  fixed-size slots that holds at most `slot_count - 1` messages.
  - `push` returns False when the ring is full or the data is too big.
  - `pop(timeout)` waits for data and returns None on timeout.
- `zmpipe.monitor.start_monitor(monitor_id, db_path)` loads a monitor's
  pipeline from a database and starts capture for it. It returns the running
  `CaptureThread`, or None.

A motion detector fed two frames directly:

```python
from zmpipe.motion import MotionBasicPlugin
from zmpipe.plugin import FrameHeader, HostApi, make_frame

events = []
host = HostApi(publish_evt=lambda ctx, msg: events.append(msg))
plugin = MotionBasicPlugin()
plugin.start(host, None, '{"threshold": 18, "min_pixels": 800}')

w, h = 64, 64
header = FrameHeader(stream_id=w, flags=h)  # width and height
still = bytearray(w * h)
moved = bytearray(still)
for y in range(10, 50):
    moved[y * w + 10 : y * w + 50] = b"\xff" * 40

plugin.on_frame(make_frame(header, still))
plugin.on_frame(make_frame(header, moved))
print(events)  # ['{"mon":64,"pixels":1600}']
plugin.stop()
```