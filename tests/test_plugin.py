import pytest

from zmpipe.plugin import (
    HEADER_SIZE,
    FrameHeader,
    HostApi,
    HwType,
    LogLevel,
    Plugin,
    host_log,
    make_frame,
    plugin_extension,
    publish_event,
    split_frame,
)


def test_header_size_matches_wire_layout():
    assert len(FrameHeader().pack()) == HEADER_SIZE
    assert HEADER_SIZE == 32


def test_header_round_trip():
    hdr = FrameHeader(
        stream_id=3,
        hw_type=HwType.VAAPI,
        handle=0xDEADBEEF,
        nbytes=1234,
        flags=1,
        pts_usec=9_876_543_210,
    )
    assert FrameHeader.unpack(hdr.pack()) == hdr


def test_header_stream_id_is_first_little_endian_word():
    packed = FrameHeader(stream_id=1).pack()
    assert packed[:4] == b"\x01\x00\x00\x00"


def test_unpack_rejects_short_buffer():
    with pytest.raises(ValueError):
        FrameHeader.unpack(b"\x00" * (HEADER_SIZE - 1))


def test_pack_rejects_out_of_range_field():
    with pytest.raises(ValueError):
        FrameHeader(stream_id=-1).pack()


def test_make_and_split_frame_round_trip():
    hdr = FrameHeader(stream_id=2, nbytes=5, pts_usec=1_000_000)
    buf = make_frame(hdr, b"dummy")
    assert len(buf) == HEADER_SIZE + 5
    got_hdr, payload = split_frame(buf)
    assert got_hdr == hdr
    assert payload == b"dummy"


def test_split_frame_header_only_has_empty_payload():
    hdr, payload = split_frame(bytes(HEADER_SIZE))
    assert hdr == FrameHeader()
    assert payload == b""


def test_split_frame_rejects_short_buffer():
    with pytest.raises(ValueError):
        split_frame(b"{}")


@pytest.mark.parametrize(
    "platform,ext",
    [("linux", ".so"), ("darwin", ".dylib"), ("win32", ".dll")],
)
def test_plugin_extension(monkeypatch, platform, ext):
    monkeypatch.setattr("sys.platform", platform)
    assert plugin_extension() == ext


def test_host_log_prints_message(capsys):
    host_log("hello plugin start")
    assert capsys.readouterr().out == "hello plugin start\n"


def test_publish_event_prints_prefixed(capsys):
    publish_event('{"event":"x"}')
    assert capsys.readouterr().out == 'Event: {"event":"x"}\n'


def test_plugin_start_and_stop_manage_host():
    host = HostApi()
    ctx = object()
    plugin = Plugin()
    plugin.start(host, ctx, "{}")
    assert plugin.host is host
    assert plugin.host_ctx is ctx
    plugin.stop()
    assert plugin.host is None
    assert plugin.host_ctx is None


class _EchoPlugin(Plugin):
    def on_frame(self, buf):
        self._log(LogLevel.DEBUG, f"got {len(buf)}")
        self._publish_event('{"seen":1}')
        self._emit_frame(buf)


def test_plugin_helpers_route_through_host():
    logs, events, frames = [], [], []
    host = HostApi(
        log=lambda ctx, level, msg: logs.append((ctx, level, msg)),
        publish_evt=lambda ctx, evt: events.append((ctx, evt)),
        on_frame=lambda ctx, buf: frames.append((ctx, buf)),
    )
    plugin = _EchoPlugin()
    plugin.start(host, "ctx", "{}")
    frame = make_frame(FrameHeader(nbytes=1), b"x")
    plugin.on_frame(frame)
    assert logs == [("ctx", LogLevel.DEBUG, f"got {len(frame)}")]
    assert events == [("ctx", '{"seen":1}')]
    assert frames == [("ctx", frame)]


def test_plugin_helpers_tolerate_missing_callbacks():
    plugin = _EchoPlugin()
    plugin.start(HostApi(), None, "{}")
    plugin.on_frame(b"abc")
    assert plugin.host == HostApi()