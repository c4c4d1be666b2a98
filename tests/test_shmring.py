import threading
import time

import pytest

from zmpipe.shmring import ShmRing


def test_push_pop_basic():
    slot_count = 4
    slot_size = 16
    ring = ShmRing(slot_count, slot_size)
    data = bytearray(b"\x5a" * slot_size)

    for i in range(slot_count - 1):
        data[0] = i
        assert ring.push(data) is True

    assert ring.push(data) is False

    for i in range(slot_count - 1):
        out = ring.pop()
        assert len(out) == slot_size
        assert out[0] == i


def test_push_rejects_oversize():
    ring = ShmRing(4, 16)
    assert ring.push(b"x" * 17) is False
    assert len(ring) == 0


def test_pop_returns_exact_message():
    ring = ShmRing(4, 16)
    assert ring.push(b"abc")
    assert ring.pop() == b"abc"


def test_pop_times_out_when_empty():
    ring = ShmRing(4, 16)
    start = time.monotonic()
    assert ring.pop(timeout=0.05) is None
    assert time.monotonic() - start >= 0.04


def test_len_tracks_contents():
    ring = ShmRing(4, 16)
    ring.push(b"a")
    ring.push(b"b")
    assert len(ring) == 2
    ring.pop()
    assert len(ring) == 1


def test_wraparound_preserves_order():
    ring = ShmRing(3, 8)
    received = []
    for i in range(10):
        assert ring.push(bytes([i]))
        received.append(ring.pop())
    assert received == [bytes([i]) for i in range(10)]


def test_single_slot_ring_is_always_full():
    ring = ShmRing(1, 8)
    assert ring.push(b"a") is False


def test_blocking_pop_wakes_on_push():
    ring = ShmRing(4, 16)
    result = []
    consumer = threading.Thread(target=lambda: result.append(ring.pop(timeout=5)))
    consumer.start()
    time.sleep(0.05)
    assert ring.push(b"wake")
    consumer.join(timeout=5)
    assert result == [b"wake"]


def test_properties_report_geometry():
    ring = ShmRing(256, 1024)
    assert (ring.slot_count, ring.slot_size) == (256, 1024)


@pytest.mark.parametrize("count,size", [(0, 16), (4, 0), (-1, 16)])
def test_invalid_geometry_rejected(count, size):
    with pytest.raises(ValueError):
        ShmRing(count, size)