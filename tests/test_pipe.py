import threading

import pytest

from sixfs.pipe import PIPESIZE, BrokenPipe, Pipe


def test_write_then_read_round_trip():
    p = Pipe()
    assert p.write(b"abc") == 3
    assert p.read(10) == b"abc"


def test_read_returns_at_most_n():
    p = Pipe()
    p.write(b"abcdef")
    assert p.read(2) == b"ab"
    assert p.read(10) == b"cdef"


def test_read_after_writer_closed_returns_empty():
    p = Pipe()
    p.write(b"xy")
    p.close(True)
    assert p.read(10) == b"xy"
    assert p.read(10) == b""


def test_counters_track_bytes():
    p = Pipe()
    p.write(b"hello")
    p.read(3)
    assert (p.nwrite, p.nread) == (5, 3)


def test_write_with_room_succeeds_after_reader_closed():
    p = Pipe()
    p.close(False)
    assert p.write(b"abc") == 3


def test_full_pipe_with_reader_closed_is_broken():
    p = Pipe()
    p.close(False)
    with pytest.raises(BrokenPipe):
        p.write(b"z" * (PIPESIZE + 1))


def test_closed_when_both_ends_closed():
    p = Pipe()
    p.close(True)
    assert not p.closed
    p.close(False)
    assert p.closed


def test_negative_read_rejected():
    with pytest.raises(ValueError):
        Pipe().read(-1)


def test_large_write_with_concurrent_reader():
    p = Pipe()
    payload = bytes(range(256)) * 10
    received = bytearray()

    def reader():
        while chunk := p.read(100):
            received.extend(chunk)

    t = threading.Thread(target=reader)
    t.start()
    assert p.write(payload) == len(payload)
    p.close(True)
    t.join(timeout=5)
    assert not t.is_alive()
    assert bytes(received) == payload