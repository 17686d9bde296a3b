import struct
import threading

import pytest

from sixfs.bcache import BufferCache
from sixfs.disk import MemoryDisk
from sixfs.layout import BSIZE
from sixfs.log import Log, LogError

START = 2
SIZE = 10


def _setup(**kwargs):
    disk = MemoryDisk(64)
    cache = BufferCache(disk)
    params = {"max_op_blocks": 3}
    params.update(kwargs)
    log = Log(cache, START, SIZE, **params)
    return disk, cache, log


def _modify(cache, log, blockno, payload):
    buf = cache.read(blockno)
    buf.data[: len(payload)] = payload
    log.write(buf)
    cache.release(buf)


def test_commit_installs_only_at_end():
    disk, cache, log = _setup()
    with log.transaction():
        _modify(cache, log, 40, b"hello")
        assert disk.read_block(40)[:5] == bytes(5)
    assert disk.read_block(40)[:5] == b"hello"
    assert _COUNT(disk) == 0
    assert log.pending == ()


def _COUNT(disk):
    return struct.unpack_from("<i", disk.read_block(START))[0]


def test_commit_unpins_buffer():
    disk, cache, log = _setup()
    with log.transaction():
        _modify(cache, log, 41, b"abc")
    buf = cache.read(41)
    assert not buf.dirty
    assert bytes(buf.data[:3]) == b"abc"
    cache.release(buf)


def test_write_outside_transaction():
    _, cache, log = _setup()
    buf = cache.read(40)
    with pytest.raises(LogError):
        log.write(buf)
    cache.release(buf)


def test_absorption():
    _, cache, log = _setup()
    log.begin_op()
    _modify(cache, log, 40, b"a")
    _modify(cache, log, 40, b"b")
    _modify(cache, log, 42, b"c")
    assert log.pending == (40, 42)
    log.end_op()


def test_transaction_too_big():
    disk = MemoryDisk(64)
    cache = BufferCache(disk)
    log = Log(cache, START, 4, max_op_blocks=4)
    log.begin_op()
    for blockno in (40, 41, 42):
        _modify(cache, log, blockno, b"x")
    buf = cache.read(43)
    with pytest.raises(LogError):
        log.write(buf)
    cache.release(buf)


def test_recovery_replays_committed_transaction():
    disk = MemoryDisk(64)
    disk.write_block(START, struct.pack("<ii", 1, 50).ljust(BSIZE, b"\0"))
    disk.write_block(START + 1, b"x" * BSIZE)
    Log(BufferCache(disk), START, SIZE)
    assert disk.read_block(50) == b"x" * BSIZE
    assert _COUNT(disk) == 0


def test_recovery_ignores_empty_log():
    disk = MemoryDisk(64)
    disk.write_block(START + 1, b"x" * BSIZE)
    Log(BufferCache(disk), START, SIZE)
    assert disk.read_block(50) == bytes(BSIZE)


def test_corrupt_header():
    disk = MemoryDisk(64)
    disk.write_block(START, struct.pack("<i", -5).ljust(BSIZE, b"\0"))
    with pytest.raises(LogError):
        Log(BufferCache(disk), START, SIZE)


def test_end_op_without_begin():
    _, _, log = _setup()
    with pytest.raises(LogError):
        log.end_op()


def test_header_must_fit_in_block():
    disk = MemoryDisk(64)
    with pytest.raises(LogError):
        Log(BufferCache(disk), START, SIZE, capacity=BSIZE)


def test_begin_op_waits_for_space():
    disk, cache, log = _setup(max_op_blocks=5, capacity=9)
    log.begin_op()
    entered = threading.Event()

    def worker():
        log.begin_op()
        entered.set()
        _modify(cache, log, 45, b"w")
        log.end_op()

    thread = threading.Thread(target=worker)
    thread.start()
    assert not entered.wait(0.2)
    assert disk.read_block(45)[:1] == b"\0"
    log.end_op()
    assert entered.wait(5)
    thread.join(5)
    assert not thread.is_alive()
    assert disk.read_block(45)[:1] == b"w"
    assert log.pending == ()