import pytest

from sixfs.bcache import BufferCache, CacheError
from sixfs.disk import MemoryDisk
from sixfs.layout import BSIZE


def _disk():
    disk = MemoryDisk(8)
    for n in range(8):
        disk.write_block(n, bytes([n]) * BSIZE)
    return disk


def test_read_returns_disk_contents():
    cache = BufferCache(_disk())
    buf = cache.read(3)
    assert bytes(buf.data) == bytes([3]) * BSIZE
    assert buf.held
    cache.release(buf)
    assert not buf.held


def test_cached_buffer_is_reused_without_rereading():
    disk = _disk()
    cache = BufferCache(disk)
    first = cache.read(2)
    cache.release(first)
    disk.write_block(2, b"q" * BSIZE)
    second = cache.read(2)
    assert second is first
    assert bytes(second.data) == bytes([2]) * BSIZE
    cache.release(second)


def test_write_reaches_disk():
    disk = _disk()
    cache = BufferCache(disk)
    with cache.block(5) as buf:
        buf.data[:] = b"w" * BSIZE
        cache.write(buf)
        assert not buf.dirty
    assert disk.read_block(5) == b"w" * BSIZE


def test_write_without_holding():
    cache = BufferCache(_disk())
    buf = cache.read(1)
    cache.release(buf)
    with pytest.raises(CacheError):
        cache.write(buf)


def test_double_release():
    cache = BufferCache(_disk())
    buf = cache.read(1)
    cache.release(buf)
    with pytest.raises(CacheError):
        cache.release(buf)


def test_no_buffers_left():
    cache = BufferCache(_disk(), nbuf=2)
    cache.read(0)
    cache.read(1)
    with pytest.raises(CacheError):
        cache.read(2)


def test_recycles_released_buffer():
    cache = BufferCache(_disk(), nbuf=1)
    cache.release(cache.read(0))
    buf = cache.read(1)
    assert bytes(buf.data) == bytes([1]) * BSIZE
    cache.release(buf)


def test_dirty_buffer_is_pinned():
    cache = BufferCache(_disk(), nbuf=1)
    buf = cache.read(0)
    buf.dirty = True
    cache.release(buf)
    with pytest.raises(CacheError):
        cache.read(1)


def test_least_recently_used_is_evicted():
    cache = BufferCache(_disk(), nbuf=2)
    b0 = cache.read(0)
    cache.release(b0)
    cache.release(cache.read(1))
    cache.release(cache.read(0))
    cache.release(cache.read(2))
    again = cache.read(0)
    assert again is b0
    cache.release(again)


def test_block_context_releases():
    cache = BufferCache(_disk())
    with cache.block(4) as buf:
        assert buf.refcnt == 1
    assert buf.refcnt == 0


def test_zero_buffers_rejected():
    with pytest.raises(ValueError):
        BufferCache(_disk(), nbuf=0)