"""Buffer cache: in-memory copies of disk blocks, recycled least-recently-used first."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator

from .disk import MemoryDisk
from .layout import BSIZE


class CacheError(Exception):
    """Raised when the cache is misused or has no free buffers."""


class _SleepLock:
    """A lock that remembers which thread holds it."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._owner: int | None = None

    def acquire(self) -> None:
        with self._cond:
            while self._owner is not None:
                self._cond.wait()
            self._owner = threading.get_ident()

    def release(self) -> None:
        with self._cond:
            self._owner = None
            self._cond.notify_all()

    def held(self) -> bool:
        return self._owner == threading.get_ident()


@dataclass(eq=False)
class Buffer:
    """A cached copy of one disk block."""

    blockno: int | None = None
    data: bytearray = field(default_factory=lambda: bytearray(BSIZE))
    valid: bool = False
    dirty: bool = False
    refcnt: int = 0
    _lock: _SleepLock = field(default_factory=_SleepLock, repr=False)

    @property
    def held(self) -> bool:
        """True when the calling thread holds this buffer."""
        return self._lock.held()


class BufferCache:
    """A fixed pool of buffers in front of a disk."""

    def __init__(self, disk: MemoryDisk, nbuf: int = 30) -> None:
        if nbuf < 1:
            raise ValueError("the cache needs at least one buffer")
        self.disk = disk
        self._lock = threading.Lock()
        # Most recently used first.
        self._mru = [Buffer() for _ in range(nbuf)]

    def _claim(self, blockno: int) -> Buffer:
        with self._lock:
            cached = next((b for b in self._mru if b.blockno == blockno), None)
            if cached is not None:
                cached.refcnt += 1
                return cached
            # A dirty buffer is pinned by the log even with no references.
            free = next(
                (b for b in reversed(self._mru) if b.refcnt == 0 and not b.dirty),
                None,
            )
            if free is None:
                raise CacheError("no buffers")
            free.blockno = blockno
            free.valid = False
            free.dirty = False
            free.refcnt = 1
            return free

    def read(self, blockno: int) -> Buffer:
        """Return the locked buffer for ``blockno``, reading the disk if needed."""
        buf = self._claim(blockno)
        buf._lock.acquire()
        if not buf.valid:
            buf.data[:] = self.disk.read_block(blockno)
            buf.valid = True
        return buf

    def write(self, buf: Buffer) -> None:
        """Write a locked buffer's contents to disk."""
        if not buf.held:
            raise CacheError("write of a buffer that is not held")
        buf.dirty = True
        self.disk.write_block(buf.blockno, bytes(buf.data))
        buf.dirty = False
        buf.valid = True

    def release(self, buf: Buffer) -> None:
        """Unlock a buffer; when unreferenced it becomes the most recently used."""
        if not buf.held:
            raise CacheError("release of a buffer that is not held")
        buf._lock.release()
        with self._lock:
            buf.refcnt -= 1
            if buf.refcnt == 0:
                self._mru.remove(buf)
                self._mru.insert(0, buf)

    @contextmanager
    def block(self, blockno: int) -> Iterator[Buffer]:
        """Hold the buffer for ``blockno`` for the duration of a with-block."""
        buf = self.read(blockno)
        try:
            yield buf
        finally:
            self.release(buf)