"""Write-ahead redo log that groups file-system updates into atomic transactions.

On disk the log is a header block holding a count and the home block numbers,
followed by copies of those blocks. A transaction commits when the header is
written; recovery replays any committed transaction.
"""

from __future__ import annotations

import struct
import threading
from contextlib import contextmanager
from typing import Iterator

from .bcache import Buffer, BufferCache
from .layout import BSIZE

_COUNT = struct.Struct("<i")


class LogError(Exception):
    """Raised when the log is used outside its rules."""


class Log:
    """The log region of one disk, sitting on a buffer cache."""

    def __init__(
        self,
        cache: BufferCache,
        start: int,
        size: int,
        *,
        max_op_blocks: int = 10,
        capacity: int | None = None,
    ) -> None:
        self.capacity = size if capacity is None else capacity
        if _COUNT.size * (self.capacity + 1) >= BSIZE:
            raise LogError("log header does not fit in a block")
        self._cache = cache
        self.start = start
        self.size = size
        self.max_op_blocks = max_op_blocks
        self._cond = threading.Condition()
        self._outstanding = 0
        self._committing = False
        self._blocks: list[int] = []
        self._recover()

    @property
    def pending(self) -> tuple[int, ...]:
        """Home block numbers logged in the current transaction."""
        return tuple(self._blocks)

    def _read_head(self) -> None:
        with self._cache.block(self.start) as buf:
            (n,) = _COUNT.unpack_from(buf.data)
            if not 0 <= n <= self.capacity:
                raise LogError(f"corrupt log header: {n} blocks")
            self._blocks = list(struct.unpack_from(f"<{n}i", buf.data, _COUNT.size))

    def _write_head(self) -> None:
        n = len(self._blocks)
        with self._cache.block(self.start) as buf:
            struct.pack_into(f"<i{n}i", buf.data, 0, n, *self._blocks)
            self._cache.write(buf)

    def _install(self) -> None:
        for tail, blockno in enumerate(self._blocks):
            with self._cache.block(self.start + tail + 1) as logged, \
                    self._cache.block(blockno) as home:
                home.data[:] = logged.data
                self._cache.write(home)

    def _write_log(self) -> None:
        for tail, blockno in enumerate(self._blocks):
            with self._cache.block(self.start + tail + 1) as logged, \
                    self._cache.block(blockno) as home:
                logged.data[:] = home.data
                self._cache.write(logged)

    def _recover(self) -> None:
        self._read_head()
        self._install()
        self._blocks = []
        self._write_head()

    def _commit(self) -> None:
        if self._blocks:
            self._write_log()
            self._write_head()
            self._install()
            self._blocks = []
            self._write_head()

    def begin_op(self) -> None:
        """Start an operation, waiting while a commit runs or space is short."""
        with self._cond:
            while self._committing or (
                len(self._blocks) + (self._outstanding + 1) * self.max_op_blocks
                > self.capacity
            ):
                self._cond.wait()
            self._outstanding += 1

    def end_op(self) -> None:
        """Finish an operation; the last one out commits the transaction."""
        with self._cond:
            if self._outstanding < 1:
                raise LogError("end_op without begin_op")
            if self._committing:
                raise LogError("log is committing")
            self._outstanding -= 1
            do_commit = self._outstanding == 0
            if do_commit:
                self._committing = True
            else:
                self._cond.notify_all()
        if do_commit:
            try:
                self._commit()
            finally:
                with self._cond:
                    self._committing = False
                    self._cond.notify_all()

    def write(self, buf: Buffer) -> None:
        """Record a modified buffer in the transaction and pin it in the cache."""
        if len(self._blocks) >= self.capacity or len(self._blocks) >= self.size - 1:
            raise LogError("too big a transaction")
        if self._outstanding < 1:
            raise LogError("log write outside of a transaction")
        with self._cond:
            if buf.blockno not in self._blocks:
                self._blocks.append(buf.blockno)
            buf.dirty = True

    @contextmanager
    def transaction(self) -> Iterator[Log]:
        """Run a with-block as one file-system operation."""
        self.begin_op()
        try:
            yield self
        finally:
            self.end_op()