"""A bounded in-memory pipe with one read end and one write end."""

from __future__ import annotations

import threading

PIPESIZE = 512


class BrokenPipe(Exception):
    """Raised when a writer waits for room that can never come."""


class Pipe:
    """A byte channel holding at most PIPESIZE unread bytes."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._data = bytearray()
        self.nread = 0
        self.nwrite = 0
        self.readopen = True
        self.writeopen = True

    @property
    def closed(self) -> bool:
        """True once both ends have been closed."""
        return not self.readopen and not self.writeopen

    def write(self, data: bytes) -> int:
        """Write all of ``data``, waiting for room; return the byte count."""
        data = bytes(data)
        done = 0
        with self._cond:
            while done < len(data):
                while len(self._data) == PIPESIZE:
                    if not self.readopen:
                        raise BrokenPipe("read end of pipe is closed")
                    self._cond.notify_all()
                    self._cond.wait()
                take = min(PIPESIZE - len(self._data), len(data) - done)
                self._data += data[done:done + take]
                done += take
                self.nwrite += take
                self._cond.notify_all()
            self._cond.notify_all()
        return len(data)

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes, waiting while the pipe is empty and the writer open."""
        if n < 0:
            raise ValueError("count must not be negative")
        with self._cond:
            while not self._data and self.writeopen:
                self._cond.wait()
            out = bytes(self._data[:n])
            del self._data[:n]
            self.nread += len(out)
            self._cond.notify_all()
            return out

    def close(self, writable: bool) -> None:
        """Close the write end if ``writable``, otherwise the read end."""
        with self._cond:
            if writable:
                self.writeopen = False
            else:
                self.readopen = False
            self._cond.notify_all()