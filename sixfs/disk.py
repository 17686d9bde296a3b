"""A disk held in memory, addressed in blocks."""

from __future__ import annotations

import os
from pathlib import Path

from .layout import BSIZE


class DiskError(Exception):
    """Raised for a request the disk cannot serve."""


class MemoryDisk:
    """A block device backed by a bytearray."""

    def __init__(self, nblocks: int = 0, *, image: bytes | None = None) -> None:
        if image is not None:
            self._data = bytearray(image)
        else:
            if nblocks < 0:
                raise ValueError("block count must not be negative")
            self._data = bytearray(nblocks * BSIZE)
        self.nblocks = len(self._data) // BSIZE

    @classmethod
    def from_file(cls, path: str | os.PathLike) -> MemoryDisk:
        return cls(image=Path(path).read_bytes())

    def save(self, path: str | os.PathLike) -> None:
        Path(path).write_bytes(bytes(self._data))

    def __len__(self) -> int:
        return self.nblocks

    @property
    def image(self) -> bytes:
        return bytes(self._data)

    def _offset(self, blockno: int) -> int:
        if not 0 <= blockno < self.nblocks:
            raise DiskError(f"block {blockno} out of range")
        return blockno * BSIZE

    def read_block(self, blockno: int) -> bytes:
        start = self._offset(blockno)
        return bytes(self._data[start:start + BSIZE])

    def write_block(self, blockno: int, data: bytes) -> None:
        start = self._offset(blockno)
        if len(data) != BSIZE:
            raise DiskError(f"block data must be {BSIZE} bytes, got {len(data)}")
        self._data[start:start + BSIZE] = data