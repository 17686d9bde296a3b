"""Open files: reference-counted handles on pipes and inodes."""

from __future__ import annotations

import enum
import threading
from dataclasses import dataclass, field
from typing import Optional

from .fs import FileSystem, FileSystemError, Inode, Stat
from .layout import BSIZE
from .pipe import Pipe


class FileError(Exception):
    """Raised for an operation an open file does not allow."""


class FileKind(enum.Enum):
    """What an open file refers to."""

    NONE = 0
    PIPE = 1
    INODE = 2


@dataclass(eq=False)
class File:
    """An open file, shared by every descriptor that refers to it."""

    kind: FileKind = FileKind.NONE
    ref: int = 0
    readable: bool = False
    writable: bool = False
    pipe: Optional[Pipe] = None
    inode: Optional[Inode] = None
    off: int = 0
    fs: Optional[FileSystem] = field(default=None, repr=False)

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes, advancing the offset of an inode file."""
        if not self.readable:
            raise FileError("file not open for reading")
        if self.kind is FileKind.PIPE:
            return self.pipe.read(n)
        if self.kind is FileKind.INODE:
            try:
                data = self.fs.read(self.inode, self.off, n)
            except FileSystemError as exc:
                raise FileError(str(exc)) from exc
            self.off += len(data)
            return data
        raise FileError("read of a file that is not open")

    def write(self, data: bytes) -> int:
        """Write all of ``data``; inode writes go a few blocks per transaction."""
        if not self.writable:
            raise FileError("file not open for writing")
        if self.kind is FileKind.PIPE:
            return self.pipe.write(data)
        if self.kind is FileKind.INODE:
            data = bytes(data)
            # Inode, indirect block, bitmap and two blocks of slop per transaction.
            limit = max(((self.fs.log.max_op_blocks - 1 - 1 - 2) // 2) * BSIZE, BSIZE)
            done = 0
            while done < len(data):
                chunk = data[done:done + limit]
                try:
                    with self.fs.log.transaction():
                        written = self.fs.write(self.inode, chunk, self.off)
                        if written > 0:
                            self.off += written
                except FileSystemError as exc:
                    raise FileError(str(exc)) from exc
                if written != len(chunk):
                    raise FileError("short write")
                done += written
            return len(data)
        raise FileError("write to a file that is not open")

    def stat(self) -> Stat:
        """Return the metadata of an inode file."""
        if self.kind is FileKind.INODE:
            return self.fs.stat(self.inode)
        raise FileError("only inode files have metadata")


class FileTable:
    """A fixed pool of open files."""

    def __init__(self, fs: Optional[FileSystem] = None, nfile: int = 100) -> None:
        self.fs = fs
        self._lock = threading.Lock()
        self._files = [File() for _ in range(nfile)]

    def alloc(self) -> File:
        """Take an unused file from the table with one reference."""
        with self._lock:
            for f in self._files:
                if f.ref == 0:
                    f.ref = 1
                    f.kind = FileKind.NONE
                    f.readable = f.writable = False
                    f.pipe = None
                    f.inode = None
                    f.off = 0
                    f.fs = self.fs
                    return f
        raise FileError("file table full")

    def dup(self, f: File) -> File:
        """Add a reference to ``f`` and return it."""
        with self._lock:
            if f.ref < 1:
                raise FileError("dup of a closed file")
            f.ref += 1
        return f

    def close(self, f: File) -> None:
        """Drop a reference; on the last one release the pipe end or inode."""
        with self._lock:
            if f.ref < 1:
                raise FileError("close of a closed file")
            f.ref -= 1
            if f.ref > 0:
                return
            kind, pipe, inode, writable = f.kind, f.pipe, f.inode, f.writable
            f.kind = FileKind.NONE
            f.pipe = None
            f.inode = None
        if kind is FileKind.PIPE:
            pipe.close(writable)
        elif kind is FileKind.INODE:
            with f.fs.log.transaction():
                f.fs.put(inode)

    def open_inode(self, inode: Inode, readable: bool, writable: bool) -> File:
        """Open ``inode``, taking over the caller's reference to it."""
        if self.fs is None:
            raise FileError("no file system attached")
        f = self.alloc()
        f.kind = FileKind.INODE
        f.inode = inode
        f.readable = bool(readable)
        f.writable = bool(writable)
        f.off = 0
        return f

    def pipe(self) -> tuple[File, File]:
        """Create a pipe; return its read end and its write end."""
        reader = self.alloc()
        try:
            writer = self.alloc()
        except FileError:
            self.close(reader)
            raise
        p = Pipe()
        reader.kind = writer.kind = FileKind.PIPE
        reader.pipe = writer.pipe = p
        reader.readable, reader.writable = True, False
        writer.readable, writer.writable = False, True
        return reader, writer