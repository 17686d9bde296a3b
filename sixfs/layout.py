"""On-disk layout of the file system: constants and packed structures."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass, field

ROOTINO = 1
BSIZE = 512

NDIRECT = 12
NINDIRECT = BSIZE // 4
MAXFILE = NDIRECT + NINDIRECT

DIRSIZ = 14

_SUPERBLOCK = struct.Struct("<7I")
_DINODE = struct.Struct(f"<4hI{NDIRECT + 1}I")
_DIRENT = struct.Struct(f"<H{DIRSIZ}s")

SUPERBLOCK_SIZE = _SUPERBLOCK.size
DINODE_SIZE = _DINODE.size
DIRENT_SIZE = _DIRENT.size

# Inodes per block.
IPB = BSIZE // DINODE_SIZE
# Bitmap bits per block.
BPB = BSIZE * 8


class InodeType(enum.IntEnum):
    """Kinds of inode stored in the type field; zero marks a free inode."""

    FREE = 0
    DIR = 1
    FILE = 2
    DEV = 3


def _require(data: bytes, size: int, what: str) -> None:
    if len(data) < size:
        raise ValueError(f"{what} needs {size} bytes, got {len(data)}")


@dataclass
class Superblock:
    """Describes where each region of the disk image lives."""

    size: int
    nblocks: int
    ninodes: int
    nlog: int
    logstart: int
    inodestart: int
    bmapstart: int

    def pack(self) -> bytes:
        return _SUPERBLOCK.pack(
            self.size,
            self.nblocks,
            self.ninodes,
            self.nlog,
            self.logstart,
            self.inodestart,
            self.bmapstart,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> Superblock:
        _require(data, SUPERBLOCK_SIZE, "superblock")
        return cls(*_SUPERBLOCK.unpack_from(data))

    def inode_block(self, inum: int) -> int:
        """Block that holds inode number ``inum``."""
        return inum // IPB + self.inodestart

    def bitmap_block(self, blockno: int) -> int:
        """Block of the free map that holds the bit for ``blockno``."""
        return blockno // BPB + self.bmapstart


@dataclass
class DiskInode:
    """An inode as stored on disk."""

    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=lambda: [0] * (NDIRECT + 1))

    def pack(self) -> bytes:
        if len(self.addrs) != NDIRECT + 1:
            raise ValueError(f"an inode holds exactly {NDIRECT + 1} addresses")
        return _DINODE.pack(
            self.type, self.major, self.minor, self.nlink, self.size, *self.addrs
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> DiskInode:
        _require(data, DINODE_SIZE, "inode")
        type_, major, minor, nlink, size, *addrs = _DINODE.unpack_from(data)
        return cls(type_, major, minor, nlink, size, list(addrs))


@dataclass
class Dirent:
    """A directory entry: an inode number and a name of at most DIRSIZ bytes."""

    inum: int
    name: str

    def pack(self) -> bytes:
        # struct pads with NULs and truncates to DIRSIZ, as strncpy does.
        return _DIRENT.pack(self.inum, self.name.encode("latin-1"))

    @classmethod
    def from_bytes(cls, data: bytes) -> Dirent:
        _require(data, DIRENT_SIZE, "directory entry")
        inum, raw = _DIRENT.unpack_from(data)
        return cls(inum, raw.split(b"\0", 1)[0].decode("latin-1"))