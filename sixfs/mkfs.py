"""Build a file-system image: superblock, log, inodes, bitmap and a root directory."""

from __future__ import annotations

import os
import struct
import sys
from pathlib import Path
from typing import Iterable, Optional

from .disk import MemoryDisk
from .layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    IPB,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    DiskInode,
    Dirent,
    InodeType,
    Superblock,
)

FSSIZE = 1000
LOGSIZE = 30
NINODES = 200

_INDIRECT = struct.Struct(f"<{NINDIRECT}I")


class ImageBuilder:
    """Lays out a fresh image in memory and fills its root directory.

    Disk layout: boot block, superblock, log, inode blocks, free bitmap, data blocks.
    """

    def __init__(
        self, fs_size: int = FSSIZE, log_size: int = LOGSIZE, ninodes: int = NINODES
    ) -> None:
        self.nbitmap = fs_size // BPB + 1
        self.ninodeblocks = ninodes // IPB + 1
        self.nmeta = 2 + log_size + self.ninodeblocks + self.nbitmap
        nblocks = fs_size - self.nmeta
        if nblocks <= 0:
            raise ValueError(f"image of {fs_size} blocks has no room for data")
        self.sb = Superblock(
            size=fs_size,
            nblocks=nblocks,
            ninodes=ninodes,
            nlog=log_size,
            logstart=2,
            inodestart=2 + log_size,
            bmapstart=2 + log_size + self.ninodeblocks,
        )
        self.messages: list[str] = [
            f"nmeta {self.nmeta} (boot, super, log blocks {log_size} "
            f"inode blocks {self.ninodeblocks}, bitmap blocks {self.nbitmap}) "
            f"blocks {nblocks} total {fs_size}"
        ]
        self.disk = MemoryDisk(fs_size)
        self._next_inode = 1
        self._next_block = self.nmeta
        self._finished = False

        self.disk.write_block(1, self.sb.pack().ljust(BSIZE, b"\0"))

        self.root = self.alloc_inode(InodeType.DIR)
        if self.root != ROOTINO:
            raise ValueError("root directory did not get the root inode number")
        self.append(self.root, Dirent(self.root, ".").pack())
        self.append(self.root, Dirent(self.root, "..").pack())

    @property
    def next_block(self) -> int:
        """The first block not yet handed out."""
        return self._next_block

    def _check_open(self) -> None:
        if self._finished:
            raise ValueError("image is already finished")

    def _take_block(self) -> int:
        blockno = self._next_block
        if blockno >= self.sb.size:
            raise ValueError("image is out of blocks")
        self._next_block += 1
        return blockno

    def _slot(self, inum: int) -> slice:
        start = (inum % IPB) * DINODE_SIZE
        return slice(start, start + DINODE_SIZE)

    def _read_inode(self, inum: int) -> DiskInode:
        block = self.disk.read_block(self.sb.inode_block(inum))
        return DiskInode.from_bytes(block[self._slot(inum)])

    def _write_inode(self, inum: int, din: DiskInode) -> None:
        blockno = self.sb.inode_block(inum)
        block = bytearray(self.disk.read_block(blockno))
        block[self._slot(inum)] = din.pack()
        self.disk.write_block(blockno, bytes(block))

    def alloc_inode(self, type: int) -> int:
        """Allocate the next inode with one link and no contents; return its number."""
        self._check_open()
        inum = self._next_inode
        if inum >= self.sb.ninodes:
            raise ValueError("image is out of inodes")
        self._next_inode += 1
        self._write_inode(inum, DiskInode(type=int(type), nlink=1, size=0))
        return inum

    def _block_for(self, din: DiskInode, fbn: int) -> int:
        if fbn < NDIRECT:
            if din.addrs[fbn] == 0:
                din.addrs[fbn] = self._take_block()
            return din.addrs[fbn]
        if din.addrs[NDIRECT] == 0:
            din.addrs[NDIRECT] = self._take_block()
        indirect_no = din.addrs[NDIRECT]
        indirect = list(_INDIRECT.unpack(self.disk.read_block(indirect_no)))
        if indirect[fbn - NDIRECT] == 0:
            indirect[fbn - NDIRECT] = self._take_block()
            self.disk.write_block(indirect_no, _INDIRECT.pack(*indirect))
        return indirect[fbn - NDIRECT]

    def append(self, inum: int, data: bytes) -> None:
        """Append ``data`` to the end of inode ``inum``, allocating blocks in order."""
        self._check_open()
        data = bytes(data)
        din = self._read_inode(inum)
        off = din.size
        pos = 0
        while pos < len(data):
            fbn = off // BSIZE
            if fbn >= MAXFILE:
                raise ValueError("file too large for the image")
            blockno = self._block_for(din, fbn)
            n1 = min(len(data) - pos, (fbn + 1) * BSIZE - off)
            block = bytearray(self.disk.read_block(blockno))
            start = off - fbn * BSIZE
            block[start:start + n1] = data[pos:pos + n1]
            self.disk.write_block(blockno, bytes(block))
            pos += n1
            off += n1
        din.size = off
        self._write_inode(inum, din)

    def add_file(self, name: str, data: bytes) -> int:
        """Add a regular file to the root directory; a leading '_' is dropped from its name."""
        self._check_open()
        if "/" in name:
            raise ValueError(f"file name must not contain '/': {name!r}")
        if name.startswith("_"):
            name = name[1:]
        inum = self.alloc_inode(InodeType.FILE)
        self.append(self.root, Dirent(inum, name).pack())
        self.append(inum, data)
        return inum

    def finish(self) -> MemoryDisk:
        """Round the root directory up to a whole block, write the bitmap, return the disk."""
        self._check_open()
        din = self._read_inode(self.root)
        din.size = (din.size // BSIZE + 1) * BSIZE
        self._write_inode(self.root, din)

        used = self._next_block
        self.messages.append(f"balloc: first {used} blocks have been allocated")
        if used >= BPB:
            raise ValueError("too many blocks in use for one bitmap block")
        bitmap = bytearray(BSIZE)
        for i in range(used):
            bitmap[i // 8] |= 1 << (i % 8)
        self.messages.append(f"balloc: write bitmap block at sector {self.sb.bmapstart}")
        self.disk.write_block(self.sb.bmapstart, bytes(bitmap))
        self._finished = True
        return self.disk


def build_image(
    path: str | os.PathLike,
    files: Iterable[str | os.PathLike],
    fs_size: int = FSSIZE,
    log_size: int = LOGSIZE,
    ninodes: int = NINODES,
) -> ImageBuilder:
    """Write an image at ``path`` holding ``files`` in its root directory."""
    builder = ImageBuilder(fs_size, log_size, ninodes)
    for file in files:
        source = Path(file)
        builder.add_file(source.name, source.read_bytes())
    builder.finish().save(path)
    return builder


def main(argv: Optional[list[str]] = None) -> int:
    """Command line: mkfs fs.img files..."""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        sys.stderr.write("Usage: mkfs fs.img files...\n")
        return 1
    try:
        builder = build_image(args[0], args[1:])
    except OSError as exc:
        sys.stderr.write(f"{exc.filename}: {exc.strerror}\n")
        return 1
    except ValueError as exc:
        sys.stderr.write(f"mkfs: {exc}\n")
        return 1
    for message in builder.messages:
        print(message)
    return 0