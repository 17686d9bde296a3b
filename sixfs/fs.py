"""Inodes, file contents, directories and path names on top of the log."""

from __future__ import annotations

import struct
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .bcache import Buffer, BufferCache
from .disk import MemoryDisk
from .layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    DIRENT_SIZE,
    DIRSIZ,
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
from .log import Log

ROOTDEV = 1

_ADDR = struct.Struct("<I")

DeviceRead = Callable[["Inode", int], bytes]
DeviceWrite = Callable[["Inode", bytes], int]


class FileSystemError(Exception):
    """Raised when a file-system operation cannot be carried out."""


@dataclass(eq=False)
class Inode:
    """The in-memory copy of an inode, shared through the inode cache."""

    dev: int = 0
    inum: int = 0
    ref: int = 0
    valid: bool = False
    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=lambda: [0] * (NDIRECT + 1))
    lock: Any = field(default_factory=threading.RLock, repr=False)


@dataclass(frozen=True)
class Stat:
    """Metadata reported for an inode."""

    dev: int
    ino: int
    type: int
    nlink: int
    size: int


def skip_element(path: str) -> Optional[tuple[str, str]]:
    """Split off the first path element.

    Returns the element (cut to DIRSIZ characters) and the rest of the path
    without leading slashes, or None when no element is left.
    """
    path = path.lstrip("/")
    if not path:
        return None
    head, _, rest = path.partition("/")
    return head[:DIRSIZ], rest.lstrip("/")


class FileSystem:
    """A file system on a disk, reached through a buffer cache and a log."""

    def __init__(
        self,
        disk: MemoryDisk,
        *,
        dev: int = ROOTDEV,
        nbuf: int = 30,
        ninode: int = 50,
        ndev: int = 10,
        max_op_blocks: int = 10,
    ) -> None:
        if ninode < 1:
            raise ValueError("the inode cache needs at least one entry")
        self.dev = dev
        self.ndev = ndev
        self.cache = BufferCache(disk, nbuf)
        with self.cache.block(1) as buf:
            self.sb = Superblock.from_bytes(bytes(buf.data))
        self.log = Log(
            self.cache, self.sb.logstart, self.sb.nlog, max_op_blocks=max_op_blocks
        )
        self._icache_lock = threading.Lock()
        self._inodes = [Inode() for _ in range(ninode)]
        self._devices: dict[int, tuple[Optional[DeviceRead], Optional[DeviceWrite]]] = {}

    # Devices

    def register_device(
        self, major: int, read: Optional[DeviceRead], write: Optional[DeviceWrite]
    ) -> None:
        """Attach read and write handlers for device inodes with this major number."""
        if not 0 <= major < self.ndev:
            raise ValueError(f"major device number out of range: {major}")
        self._devices[major] = (read, write)

    def _device(self, inode: Inode, writing: bool) -> Callable:
        handlers = self._devices.get(inode.major) if 0 <= inode.major < self.ndev else None
        handler = handlers[writing] if handlers else None
        if handler is None:
            raise FileSystemError(f"no device for major number {inode.major}")
        return handler

    # Blocks

    def _zero(self, blockno: int) -> None:
        with self.cache.block(blockno) as buf:
            buf.data[:] = bytes(BSIZE)
            self.log.write(buf)

    def _claim_bit(self, buf: Buffer, base: int) -> Optional[int]:
        for bi in range(min(BPB, self.sb.size - base)):
            mask = 1 << (bi % 8)
            if not buf.data[bi // 8] & mask:
                buf.data[bi // 8] |= mask
                self.log.write(buf)
                return base + bi
        return None

    def _balloc(self) -> int:
        for base in range(0, self.sb.size, BPB):
            with self.cache.block(self.sb.bitmap_block(base)) as buf:
                blockno = self._claim_bit(buf, base)
            if blockno is not None:
                self._zero(blockno)
                return blockno
        raise FileSystemError("out of blocks")

    def _bfree(self, blockno: int) -> None:
        with self.cache.block(self.sb.bitmap_block(blockno)) as buf:
            bi = blockno % BPB
            mask = 1 << (bi % 8)
            if not buf.data[bi // 8] & mask:
                raise FileSystemError(f"freeing free block {blockno}")
            buf.data[bi // 8] &= ~mask & 0xFF
            self.log.write(buf)

    # Inodes

    @staticmethod
    def _slot(inum: int) -> slice:
        start = (inum % IPB) * DINODE_SIZE
        return slice(start, start + DINODE_SIZE)

    def alloc_inode(self, type: int) -> Inode:
        """Allocate an inode of the given type on disk; return it referenced, not loaded."""
        if type == InodeType.FREE:
            raise ValueError("cannot allocate an inode without a type")
        for inum in range(1, self.sb.ninodes):
            slot = self._slot(inum)
            with self.cache.block(self.sb.inode_block(inum)) as buf:
                free = DiskInode.from_bytes(bytes(buf.data[slot])).type == 0
                if free:
                    buf.data[slot] = DiskInode(type=int(type)).pack()
                    self.log.write(buf)
            if free:
                return self.get_inode(inum)
        raise FileSystemError("no free inodes")

    def get_inode(self, inum: int) -> Inode:
        """Return the cached inode for ``inum`` with one more reference."""
        with self._icache_lock:
            empty = None
            for ip in self._inodes:
                if ip.ref > 0 and ip.dev == self.dev and ip.inum == inum:
                    ip.ref += 1
                    return ip
                if empty is None and ip.ref == 0:
                    empty = ip
            if empty is None:
                raise FileSystemError("inode cache is full")
            empty.dev = self.dev
            empty.inum = inum
            empty.ref = 1
            empty.valid = False
            return empty

    def dup(self, inode: Inode) -> Inode:
        """Add a reference to ``inode`` and return it."""
        with self._icache_lock:
            inode.ref += 1
        return inode

    def load(self, inode: Inode) -> Inode:
        """Read the inode from disk unless its cached copy is already valid."""
        if inode.ref < 1:
            raise FileSystemError("load of an unreferenced inode")
        with inode.lock:
            if not inode.valid:
                with self.cache.block(self.sb.inode_block(inode.inum)) as buf:
                    dip = DiskInode.from_bytes(bytes(buf.data[self._slot(inode.inum)]))
                if dip.type == 0:
                    raise FileSystemError(f"inode {inode.inum} has no type")
                inode.type = dip.type
                inode.major = dip.major
                inode.minor = dip.minor
                inode.nlink = dip.nlink
                inode.size = dip.size
                inode.addrs = list(dip.addrs)
                inode.valid = True
        return inode

    def update(self, inode: Inode) -> None:
        """Copy the in-memory inode to its disk block inside the transaction."""
        dip = DiskInode(
            inode.type, inode.major, inode.minor, inode.nlink, inode.size, list(inode.addrs)
        )
        with self.cache.block(self.sb.inode_block(inode.inum)) as buf:
            buf.data[self._slot(inode.inum)] = dip.pack()
            self.log.write(buf)

    def put(self, inode: Inode) -> None:
        """Drop a reference; free the inode on disk when nothing refers to it."""
        if inode.ref < 1:
            raise FileSystemError("put of an unreferenced inode")
        with inode.lock:
            if inode.valid and inode.nlink == 0:
                with self._icache_lock:
                    last = inode.ref == 1
                if last:
                    self._truncate(inode)
                    inode.type = 0
                    self.update(inode)
                    inode.valid = False
        with self._icache_lock:
            inode.ref -= 1

    def _bmap(self, inode: Inode, bn: int) -> int:
        if bn < NDIRECT:
            addr = inode.addrs[bn]
            if addr == 0:
                addr = inode.addrs[bn] = self._balloc()
            return addr
        bn -= NDIRECT
        if bn < NINDIRECT:
            indirect = inode.addrs[NDIRECT]
            if indirect == 0:
                indirect = inode.addrs[NDIRECT] = self._balloc()
            with self.cache.block(indirect) as buf:
                (addr,) = _ADDR.unpack_from(buf.data, bn * _ADDR.size)
                if addr == 0:
                    addr = self._balloc()
                    _ADDR.pack_into(buf.data, bn * _ADDR.size, addr)
                    self.log.write(buf)
            return addr
        raise FileSystemError("block index out of range")

    def _truncate(self, inode: Inode) -> None:
        for i, addr in enumerate(inode.addrs[:NDIRECT]):
            if addr:
                self._bfree(addr)
                inode.addrs[i] = 0
        indirect = inode.addrs[NDIRECT]
        if indirect:
            with self.cache.block(indirect) as buf:
                entries = struct.unpack_from(f"<{NINDIRECT}I", buf.data)
            for addr in entries:
                if addr:
                    self._bfree(addr)
            self._bfree(indirect)
            inode.addrs[NDIRECT] = 0
        inode.size = 0
        self.update(inode)

    def stat(self, inode: Inode) -> Stat:
        """Return the metadata of ``inode``."""
        with inode.lock:
            self.load(inode)
            return Stat(inode.dev, inode.inum, inode.type, inode.nlink, inode.size)

    # Contents

    def read(self, inode: Inode, off: int, n: int) -> bytes:
        """Read up to ``n`` bytes at ``off``; fewer when the file ends first."""
        if off < 0 or n < 0:
            raise ValueError("offset and count must not be negative")
        with inode.lock:
            self.load(inode)
            if inode.type == InodeType.DEV:
                return self._device(inode, False)(inode, n)
            if off > inode.size:
                raise FileSystemError("read offset past end of file")
            end = off + min(n, inode.size - off)
            out = bytearray()
            pos = off
            while pos < end:
                start = pos % BSIZE
                chunk = min(end - pos, BSIZE - start)
                with self.cache.block(self._bmap(inode, pos // BSIZE)) as buf:
                    out += buf.data[start:start + chunk]
                pos += chunk
            return bytes(out)

    def write(self, inode: Inode, data: bytes, off: int) -> int:
        """Write ``data`` at ``off``, growing the file; return the bytes written."""
        if off < 0:
            raise ValueError("offset must not be negative")
        data = bytes(data)
        n = len(data)
        with inode.lock:
            self.load(inode)
            if inode.type == InodeType.DEV:
                return self._device(inode, True)(inode, data)
            if off > inode.size:
                raise FileSystemError("write offset past end of file")
            if off + n > MAXFILE * BSIZE:
                raise FileSystemError("file too large")
            done = 0
            while done < n:
                pos = off + done
                start = pos % BSIZE
                chunk = min(n - done, BSIZE - start)
                with self.cache.block(self._bmap(inode, pos // BSIZE)) as buf:
                    buf.data[start:start + chunk] = data[done:done + chunk]
                    self.log.write(buf)
                done += chunk
            if n > 0 and off + n > inode.size:
                inode.size = off + n
                self.update(inode)
            return n

    # Directories

    def _read_dirent(self, dp: Inode, off: int) -> Dirent:
        raw = self.read(dp, off, DIRENT_SIZE)
        if len(raw) != DIRENT_SIZE:
            raise FileSystemError("short directory entry")
        return Dirent.from_bytes(raw)

    def dir_lookup(self, dp: Inode, name: str) -> Optional[tuple[Inode, int]]:
        """Find ``name`` in directory ``dp``; return its inode and entry offset."""
        with dp.lock:
            self.load(dp)
            if dp.type != InodeType.DIR:
                raise FileSystemError("lookup in something that is not a directory")
            wanted = name[:DIRSIZ]
            for off in range(0, dp.size, DIRENT_SIZE):
                entry = self._read_dirent(dp, off)
                if entry.inum and entry.name == wanted:
                    return self.get_inode(entry.inum), off
        return None

    def dir_link(self, dp: Inode, name: str, inum: int) -> None:
        """Add the entry (``name``, ``inum``) to directory ``dp``."""
        with dp.lock:
            found = self.dir_lookup(dp, name)
            if found is not None:
                self.put(found[0])
                raise FileSystemError(f"{name!r} already exists")
            off = -(-dp.size // DIRENT_SIZE) * DIRENT_SIZE
            for candidate in range(0, dp.size, DIRENT_SIZE):
                if self._read_dirent(dp, candidate).inum == 0:
                    off = candidate
                    break
            if self.write(dp, Dirent(inum, name).pack(), off) != DIRENT_SIZE:
                raise FileSystemError("short directory write")

    # Paths

    def _walk(
        self, path: str, parent: bool, cwd: Optional[Inode]
    ) -> Optional[tuple[Inode, str]]:
        if path.startswith("/") or cwd is None:
            ip = self.get_inode(ROOTINO)
        else:
            ip = self.dup(cwd)
        name = ""
        while (step := skip_element(path)) is not None:
            name, path = step
            with ip.lock:
                self.load(ip)
                if ip.type != InodeType.DIR:
                    self.put(ip)
                    return None
                if parent and path == "":
                    return ip, name
                found = self.dir_lookup(ip, name)
            self.put(ip)
            if found is None:
                return None
            ip = found[0]
        if parent:
            self.put(ip)
            return None
        return ip, name

    def namei(self, path: str, cwd: Optional[Inode] = None) -> Optional[Inode]:
        """Return the inode named by ``path``, or None when there is none."""
        found = self._walk(path, False, cwd)
        return None if found is None else found[0]

    def nameiparent(
        self, path: str, cwd: Optional[Inode] = None
    ) -> Optional[tuple[Inode, str]]:
        """Return the parent directory of ``path`` and the final element's name."""
        return self._walk(path, True, cwd)