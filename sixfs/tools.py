"""Small user programs over a file-system image: cat, echo and ls."""

from __future__ import annotations

import sys
from contextlib import contextmanager
from typing import BinaryIO, Callable, Iterable, Iterator, Optional

from .disk import MemoryDisk
from .fs import FileSystem, FileSystemError, Inode
from .layout import DIRENT_SIZE, DIRSIZ, Dirent, InodeType

_BUFSIZE = 512


def fmtname(path: str) -> str:
    """The last element of ``path``, blank-padded to DIRSIZ when shorter."""
    name = path.rsplit("/", 1)[-1]
    if len(name) >= DIRSIZ:
        return name
    return name.ljust(DIRSIZ)


@contextmanager
def _opened(fs: FileSystem, path: str, program: str) -> Iterator[Inode]:
    with fs.log.transaction():
        ip = fs.namei(path)
        if ip is None:
            raise FileNotFoundError(f"{program}: cannot open {path}")
        try:
            yield ip
        finally:
            fs.put(ip)


def _pump(read: Callable[[int], bytes], out: BinaryIO) -> None:
    while chunk := read(_BUFSIZE):
        written = out.write(chunk)
        if written is not None and written != len(chunk):
            raise OSError("cat: write error")


def cat(fs: FileSystem, paths: Iterable[str], out: BinaryIO) -> None:
    """Copy each named file to ``out``; with no names, copy standard input."""
    paths = list(paths)
    if not paths:
        _pump(sys.stdin.buffer.read, out)
        return
    for path in paths:
        with _opened(fs, path, "cat") as ip:
            off = 0

            def read(n: int) -> bytes:
                nonlocal off
                try:
                    data = fs.read(ip, off, n)
                except FileSystemError as exc:
                    raise OSError("cat: read error") from exc
                off += len(data)
                return data

            _pump(read, out)


def echo(args: Iterable[str]) -> str:
    """The arguments joined by spaces and ended by a newline; empty for none."""
    args = list(args)
    return " ".join(args) + "\n" if args else ""


def _line(path: str, st) -> str:
    return f"{fmtname(path)} {st.type} {st.ino} {st.size}"


def ls(fs: FileSystem, path: str) -> list[str]:
    """List a file, or each entry of a directory, as 'name type inode size' lines."""
    lines: list[str] = []
    with _opened(fs, path, "ls") as ip:
        st = fs.stat(ip)
        if st.type == InodeType.FILE:
            lines.append(_line(path, st))
        elif st.type == InodeType.DIR:
            if len(path) + 1 + DIRSIZ + 1 > _BUFSIZE:
                raise ValueError("ls: path too long")
            off = 0
            while len(raw := fs.read(ip, off, DIRENT_SIZE)) == DIRENT_SIZE:
                off += DIRENT_SIZE
                entry = Dirent.from_bytes(raw)
                if entry.inum == 0:
                    continue
                full = f"{path}/{entry.name}"
                child = fs.namei(full)
                if child is None:
                    lines.append(f"ls: cannot stat {full}")
                    continue
                try:
                    lines.append(_line(full, fs.stat(child)))
                finally:
                    fs.put(child)
    return lines


_USAGE = "usage: tools echo [args...] | tools cat IMAGE [file...] | tools ls IMAGE [path...]\n"


def main(argv: Optional[list[str]] = None) -> int:
    """Run cat, echo or ls; cat and ls work on the named image."""
    args = sys.argv[1:] if argv is None else list(argv)
    if not args or args[0] not in ("cat", "echo", "ls"):
        sys.stderr.write(_USAGE)
        return 2
    command, rest = args[0], args[1:]
    if command == "echo":
        sys.stdout.write(echo(rest))
        return 0
    if not rest:
        sys.stderr.write(_USAGE)
        return 2
    try:
        fs = FileSystem(MemoryDisk.from_file(rest[0]))
    except OSError as exc:
        sys.stderr.write(f"{command}: cannot open image {rest[0]}: {exc.strerror}\n")
        return 1
    paths = rest[1:]

    if command == "cat":
        sys.stdout.flush()
        out = sys.stdout.buffer
        try:
            cat(fs, paths, out)
        except OSError as exc:
            out.flush()
            sys.stdout.write(f"{exc}\n")
            return 1
        out.flush()
        return 0

    for path in paths or ["."]:
        try:
            lines = ls(fs, path)
        except FileNotFoundError as exc:
            sys.stderr.write(f"{exc}\n")
            continue
        except ValueError as exc:
            sys.stdout.write(f"{exc}\n")
            continue
        for line in lines:
            sys.stdout.write(line + "\n")
    return 0