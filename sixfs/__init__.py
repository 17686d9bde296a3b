"""A small block file system: disk images, buffer cache, redo log, inodes, directories, pipes and tools."""

__version__ = "0.1.0"

__all__ = [
    "bcache",
    "console",
    "disk",
    "file",
    "fmt",
    "fs",
    "grep",
    "kbd",
    "layout",
    "log",
    "mkfs",
    "pipe",
    "tools",
]