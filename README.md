# sixfs

sixfs is a small, self-contained block file system written in plain
Python with no dependencies. Its disk images use 512-byte blocks laid
out as:

    [ boot block | superblock | log | inode blocks | free bitmap | data blocks ]

Files have twelve direct block addresses and one indirect block of 128
addresses, so a file holds at most 140 blocks. Directories are files
made of 16-byte entries: a 2-byte inode number and a name of up to 14
bytes. All on-disk integers are little-endian.

## Modules

- `sixfs.layout`: the on-disk records `Superblock`, `DiskInode` and
  `Dirent` (each with `pack()` and `from_bytes()`), the `InodeType`
  enumeration (`FREE`, `DIR`, `FILE`, `DEV`) and the layout constants.
- `sixfs.disk`: `MemoryDisk`, a block device held in a bytearray, with
  `read_block`, `write_block`, `from_file` and `save`. Out-of-range
  blocks and wrongly sized writes raise `DiskError`.
- `sixfs.bcache`: `BufferCache`, a fixed pool of buffers in front of a
  disk, recycling the least recently used clean buffer. `block(n)` is a
  context manager that holds a buffer for the length of a `with` block.
- `sixfs.log`: `Log`, a redo log. Changed buffers are recorded with
  `Log.write`; when the last open operation ends, the transaction is
  copied to the log, committed by writing the log header, then
  installed in place. Creating a `Log` replays any committed
  transaction left on disk.
- `sixfs.fs`: `FileSystem`, with block and inode allocation, an inode
  cache (`get_inode`, `dup`, `load`, `update`, `put`), reading and
  writing inode contents, `dir_lookup`, `dir_link`, path resolution
  with `namei` and `nameiparent`, and `register_device` for device
  inodes. Failures raise `FileSystemError`.
- `sixfs.pipe`: `Pipe`, a bounded 512-byte channel; writing to a pipe
  whose read end is closed raises `BrokenPipe`.
- `sixfs.file`: `File` objects over inodes or pipes and a `FileTable`
  that allocates, duplicates and closes them (`open_inode`, `pipe`).
  Writes to inode files are split into several transactions.
- `sixfs.console`: `Console`, a line-editing input buffer that handles
  backspace, Ctrl-U (kill line), Ctrl-D (end of input) and Ctrl-P (calls
  an optional callback), echoes what is typed and collects output in
  `screen`.
- `sixfs.kbd`: `KeyboardDecoder` and `decode`, turning PC set-1 scan
  codes into characters, with Shift, Ctrl and Caps Lock.
- `sixfs.fmt`: `format_user` and `format_kernel`, minimal printf-style
  formatters for `%d`, `%x`, `%p`, `%s` (and `%c` in `format_user`).
- `sixfs.grep`: `match` and `grep` for the `^ . * $` subset of regular
  expressions.
- `sixfs.mkfs`: `ImageBuilder` and `build_image` for making a fresh
  image holding a root directory and a set of files.
- `sixfs.tools`: `cat`, `echo`, `ls` and `fmtname`, working on a
  `FileSystem`.

## Installing

    pip install .

## Commands

Build a 1000-block disk image from host files. The first argument names
the image, the rest are files to put in its root directory; a leading
underscore is dropped from each name, so `_cat` is stored as `cat`:

    sixfs-mkfs fs.img README _cat _ls

Search host files (or standard input) with the simple
regular-expression subset; matching lines are printed:

    sixfs-grep 'ab*c$' notes.txt

Work with an image:

    sixfs-tools echo hello world
    sixfs-tools cat fs.img README
    sixfs-tools ls fs.img
    sixfs-tools ls fs.img /

`ls` prints one `name type inode size` line per file, or per entry of
a directory; with no path it lists `.`, which resolves from the root.

## Using the library

```python
from sixfs.fs import FileSystem
from sixfs.layout import InodeType
from sixfs.mkfs import ImageBuilder

builder = ImageBuilder()
builder.add_file("hello", b"hello world\n")
fs = FileSystem(builder.finish())

with fs.log.transaction():
    ip = fs.namei("/hello")
    print(fs.read(ip, 0, 100))      # b'hello world\n'
    fs.put(ip)

with fs.log.transaction():
    root = fs.namei("/")
    ip = fs.load(fs.alloc_inode(InodeType.FILE))
    ip.nlink = 1
    fs.update(ip)
    fs.dir_link(root, "notes", ip.inum)
    fs.write(ip, b"some text", 0)
    fs.put(ip)
    fs.put(root)
```

## Transactions

Every change to the file system goes through the log: calling
`Log.write` outside an operation raises `LogError`. Wrap a group of
changes in `fs.log.transaction()` so they are committed together. If
the process stops part-way, the next `FileSystem` opened on the image
replays only what was fully committed.

## What it does not do

sixfs is a file-system library and a few tools; it is not an operating
system. There are no processes, no scheduler and no system-call layer.
`FileSystem` has no ready-made operations to make directories, remove
or rename files, or create hard links; those would be built from
`alloc_inode`, `dir_link` and `put`. `sixfs-mkfs` places files only in
the root directory, and `sixfs-tools cat` and `ls` only read an image.
`sixfs-grep` searches host files, not files inside an image.

## Running the tests

    pip install .[test]
    pytest