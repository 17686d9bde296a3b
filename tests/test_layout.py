import pytest

from sixfs.layout import (
    BPB,
    BSIZE,
    DINODE_SIZE,
    DIRENT_SIZE,
    DIRSIZ,
    IPB,
    NDIRECT,
    DiskInode,
    Dirent,
    InodeType,
    Superblock,
)


def _sb():
    return Superblock(
        size=1000, nblocks=941, ninodes=200, nlog=30,
        logstart=2, inodestart=32, bmapstart=58,
    )


def test_superblock_round_trip():
    sb = _sb()
    assert Superblock.from_bytes(sb.pack()) == sb


def test_superblock_reads_from_padded_block():
    sb = _sb()
    block = sb.pack().ljust(BSIZE, b"\0")
    assert Superblock.from_bytes(block) == sb


def test_superblock_short_data_rejected():
    with pytest.raises(ValueError):
        Superblock.from_bytes(b"\0" * 10)


def test_inode_block_boundaries():
    sb = _sb()
    assert sb.inode_block(0) == sb.inodestart
    assert sb.inode_block(IPB - 1) == sb.inodestart
    assert sb.inode_block(IPB) == sb.inodestart + 1


def test_bitmap_block_boundaries():
    sb = _sb()
    assert sb.bitmap_block(0) == sb.bmapstart
    assert sb.bitmap_block(BPB - 1) == sb.bmapstart
    assert sb.bitmap_block(BPB) == sb.bmapstart + 1


def test_inodes_and_dirents_tile_a_block():
    inode_bytes = DiskInode().pack()
    dirent_bytes = Dirent(0, "").pack()
    assert len(inode_bytes) == DINODE_SIZE
    assert len(dirent_bytes) == DIRENT_SIZE
    assert len(inode_bytes * IPB) == BSIZE
    assert BSIZE % len(dirent_bytes) == 0


def test_disk_inode_round_trip():
    addrs = list(range(100, 100 + NDIRECT + 1))
    ino = DiskInode(InodeType.DEV, -1, 3, 2, 4096, addrs)
    packed = ino.pack()
    assert len(packed) == DINODE_SIZE
    assert DiskInode.from_bytes(packed) == ino


def test_disk_inode_default_is_zero():
    assert DiskInode().pack() == bytes(DINODE_SIZE)


def test_disk_inode_wrong_address_count():
    with pytest.raises(ValueError):
        DiskInode(addrs=[1, 2, 3]).pack()


def test_dirent_wire_bytes():
    assert Dirent(5, "README").pack() == b"\x05\x00README" + b"\0" * 8


def test_dirent_round_trip_full_length_name():
    name = "x" * DIRSIZ
    assert Dirent.from_bytes(Dirent(7, name).pack()) == Dirent(7, name)


def test_dirent_long_name_truncated():
    back = Dirent.from_bytes(Dirent(1, "a" * 20).pack())
    assert back.name == "a" * DIRSIZ


def test_dirent_short_data_rejected():
    with pytest.raises(ValueError):
        Dirent.from_bytes(b"\x01")