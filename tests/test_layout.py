import pytest

from xvsim.layout import (
    BPB,
    BSIZE,
    DIRSIZ,
    IPB,
    NDIRECT,
    Dinode,
    Dirent,
    Superblock,
    bitmap_block,
    inode_block,
)


def test_superblock_round_trip():
    sb = Superblock(1000, 941, 200, 30, 2, 32, 58)
    assert Superblock.from_bytes(sb.pack()) == sb


def test_superblock_fits_in_block():
    assert len(Superblock().pack()) <= BSIZE


def test_superblock_short_data():
    with pytest.raises(ValueError):
        Superblock.from_bytes(b"\x00" * 4)


def test_dinode_round_trip():
    addrs = list(range(100, 100 + NDIRECT + 1))
    d = Dinode(type=2, major=0, minor=0, nlink=1, size=1234, addrs=addrs)
    back = Dinode.from_bytes(d.pack())
    assert back == d
    assert back.addrs == addrs


def test_dinodes_tile_a_block():
    assert len(Dinode().pack()) * IPB == BSIZE


def test_dinode_wrong_addr_count():
    with pytest.raises(ValueError):
        Dinode(addrs=[0, 1]).pack()


def test_dirent_wire_bytes():
    assert Dirent(1, ".").pack() == b"\x01\x00." + b"\x00" * (DIRSIZ - 1)


def test_dirent_round_trip():
    de = Dirent(7, "README")
    assert Dirent.from_bytes(de.pack()) == de


def test_dirent_name_truncated():
    long_name = "a" * (DIRSIZ + 5)
    back = Dirent.from_bytes(Dirent(3, long_name).pack())
    assert back.name == long_name[:DIRSIZ]
    assert BSIZE % len(Dirent(3, long_name).pack()) == 0


def test_inode_block():
    sb = Superblock(inodestart=32)
    assert inode_block(0, sb) == 32
    assert inode_block(IPB - 1, sb) == 32
    assert inode_block(IPB, sb) == 33


def test_bitmap_block():
    sb = Superblock(bmapstart=58)
    assert bitmap_block(0, sb) == 58
    assert bitmap_block(BPB - 1, sb) == 58
    assert bitmap_block(BPB, sb) == 59