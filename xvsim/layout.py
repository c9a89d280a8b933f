"""On-disk file system format: superblock, inodes, directory entries."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field

ROOTINO = 1
BSIZE = 512

NDIRECT = 12
NINDIRECT = BSIZE // 4
MAXFILE = NDIRECT + NINDIRECT

DIRSIZ = 14

_SUPERBLOCK = struct.Struct("<7I")
_DINODE = struct.Struct(f"<hhhhI{NDIRECT + 1}I")
_DIRENT = struct.Struct(f"<H{DIRSIZ}s")

# Inodes per block.
IPB = BSIZE // _DINODE.size
# Bitmap bits per block.
BPB = BSIZE * 8


def _unpack(layout: struct.Struct, data: bytes, what: str) -> tuple:
    if len(data) < layout.size:
        raise ValueError(f"{what} needs {layout.size} bytes, got {len(data)}")
    return layout.unpack_from(data, 0)


@dataclass
class Superblock:
    """Describes the disk layout."""

    size: int = 0
    nblocks: int = 0
    ninodes: int = 0
    nlog: int = 0
    logstart: int = 0
    inodestart: int = 0
    bmapstart: int = 0

    SIZE = _SUPERBLOCK.size

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
        return cls(*_unpack(_SUPERBLOCK, data, "superblock"))


@dataclass
class Dinode:
    """On-disk inode."""

    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=lambda: [0] * (NDIRECT + 1))

    SIZE = _DINODE.size

    def pack(self) -> bytes:
        if len(self.addrs) != NDIRECT + 1:
            raise ValueError(f"an inode holds exactly {NDIRECT + 1} addresses")
        return _DINODE.pack(
            self.type, self.major, self.minor, self.nlink, self.size, *self.addrs
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> Dinode:
        values = _unpack(_DINODE, data, "dinode")
        return cls(*values[:5], addrs=list(values[5:]))


@dataclass
class Dirent:
    """Directory entry: inode number and a name of at most DIRSIZ bytes."""

    inum: int = 0
    name: str = ""

    SIZE = _DIRENT.size

    def pack(self) -> bytes:
        return _DIRENT.pack(self.inum, self.name.encode("latin-1")[:DIRSIZ])

    @classmethod
    def from_bytes(cls, data: bytes) -> Dirent:
        inum, raw = _unpack(_DIRENT, data, "dirent")
        return cls(inum, raw.split(b"\0", 1)[0].decode("latin-1"))


def inode_block(inum: int, sb: Superblock) -> int:
    """Block holding inode ``inum``."""
    return inum // IPB + sb.inodestart


def bitmap_block(b: int, sb: Superblock) -> int:
    """Block of the free map holding the bit for block ``b``."""
    return b // BPB + sb.bmapstart