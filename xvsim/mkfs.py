"""Build a file system image holding a root directory and some files."""

from __future__ import annotations

import os
import struct
import sys
from pathlib import Path
from typing import Iterable

from xvsim.layout import (
    BPB,
    BSIZE,
    IPB,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    Dinode,
    Dirent,
    Superblock,
    inode_block,
)
from xvsim.log import LOGSIZE

FSSIZE = 1000
NINODES = 200

T_DIR = 1
T_FILE = 2
T_DEV = 3

_INDIRECT = struct.Struct(f"<{NINDIRECT}I")


class ImageBuilder:
    """Lays out an empty file system and appends files to its root directory."""

    def __init__(
        self, fs_size: int = FSSIZE, log_size: int = LOGSIZE, ninodes: int = NINODES
    ) -> None:
        self.fs_size = fs_size
        self.nlog = log_size
        self.ninodes = ninodes
        self.nbitmap = fs_size // BPB + 1
        self.ninodeblocks = ninodes // IPB + 1
        self.nmeta = 2 + log_size + self.ninodeblocks + self.nbitmap
        self.nblocks = fs_size - self.nmeta
        if self.nblocks <= 0:
            raise ValueError("file system too small for its metadata")
        self.sb = Superblock(
            size=fs_size,
            nblocks=self.nblocks,
            ninodes=ninodes,
            nlog=log_size,
            logstart=2,
            inodestart=2 + log_size,
            bmapstart=2 + log_size + self.ninodeblocks,
        )
        self._image = bytearray(fs_size * BSIZE)
        self._wsect(1, self.sb.pack())
        self.freeinode = 1
        self.freeblock = self.nmeta
        self._finished = False

        self.root = self._ialloc(T_DIR)
        if self.root != ROOTINO:
            raise AssertionError("root inode must be allocated first")
        self._iappend(self.root, Dirent(self.root, ".").pack())
        self._iappend(self.root, Dirent(self.root, "..").pack())

    def _wsect(self, sec: int, data: bytes) -> None:
        if not 0 <= sec < self.fs_size:
            raise ValueError(f"sector out of range: {sec}")
        if len(data) > BSIZE:
            raise ValueError("sector data too long")
        start = sec * BSIZE
        self._image[start : start + BSIZE] = data.ljust(BSIZE, b"\0")

    def _rsect(self, sec: int) -> bytes:
        if not 0 <= sec < self.fs_size:
            raise ValueError(f"sector out of range: {sec}")
        return bytes(self._image[sec * BSIZE : (sec + 1) * BSIZE])

    def _inode_slot(self, inum: int) -> tuple[int, int]:
        return inode_block(inum, self.sb), (inum % IPB) * Dinode.SIZE

    def _rinode(self, inum: int) -> Dinode:
        bn, off = self._inode_slot(inum)
        return Dinode.from_bytes(self._rsect(bn)[off : off + Dinode.SIZE])

    def _winode(self, inum: int, din: Dinode) -> None:
        bn, off = self._inode_slot(inum)
        block = bytearray(self._rsect(bn))
        block[off : off + Dinode.SIZE] = din.pack()
        self._wsect(bn, bytes(block))

    def _ialloc(self, type_: int) -> int:
        inum = self.freeinode
        if inum >= self.ninodes:
            raise ValueError("out of inodes")
        self.freeinode += 1
        self._winode(inum, Dinode(type=type_, nlink=1, size=0))
        return inum

    def _alloc_block(self) -> int:
        b = self.freeblock
        if b >= self.fs_size:
            raise ValueError("out of data blocks")
        self.freeblock += 1
        return b

    def _iappend(self, inum: int, data: bytes) -> None:
        din = self._rinode(inum)
        off = din.size
        pos = 0
        while pos < len(data):
            fbn = off // BSIZE
            if fbn >= MAXFILE:
                raise ValueError("file too large")
            if fbn < NDIRECT:
                if din.addrs[fbn] == 0:
                    din.addrs[fbn] = self._alloc_block()
                x = din.addrs[fbn]
            else:
                if din.addrs[NDIRECT] == 0:
                    din.addrs[NDIRECT] = self._alloc_block()
                indirect = list(_INDIRECT.unpack(self._rsect(din.addrs[NDIRECT])))
                if indirect[fbn - NDIRECT] == 0:
                    indirect[fbn - NDIRECT] = self._alloc_block()
                    self._wsect(din.addrs[NDIRECT], _INDIRECT.pack(*indirect))
                x = indirect[fbn - NDIRECT]
            n1 = min(len(data) - pos, (fbn + 1) * BSIZE - off)
            block = bytearray(self._rsect(x))
            start = off - fbn * BSIZE
            block[start : start + n1] = data[pos : pos + n1]
            self._wsect(x, bytes(block))
            pos += n1
            off += n1
        din.size = off
        self._winode(inum, din)

    def add_file(self, name: str, data: bytes) -> int:
        """Add a file to the root directory; a leading '_' is dropped from its name."""
        if self._finished:
            raise ValueError("image already finished")
        if "/" in name:
            raise ValueError(f"file name may not contain '/': {name!r}")
        if name.startswith("_"):
            name = name[1:]
        inum = self._ialloc(T_FILE)
        self._iappend(self.root, Dirent(inum, name).pack())
        self._iappend(inum, data)
        return inum

    def finish(self) -> bytes:
        """Round up the root directory, write the free bitmap, return the image."""
        if self._finished:
            raise ValueError("image already finished")
        din = self._rinode(self.root)
        din.size = (din.size // BSIZE + 1) * BSIZE
        self._winode(self.root, din)

        used = self.freeblock
        if used >= BPB:
            raise ValueError("too many blocks for one bitmap block")
        bitmap = bytearray(BSIZE)
        for i in range(used):
            bitmap[i // 8] |= 1 << (i % 8)
        self._wsect(self.sb.bmapstart, bytes(bitmap))
        self._finished = True
        return bytes(self._image)


def build_image(
    path: str | os.PathLike[str],
    files: Iterable[str | os.PathLike[str]],
    fs_size: int = FSSIZE,
    log_size: int = LOGSIZE,
) -> ImageBuilder:
    """Write an image at ``path`` holding ``files``; return the finished builder."""
    builder = ImageBuilder(fs_size=fs_size, log_size=log_size)
    for file in files:
        source = Path(file)
        builder.add_file(source.name, source.read_bytes())
    Path(path).write_bytes(builder.finish())
    return builder


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        sys.stderr.write("Usage: mkfs fs.img files...\n")
        return 1
    try:
        builder = build_image(args[0], args[1:])
    except OSError as err:
        sys.stderr.write(f"{err.filename}: {err.strerror}\n")
        return 1
    except ValueError as err:
        sys.stderr.write(f"mkfs: {err}\n")
        return 1
    print(
        f"nmeta {builder.nmeta} (boot, super, log blocks {builder.nlog} "
        f"inode blocks {builder.ninodeblocks}, bitmap blocks {builder.nbitmap}) "
        f"blocks {builder.nblocks} total {builder.fs_size}"
    )
    print(f"balloc: first {builder.freeblock} blocks have been allocated")
    print(f"balloc: write bitmap block at sector {builder.sb.bmapstart}")
    return 0