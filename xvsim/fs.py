"""File system: block allocation, inodes, file contents, directories, path names."""

from __future__ import annotations

import struct
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator

from xvsim.bio import Buffer, BufferCache
from xvsim.disk import DISK_DEV
from xvsim.layout import (
    BPB,
    BSIZE,
    DIRSIZ,
    IPB,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    Dinode,
    Dirent,
    Superblock,
    bitmap_block,
    inode_block,
)
from xvsim.log import Log
from xvsim.mkfs import T_DEV, T_DIR

NINODE = 50
NDEV = 10

_UINT = struct.Struct("<I")


class FsError(RuntimeError):
    """Raised when the file system is misused or its resources run out."""


@dataclass
class Device:
    """Read and write handlers for a device inode's major number."""

    read: Callable[["Inode", int], bytes] | None = None
    write: Callable[["Inode", bytes], int] | None = None


@dataclass
class Stat:
    """Metadata about an inode."""

    dev: int
    ino: int
    type: int
    nlink: int
    size: int


@dataclass(eq=False)
class Inode:
    """In-memory copy of an inode."""

    dev: int = 0
    inum: int = 0
    ref: int = 0
    valid: bool = False
    locked: bool = False
    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=lambda: [0] * (NDIRECT + 1))


def skip_elem(path: str) -> tuple[str, str] | None:
    """Split off the first path element.

    Returns ``(name, rest)`` with leading slashes removed from ``rest``, or
    None when no element is left. Names are truncated to DIRSIZ characters.
    """
    path = path.lstrip("/")
    if not path:
        return None
    name, _, rest = path.partition("/")
    return name[:DIRSIZ], rest.lstrip("/")


class FileSystem:
    """Inode layer over a buffer cache, with updates recorded in a log."""

    def __init__(
        self,
        cache: BufferCache,
        log: Log,
        dev: int = DISK_DEV,
        ninode: int = NINODE,
        devsw: dict[int, Device] | None = None,
    ) -> None:
        self.cache = cache
        self.log = log
        self.dev = dev
        self.devsw: dict[int, Device] = dict(devsw or {})
        with self._block(1) as bp:
            self.sb = Superblock.from_bytes(bytes(bp.data))
        self._table = [Inode(dev=dev) for _ in range(ninode)]

    @contextmanager
    def _block(self, blockno: int) -> Iterator[Buffer]:
        bp = self.cache.bread(self.dev, blockno)
        try:
            yield bp
        finally:
            self.cache.brelse(bp)

    # Blocks.

    def _bzero(self, bno: int) -> None:
        with self._block(bno) as bp:
            bp.data[:] = bytes(BSIZE)
            self.log.log_write(bp)

    def _balloc(self) -> int:
        for base in range(0, self.sb.size, BPB):
            found = None
            with self._block(bitmap_block(base, self.sb)) as bp:
                for bi in range(min(BPB, self.sb.size - base)):
                    m = 1 << (bi % 8)
                    if not bp.data[bi // 8] & m:
                        bp.data[bi // 8] |= m
                        self.log.log_write(bp)
                        found = base + bi
                        break
            if found is not None:
                self._bzero(found)
                return found
        raise FsError("balloc: out of blocks")

    def _bfree(self, b: int) -> None:
        with self._block(bitmap_block(b, self.sb)) as bp:
            bi = b % BPB
            m = 1 << (bi % 8)
            if not bp.data[bi // 8] & m:
                raise FsError("freeing free block")
            bp.data[bi // 8] &= ~m & 0xFF
            self.log.log_write(bp)

    # Inodes.

    def _slot(self, inum: int) -> tuple[int, int]:
        return inode_block(inum, self.sb), (inum % IPB) * Dinode.SIZE

    def ialloc(self, type_: int) -> Inode:
        """Allocate an on-disk inode of the given type; return it unlocked and referenced."""
        for inum in range(1, self.sb.ninodes):
            bn, off = self._slot(inum)
            with self._block(bn) as bp:
                din = Dinode.from_bytes(bytes(bp.data[off : off + Dinode.SIZE]))
                if din.type != 0:
                    continue
                bp.data[off : off + Dinode.SIZE] = Dinode(type=type_).pack()
                self.log.log_write(bp)
            return self.iget(inum)
        raise FsError("ialloc: no inodes")

    def iupdate(self, ip: Inode) -> None:
        """Copy an in-memory inode's on-disk fields to disk."""
        bn, off = self._slot(ip.inum)
        din = Dinode(ip.type, ip.major, ip.minor, ip.nlink, ip.size, list(ip.addrs))
        with self._block(bn) as bp:
            bp.data[off : off + Dinode.SIZE] = din.pack()
            self.log.log_write(bp)

    def iget(self, inum: int) -> Inode:
        """Return the cached inode for ``inum``, taking a reference; no lock, no read."""
        empty = None
        for ip in self._table:
            if ip.ref > 0 and ip.dev == self.dev and ip.inum == inum:
                ip.ref += 1
                return ip
            if empty is None and ip.ref == 0:
                empty = ip
        if empty is None:
            raise FsError("iget: no inodes")
        empty.dev = self.dev
        empty.inum = inum
        empty.ref = 1
        empty.valid = False
        return empty

    def idup(self, ip: Inode) -> Inode:
        """Take another reference to ``ip``."""
        ip.ref += 1
        return ip

    def ilock(self, ip: Inode) -> None:
        """Lock the inode, reading it from disk if needed."""
        if ip is None or ip.ref < 1:
            raise FsError("ilock")
        if ip.locked:
            raise FsError(f"ilock: inode {ip.inum} already locked")
        ip.locked = True
        if not ip.valid:
            bn, off = self._slot(ip.inum)
            with self._block(bn) as bp:
                din = Dinode.from_bytes(bytes(bp.data[off : off + Dinode.SIZE]))
            ip.type, ip.major, ip.minor = din.type, din.major, din.minor
            ip.nlink, ip.size, ip.addrs = din.nlink, din.size, list(din.addrs)
            ip.valid = True
            if ip.type == 0:
                ip.locked = False
                raise FsError("ilock: no type")

    def iunlock(self, ip: Inode) -> None:
        """Unlock the inode."""
        if ip is None or not ip.locked or ip.ref < 1:
            raise FsError("iunlock")
        ip.locked = False

    def iput(self, ip: Inode) -> None:
        """Drop a reference; free the inode on disk if it was the last and unlinked."""
        if ip.locked:
            raise FsError(f"iput: inode {ip.inum} is locked")
        if ip.valid and ip.nlink == 0 and ip.ref == 1:
            ip.locked = True
            try:
                self._itrunc(ip)
                ip.type = 0
                self.iupdate(ip)
                ip.valid = False
            finally:
                ip.locked = False
        ip.ref -= 1

    def iunlockput(self, ip: Inode) -> None:
        """Unlock, then drop a reference."""
        self.iunlock(ip)
        self.iput(ip)

    @contextmanager
    def locked(self, ip: Inode) -> Iterator[Inode]:
        """Hold the inode's lock for the enclosed block."""
        self.ilock(ip)
        try:
            yield ip
        finally:
            self.iunlock(ip)

    # Inode content.

    def _bmap(self, ip: Inode, bn: int) -> int:
        if bn < NDIRECT:
            if ip.addrs[bn] == 0:
                ip.addrs[bn] = self._balloc()
            return ip.addrs[bn]
        bn -= NDIRECT
        if bn < NINDIRECT:
            if ip.addrs[NDIRECT] == 0:
                ip.addrs[NDIRECT] = self._balloc()
            with self._block(ip.addrs[NDIRECT]) as bp:
                (addr,) = _UINT.unpack_from(bp.data, bn * _UINT.size)
                if addr == 0:
                    addr = self._balloc()
                    _UINT.pack_into(bp.data, bn * _UINT.size, addr)
                    self.log.log_write(bp)
            return addr
        raise FsError("bmap: out of range")

    def _itrunc(self, ip: Inode) -> None:
        for i in range(NDIRECT):
            if ip.addrs[i]:
                self._bfree(ip.addrs[i])
                ip.addrs[i] = 0
        if ip.addrs[NDIRECT]:
            with self._block(ip.addrs[NDIRECT]) as bp:
                entries = struct.unpack_from(f"<{NINDIRECT}I", bp.data)
                for addr in entries:
                    if addr:
                        self._bfree(addr)
            self._bfree(ip.addrs[NDIRECT])
            ip.addrs[NDIRECT] = 0
        ip.size = 0
        self.iupdate(ip)

    def stati(self, ip: Inode) -> Stat:
        """Metadata of a locked inode."""
        return Stat(ip.dev, ip.inum, ip.type, ip.nlink, ip.size)

    def _device(self, ip: Inode) -> Device:
        device = self.devsw.get(ip.major) if 0 <= ip.major < NDEV else None
        if device is None:
            raise FsError(f"no device for major {ip.major}")
        return device

    def readi(self, ip: Inode, off: int, n: int) -> bytes:
        """Read up to ``n`` bytes at ``off`` from a locked inode."""
        if ip.type == T_DEV:
            device = self._device(ip)
            if device.read is None:
                raise FsError(f"device {ip.major} cannot read")
            return device.read(ip, n)
        if n < 0 or off < 0 or off > ip.size:
            raise FsError(f"readi: bad range {off}+{n}")
        n = min(n, ip.size - off)
        out = bytearray()
        while len(out) < n:
            pos = off + len(out)
            start = pos % BSIZE
            with self._block(self._bmap(ip, pos // BSIZE)) as bp:
                m = min(n - len(out), BSIZE - start)
                out += bp.data[start : start + m]
        return bytes(out)

    def writei(self, ip: Inode, data: bytes, off: int) -> int:
        """Write ``data`` at ``off`` into a locked inode; return the byte count."""
        if ip.type == T_DEV:
            device = self._device(ip)
            if device.write is None:
                raise FsError(f"device {ip.major} cannot write")
            return device.write(ip, data)
        n = len(data)
        if off < 0 or off > ip.size:
            raise FsError(f"writei: bad offset {off}")
        if off + n > MAXFILE * BSIZE:
            raise FsError("writei: file too large")
        done = 0
        while done < n:
            pos = off + done
            start = pos % BSIZE
            with self._block(self._bmap(ip, pos // BSIZE)) as bp:
                m = min(n - done, BSIZE - start)
                bp.data[start : start + m] = data[done : done + m]
                self.log.log_write(bp)
            done += m
        if n > 0 and off + n > ip.size:
            ip.size = off + n
            self.iupdate(ip)
        return n

    # Directories.

    def _entries(self, dp: Inode) -> Iterator[tuple[int, Dirent]]:
        for off in range(0, dp.size - Dirent.SIZE + 1, Dirent.SIZE):
            raw = self.readi(dp, off, Dirent.SIZE)
            if len(raw) != Dirent.SIZE:
                raise FsError("directory read")
            yield off, Dirent.from_bytes(raw)

    def dirlookup(self, dp: Inode, name: str) -> tuple[Inode, int] | None:
        """Find ``name`` in a locked directory; return its inode and entry offset."""
        if dp.type != T_DIR:
            raise FsError("dirlookup not DIR")
        wanted = name[:DIRSIZ]
        for off, de in self._entries(dp):
            if de.inum != 0 and de.name == wanted:
                return self.iget(de.inum), off
        return None

    def dirlink(self, dp: Inode, name: str, inum: int) -> None:
        """Add the entry ``(name, inum)`` to a locked directory."""
        found = self.dirlookup(dp, name)
        if found is not None:
            self.iput(found[0])
            raise FileExistsError(name)
        off = dp.size
        for entry_off, de in self._entries(dp):
            if de.inum == 0:
                off = entry_off
                break
        if self.writei(dp, Dirent(inum, name[:DIRSIZ]).pack(), off) != Dirent.SIZE:
            raise FsError("dirlink")

    # Paths.

    def _namex(
        self, path: str, parent: bool, cwd: Inode | None
    ) -> tuple[Inode, str] | None:
        if path.startswith("/"):
            ip = self.iget(ROOTINO)
        else:
            if cwd is None:
                raise ValueError("relative path without a current directory")
            ip = self.idup(cwd)
        name = ""
        while (elem := skip_elem(path)) is not None:
            name, path = elem
            self.ilock(ip)
            if ip.type != T_DIR:
                self.iunlockput(ip)
                return None
            if parent and not path:
                self.iunlock(ip)
                return ip, name
            found = self.dirlookup(ip, name)
            self.iunlockput(ip)
            if found is None:
                return None
            ip = found[0]
        if parent:
            self.iput(ip)
            return None
        return ip, name

    def namei(self, path: str, cwd: Inode | None = None) -> Inode | None:
        """Return the referenced, unlocked inode for ``path``, or None."""
        result = self._namex(path, False, cwd)
        return None if result is None else result[0]

    def nameiparent(
        self, path: str, cwd: Inode | None = None
    ) -> tuple[Inode, str] | None:
        """Return the parent directory of ``path`` and the final element, or None."""
        return self._namex(path, True, cwd)