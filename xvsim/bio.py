"""Buffer cache: cached copies of disk blocks kept in most-recently-used order."""

from __future__ import annotations

from dataclasses import dataclass, field

from xvsim.disk import MemDisk
from xvsim.layout import BSIZE

NBUF = 30


class CacheError(RuntimeError):
    """Raised when the buffer cache is misused or exhausted."""


@dataclass(eq=False)
class Buffer:
    """One cached disk block."""

    dev: int = 0
    blockno: int = 0
    refcnt: int = 0
    valid: bool = False  # data has been read from disk
    dirty: bool = False  # data modified, must be written to disk
    locked: bool = False
    data: bytearray = field(default_factory=lambda: bytearray(BSIZE))


class BufferCache:
    """A fixed set of buffers in front of a disk."""

    def __init__(self, disk: MemDisk, nbuf: int = NBUF) -> None:
        if nbuf < 1:
            raise ValueError("the cache needs at least one buffer")
        self.disk = disk
        # Front of the list is the most recently used buffer.
        self._lru = [Buffer() for _ in range(nbuf)]

    def _lock(self, b: Buffer) -> Buffer:
        if b.locked:
            b.refcnt -= 1
            raise CacheError(f"block {b.blockno} is already in use")
        b.locked = True
        return b

    def _get(self, dev: int, blockno: int) -> Buffer:
        for b in self._lru:
            if b.dev == dev and b.blockno == blockno:
                b.refcnt += 1
                return self._lock(b)
        # Not cached; recycle the least recently used free buffer.
        # A dirty buffer is still pinned by the log even with refcnt 0.
        for b in reversed(self._lru):
            if b.refcnt == 0 and not b.dirty:
                b.dev = dev
                b.blockno = blockno
                b.valid = False
                b.dirty = False
                b.refcnt = 1
                return self._lock(b)
        raise CacheError("bget: no buffers")

    def _sync(self, b: Buffer) -> None:
        if not b.locked:
            raise CacheError("iderw: buf not locked")
        if b.valid and not b.dirty:
            raise CacheError("iderw: nothing to do")
        if b.dev != self.disk.dev:
            raise CacheError(f"iderw: request not for disk {self.disk.dev}")
        if b.dirty:
            b.dirty = False
            self.disk.write_block(b.blockno, b.data)
        else:
            b.data[:] = self.disk.read_block(b.blockno)
        b.valid = True

    def bread(self, dev: int, blockno: int) -> Buffer:
        """Return a locked buffer holding the contents of the block."""
        b = self._get(dev, blockno)
        if not b.valid:
            try:
                self._sync(b)
            except Exception:
                b.locked = False
                b.refcnt -= 1
                raise
        return b

    def bwrite(self, buf: Buffer) -> None:
        """Write a locked buffer's contents to disk."""
        if not buf.locked:
            raise CacheError("bwrite")
        buf.dirty = True
        self._sync(buf)

    def brelse(self, buf: Buffer) -> None:
        """Release a locked buffer, making it the most recently used."""
        if not buf.locked:
            raise CacheError("brelse")
        buf.locked = False
        buf.refcnt -= 1
        if buf.refcnt == 0:
            self._lru.remove(buf)
            self._lru.insert(0, buf)