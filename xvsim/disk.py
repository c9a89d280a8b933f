"""In-memory disk that stores file system blocks in a byte array."""

from __future__ import annotations

from xvsim.layout import BSIZE

DISK_DEV = 1


class DiskError(RuntimeError):
    """Raised for requests the disk cannot serve."""


class MemDisk:
    """A disk whose blocks live in memory instead of on a device."""

    def __init__(self, image: bytes | bytearray, dev: int = DISK_DEV) -> None:
        self._data = bytearray(image)
        self.dev = dev
        self.nblocks = len(self._data) // BSIZE

    @property
    def image(self) -> bytes:
        """The current contents of the whole disk."""
        return bytes(self._data)

    def _check(self, blockno: int) -> int:
        if not 0 <= blockno < self.nblocks:
            raise DiskError(f"block out of range: {blockno}")
        return blockno * BSIZE

    def read_block(self, blockno: int) -> bytes:
        """Return the BSIZE bytes of block ``blockno``."""
        start = self._check(blockno)
        return bytes(self._data[start : start + BSIZE])

    def write_block(self, blockno: int, data: bytes | bytearray) -> None:
        """Replace block ``blockno`` with exactly BSIZE bytes."""
        start = self._check(blockno)
        if len(data) != BSIZE:
            raise ValueError(f"a block is {BSIZE} bytes, got {len(data)}")
        self._data[start : start + BSIZE] = data