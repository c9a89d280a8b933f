"""Write-ahead redo log grouping file system updates into transactions."""

from __future__ import annotations

import struct
from contextlib import contextmanager
from typing import Iterator

from xvsim.bio import Buffer, BufferCache
from xvsim.layout import BSIZE, Superblock

LOGSIZE = 30
MAXOPBLOCKS = 10

_COUNT = struct.Struct("<i")


class LogError(RuntimeError):
    """Raised when the log is misused or its space runs out."""


class Log:
    """Physical redo log: a header block followed by copies of logged blocks."""

    def __init__(
        self,
        cache: BufferCache,
        dev: int,
        log_size: int = LOGSIZE,
        max_op_blocks: int = MAXOPBLOCKS,
    ) -> None:
        if _COUNT.size * (1 + log_size) >= BSIZE:
            raise LogError("initlog: too big logheader")
        self.cache = cache
        self.dev = dev
        self.log_size = log_size
        self.max_op_blocks = max_op_blocks
        buf = cache.bread(dev, 1)
        sb = Superblock.from_bytes(bytes(buf.data))
        cache.brelse(buf)
        self.start = sb.logstart
        self.size = sb.nlog
        self.outstanding = 0
        self.committing = False
        self._blocks: list[int] = []
        self._recover()

    @property
    def blocks(self) -> tuple[int, ...]:
        """Block numbers logged in the current transaction."""
        return tuple(self._blocks)

    def _read_head(self) -> None:
        buf = self.cache.bread(self.dev, self.start)
        (n,) = _COUNT.unpack_from(buf.data, 0)
        if not 0 <= n <= self.log_size:
            self.cache.brelse(buf)
            raise LogError(f"corrupt log header: {n} blocks")
        self._blocks = list(struct.unpack_from(f"<{n}i", buf.data, _COUNT.size))
        self.cache.brelse(buf)

    def _write_head(self) -> None:
        # Writing the header is the point at which a transaction commits.
        buf = self.cache.bread(self.dev, self.start)
        n = len(self._blocks)
        struct.pack_into(f"<i{n}i", buf.data, 0, n, *self._blocks)
        self.cache.bwrite(buf)
        self.cache.brelse(buf)

    def _install(self) -> None:
        for tail, blockno in enumerate(self._blocks):
            lbuf = self.cache.bread(self.dev, self.start + tail + 1)
            dbuf = self.cache.bread(self.dev, blockno)
            dbuf.data[:] = lbuf.data
            self.cache.bwrite(dbuf)
            self.cache.brelse(lbuf)
            self.cache.brelse(dbuf)

    def _write_log(self) -> None:
        for tail, blockno in enumerate(self._blocks):
            to = self.cache.bread(self.dev, self.start + tail + 1)
            src = self.cache.bread(self.dev, blockno)
            to.data[:] = src.data
            self.cache.bwrite(to)
            self.cache.brelse(src)
            self.cache.brelse(to)

    def _recover(self) -> None:
        self._read_head()
        self._install()
        self._blocks = []
        self._write_head()

    def _commit(self) -> None:
        if self._blocks:
            self._write_log()
            self._write_head()
            self._install()
            self._blocks = []
            self._write_head()

    def begin_op(self) -> None:
        """Start a file system operation."""
        if self.committing:
            raise LogError("log is committing")
        reserved = (self.outstanding + 1) * self.max_op_blocks
        if len(self._blocks) + reserved > self.log_size:
            raise LogError("log space exhausted")
        self.outstanding += 1

    def end_op(self) -> None:
        """Finish an operation; commit if it was the last outstanding one."""
        if self.outstanding < 1:
            raise LogError("end_op outside of transaction")
        self.outstanding -= 1
        if self.committing:
            raise LogError("log.committing")
        if self.outstanding == 0:
            self.committing = True
            try:
                self._commit()
            finally:
                self.committing = False

    def log_write(self, buf: Buffer) -> None:
        """Record a modified buffer in the transaction and pin it in the cache."""
        n = len(self._blocks)
        if n >= self.log_size or n >= self.size - 1:
            raise LogError("too big a transaction")
        if self.outstanding < 1:
            raise LogError("log_write outside of trans")
        if buf.blockno not in self._blocks:
            self._blocks.append(buf.blockno)
        buf.dirty = True

    @contextmanager
    def transaction(self) -> Iterator[Log]:
        """Run the enclosed block as one operation: begin_op ... end_op."""
        self.begin_op()
        try:
            yield self
        finally:
            self.end_op()