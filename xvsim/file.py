"""Open files and pipes, and the table of open files."""

from __future__ import annotations

import errno
from dataclasses import dataclass
from enum import Enum

from xvsim.fs import FileSystem, Inode, Stat
from xvsim.layout import BSIZE

NFILE = 100
PIPESIZE = 512


class FileError(RuntimeError):
    """Raised when a file or the file table is misused."""


class FileType(Enum):
    """What an open file refers to."""

    NONE = 0
    PIPE = 1
    INODE = 2


class Pipe:
    """A bounded byte buffer with a read end and a write end."""

    def __init__(self) -> None:
        self._data = bytearray(PIPESIZE)
        self.nread = 0  # number of bytes read
        self.nwrite = 0  # number of bytes written
        self.readopen = True
        self.writeopen = True

    def __len__(self) -> int:
        return self.nwrite - self.nread

    def write(self, data: bytes) -> int:
        """Append ``data``; return its length.

        Raises BrokenPipeError when the buffer fills and no reader is left,
        and BlockingIOError (with ``characters_written``) when it fills while
        a reader is still open.
        """
        for written, byte in enumerate(data):
            if self.nwrite == self.nread + PIPESIZE:
                if not self.readopen:
                    raise BrokenPipeError(errno.EPIPE, "pipe has no reader")
                raise BlockingIOError(errno.EAGAIN, "pipe is full", written)
            self._data[self.nwrite % PIPESIZE] = byte
            self.nwrite += 1
        return len(data)

    def read(self, n: int) -> bytes:
        """Take up to ``n`` bytes; empty once drained with the writer closed.

        Raises BlockingIOError when the pipe is empty and a writer is open.
        """
        if self.nread == self.nwrite:
            if self.writeopen:
                raise BlockingIOError(errno.EAGAIN, "pipe is empty")
            return b""
        out = bytearray()
        while len(out) < n and self.nread != self.nwrite:
            out.append(self._data[self.nread % PIPESIZE])
            self.nread += 1
        return bytes(out)

    def close(self, writable: bool) -> bool:
        """Close one end; return True once both ends are closed."""
        if writable:
            self.writeopen = False
        else:
            self.readopen = False
        return not self.readopen and not self.writeopen


@dataclass(eq=False)
class File:
    """An open file: a pipe end or an inode with a file offset."""

    type: FileType = FileType.NONE
    ref: int = 0
    readable: bool = False
    writable: bool = False
    pipe: Pipe | None = None
    ip: Inode | None = None
    off: int = 0
    fs: FileSystem | None = None

    def _fs(self) -> FileSystem:
        if self.fs is None or self.ip is None:
            raise FileError("inode file without a file system")
        return self.fs

    def read(self, n: int) -> bytes:
        """Read up to ``n`` bytes, advancing the offset of an inode file."""
        if not self.readable:
            raise OSError(errno.EBADF, "file not open for reading")
        if self.type is FileType.PIPE and self.pipe is not None:
            return self.pipe.read(n)
        if self.type is FileType.INODE:
            fs = self._fs()
            with fs.locked(self.ip):
                data = fs.readi(self.ip, self.off, n)
                self.off += len(data)
            return data
        raise FileError("fileread")

    def write(self, data: bytes) -> int:
        """Write ``data``; inode writes go a few blocks per transaction."""
        if not self.writable:
            raise OSError(errno.EBADF, "file not open for writing")
        if self.type is FileType.PIPE and self.pipe is not None:
            return self.pipe.write(data)
        if self.type is FileType.INODE:
            fs = self._fs()
            # Room for the inode, indirect block, bitmap and 2 blocks of slop.
            max_chunk = ((fs.log.max_op_blocks - 1 - 1 - 2) // 2) * BSIZE
            done = 0
            while done < len(data):
                chunk = data[done : done + max_chunk]
                with fs.log.transaction(), fs.locked(self.ip):
                    r = fs.writei(self.ip, chunk, self.off)
                    self.off += r
                if r != len(chunk):
                    raise FileError("short filewrite")
                done += r
            return len(data)
        raise FileError("filewrite")

    def stat(self) -> Stat:
        """Metadata of the inode behind the file."""
        if self.type is not FileType.INODE:
            raise OSError(errno.EBADF, "not an inode file")
        fs = self._fs()
        with fs.locked(self.ip):
            return fs.stati(self.ip)


class FileTable:
    """A fixed set of open-file slots shared by all processes."""

    def __init__(self, fs: FileSystem | None = None, nfile: int = NFILE) -> None:
        self.fs = fs
        self._files = [File(fs=fs) for _ in range(nfile)]

    def alloc(self) -> File:
        """Claim a free slot, returned with one reference and no type."""
        for f in self._files:
            if f.ref == 0:
                f.type = FileType.NONE
                f.ref = 1
                f.readable = f.writable = False
                f.pipe = None
                f.ip = None
                f.off = 0
                f.fs = self.fs
                return f
        raise OSError(errno.ENFILE, "file table full")

    def dup(self, f: File) -> File:
        """Take another reference to ``f``."""
        if f.ref < 1:
            raise FileError("filedup")
        f.ref += 1
        return f

    def close(self, f: File) -> None:
        """Drop a reference; release the pipe end or inode with the last one."""
        if f.ref < 1:
            raise FileError("fileclose")
        f.ref -= 1
        if f.ref > 0:
            return
        kind, pipe, writable, ip, fs = f.type, f.pipe, f.writable, f.ip, f.fs
        f.type = FileType.NONE
        f.pipe = None
        f.ip = None
        if kind is FileType.PIPE and pipe is not None:
            pipe.close(writable)
        elif kind is FileType.INODE and ip is not None and fs is not None:
            with fs.log.transaction():
                fs.iput(ip)


def pipe_alloc(table: FileTable) -> tuple[File, File]:
    """Create a pipe; return its read end and its write end."""
    f0 = table.alloc()
    try:
        f1 = table.alloc()
    except OSError:
        table.close(f0)
        raise
    pipe = Pipe()
    f0.type, f0.readable, f0.writable, f0.pipe = FileType.PIPE, True, False, pipe
    f1.type, f1.readable, f1.writable, f1.pipe = FileType.PIPE, False, True, pipe
    return f0, f1