"""Process table: creation, exit, waiting, killing and nice-based scheduling."""

from __future__ import annotations

import errno
from dataclasses import dataclass, field
from enum import IntEnum

from xvsim.file import File, FileTable
from xvsim.fs import FileSystem, Inode

NPROC = 64
NOFILE = 16
DEFAULT_NICE = 20
_NICE_CEILING = 41
_NAME_LEN = 15

PS_HEADER = "pid  ppid  prio  state name\n"


class ProcError(RuntimeError):
    """Raised when the process table is misused."""


class ProcState(IntEnum):
    UNUSED = 0
    EMBRYO = 1
    SLEEPING = 2
    RUNNABLE = 3
    RUNNING = 4
    ZOMBIE = 5


_PS_NAMES = {
    ProcState.EMBRYO: "embryo",
    ProcState.SLEEPING: "sleep",
    ProcState.RUNNABLE: "runable",
    ProcState.RUNNING: "run",
    ProcState.ZOMBIE: "zombie",
}


def _fresh_ofile() -> list[File | None]:
    return [None] * NOFILE


@dataclass(eq=False)
class Process:
    """Per-process state."""

    pid: int = 0
    state: ProcState = ProcState.UNUSED
    parent: Process | None = None
    name: str = ""
    nice: int = DEFAULT_NICE
    killed: bool = False
    chan: object = None
    sz: int = 0
    ofile: list[File | None] = field(default_factory=_fresh_ofile)
    cwd: Inode | None = None


class ProcessTable:
    """A fixed number of process slots."""

    def __init__(
        self,
        nproc: int = NPROC,
        files: FileTable | None = None,
        fs: FileSystem | None = None,
    ) -> None:
        self._procs = [Process() for _ in range(nproc)]
        self.nextpid = 1
        self.initproc: Process | None = None
        self.files = files
        self.fs = fs

    @property
    def processes(self) -> list[Process]:
        """Processes in slots that are in use, in table order."""
        return [p for p in self._procs if p.state is not ProcState.UNUSED]

    def _allocproc(self) -> Process:
        for p in self._procs:
            if p.state is ProcState.UNUSED:
                p.nice = DEFAULT_NICE
                p.state = ProcState.EMBRYO
                p.pid = self.nextpid
                self.nextpid += 1
                p.killed = False
                p.chan = None
                p.ofile = _fresh_ofile()
                p.cwd = None
                return p
        raise OSError(errno.EAGAIN, "process table full")

    def _find(self, pid: int) -> Process | None:
        return next((p for p in self.processes if p.pid == pid), None)

    def _lookup(self, pid: int) -> Process:
        p = self._find(pid)
        if p is None:
            raise ProcessLookupError(f"no process {pid}")
        return p

    def _file_table(self) -> FileTable:
        if self.files is None:
            raise ProcError("open files without a file table")
        return self.files

    def _wakeup(self, chan: object) -> None:
        if chan is None:
            return
        for p in self._procs:
            if p.state is ProcState.SLEEPING and p.chan is chan:
                p.state = ProcState.RUNNABLE
                p.chan = None

    def alloc(self, name: str) -> Process:
        """Create a runnable process with no parent; the first one is init."""
        p = self._allocproc()
        p.name = name[:_NAME_LEN]
        p.parent = None
        p.sz = 0
        if self.fs is not None:
            p.cwd = self.fs.namei("/")
        p.state = ProcState.RUNNABLE
        if self.initproc is None:
            self.initproc = p
        return p

    def fork(self, parent: Process) -> Process:
        """Create a runnable copy of ``parent`` sharing its open files."""
        child = self._allocproc()
        child.sz = parent.sz
        child.parent = parent
        child.nice = parent.nice
        child.ofile = [
            None if f is None else self._file_table().dup(f) for f in parent.ofile
        ]
        if parent.cwd is not None and self.fs is not None:
            child.cwd = self.fs.idup(parent.cwd)
        child.name = parent.name
        child.state = ProcState.RUNNABLE
        return child

    def exit(self, proc: Process) -> None:
        """Close the process's files and leave it a zombie for its parent."""
        if proc is self.initproc:
            raise ProcError("init exiting")
        for f in proc.ofile:
            if f is not None:
                self._file_table().close(f)
        proc.ofile = _fresh_ofile()
        if proc.cwd is not None and self.fs is not None:
            with self.fs.log.transaction():
                self.fs.iput(proc.cwd)
        proc.cwd = None

        # Parent might be sleeping in wait().
        self._wakeup(proc.parent)
        # Pass abandoned children to init.
        for p in self._procs:
            if p.parent is proc:
                p.parent = self.initproc
                if p.state is ProcState.ZOMBIE:
                    self._wakeup(self.initproc)
        proc.state = ProcState.ZOMBIE

    def wait(self, parent: Process) -> int | None:
        """Reap an exited child and return its pid.

        Returns None when children exist but none has exited: the parent is
        then put to sleep until a child exits. Raises ChildProcessError when
        there are no children and InterruptedError when the parent was killed.
        """
        havekids = False
        for p in self._procs:
            if p.parent is not parent:
                continue
            havekids = True
            if p.state is ProcState.ZOMBIE:
                pid = p.pid
                p.pid = 0
                p.parent = None
                p.name = ""
                p.killed = False
                p.chan = None
                p.sz = 0
                p.state = ProcState.UNUSED
                return pid
        if not havekids:
            raise ChildProcessError("no children to wait for")
        if parent.killed:
            raise InterruptedError("waiting process was killed")
        parent.chan = parent
        parent.state = ProcState.SLEEPING
        return None

    def kill(self, pid: int) -> None:
        """Mark a process killed, waking it if it sleeps."""
        p = self._lookup(pid)
        p.killed = True
        if p.state is ProcState.SLEEPING:
            p.state = ProcState.RUNNABLE
            p.chan = None

    def setnice(self, pid: int, nice: int) -> None:
        """Set a process's nice value."""
        self._lookup(pid).nice = nice

    def getnice(self, pid: int) -> int:
        """Return a process's nice value."""
        return self._lookup(pid).nice

    @staticmethod
    def _ps_line(p: Process) -> str:
        ppid = p.parent.pid if p.parent is not None else 0
        state = _PS_NAMES.get(p.state, "unused")
        return f"{p.pid} {ppid}  {p.nice}  {state}  {p.name}\n"

    def ps(self, pid: int = 0) -> str:
        """Process listing: one process by pid, or every process for pid 0."""
        if pid:
            p = self._find(pid)
            lines = [] if p is None else [self._ps_line(p)]
        else:
            lines = [self._ps_line(p) for p in self.processes]
        return PS_HEADER + "".join(lines)

    def schedule_round(self) -> list[int]:
        """Give one time slice to each runnable process of the lowest nice value.

        Returns the pids that ran, in table order.
        """
        min_nice = min(
            (p.nice for p in self._procs if p.state is ProcState.RUNNABLE),
            default=_NICE_CEILING,
        )
        ran: list[int] = []
        for p in self._procs:
            if p.state is ProcState.RUNNABLE and p.nice == min_nice:
                p.state = ProcState.RUNNING
                ran.append(p.pid)
                # The slice ends with the process yielding the CPU.
                p.state = ProcState.RUNNABLE
        return ran