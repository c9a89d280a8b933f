"""Small user programs: ls name formatting, echo and cat."""

from __future__ import annotations

from typing import IO, AnyStr, Sequence

from xvsim.layout import DIRSIZ

_CHUNK = 512


def fmtname(path: str) -> str:
    """Last path component, blank-padded to DIRSIZ unless already that long."""
    name = path.rsplit("/", 1)[-1]
    if len(name) >= DIRSIZ:
        return name
    return name.ljust(DIRSIZ)


def echo_line(args: Sequence[str]) -> str:
    """The line echo prints: arguments joined by spaces, newline-terminated."""
    if not args:
        return ""
    return " ".join(args) + "\n"


def cat(stream: IO[AnyStr], out: IO[AnyStr]) -> int:
    """Copy ``stream`` to ``out``; return how much was copied."""
    total = 0
    while chunk := stream.read(_CHUNK):
        written = out.write(chunk)
        if written is not None and written != len(chunk):
            raise OSError("cat: write error")
        total += len(chunk)
    return total