"""Simple grep supporting only the ^ . * $ operators."""

from __future__ import annotations

import sys
from typing import Iterable, Iterator, TextIO

_BUF_SIZE = 1024


def match(pattern: str, text: str) -> bool:
    """Return True if ``pattern`` matches anywhere in ``text``."""
    if pattern.startswith("^"):
        return _match_here(pattern, 1, text, 0)
    for start in range(len(text) + 1):
        if _match_here(pattern, 0, text, start):
            return True
    return False


def _match_here(pattern: str, pi: int, text: str, ti: int) -> bool:
    while True:
        if pi == len(pattern):
            return True
        if pi + 1 < len(pattern) and pattern[pi + 1] == "*":
            return _match_star(pattern[pi], pattern, pi + 2, text, ti)
        if pattern[pi] == "$" and pi + 1 == len(pattern):
            return ti == len(text)
        if ti < len(text) and pattern[pi] in (".", text[ti]):
            pi += 1
            ti += 1
            continue
        return False


def _match_star(c: str, pattern: str, pi: int, text: str, ti: int) -> bool:
    while True:
        if _match_here(pattern, pi, text, ti):
            return True
        if ti < len(text) and (text[ti] == c or c == "."):
            ti += 1
            continue
        return False


def grep_lines(pattern: str, lines: Iterable[str]) -> Iterator[str]:
    """Yield the lines that match ``pattern``."""
    return (line for line in lines if match(pattern, line))


def _grep_stream(pattern: str, stream: TextIO, out: TextIO) -> None:
    # Only newline-terminated lines are considered; a chunk of input with
    # no newline at all is discarded, as is an unterminated final line.
    pending = ""
    while True:
        chunk = stream.read(_BUF_SIZE - 1 - len(pending))
        if not chunk:
            break
        pending += chunk
        *lines, tail = pending.split("\n")
        for line in grep_lines(pattern, lines):
            out.write(line + "\n")
        pending = tail if lines else ""


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        sys.stderr.write("usage: grep pattern [file ...]\n")
        return 1
    pattern = args[0]
    if len(args) == 1:
        _grep_stream(pattern, sys.stdin, sys.stdout)
        return 0
    for path in args[1:]:
        try:
            handle = open(path, encoding="latin-1", newline="")
        except OSError:
            sys.stdout.write(f"grep: cannot open {path}\n")
            return 1
        with handle:
            _grep_stream(pattern, handle, sys.stdout)
    return 0