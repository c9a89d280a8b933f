"""Minimal printf-style formatting used by user programs and the kernel."""

from __future__ import annotations

from typing import Any, Iterator


def _take(args: Iterator[Any]) -> Any:
    try:
        return next(args)
    except StopIteration:
        raise TypeError("not enough arguments for format string") from None


def _signed(value: Any) -> str:
    x = int(value) & 0xFFFFFFFF
    if x >= 0x80000000:
        x -= 0x100000000
    return str(x)


def _string(value: Any) -> str:
    return "(null)" if value is None else str(value)


def _char(value: Any) -> str:
    if isinstance(value, str):
        return value[:1]
    return chr(int(value) & 0xFF)


def _format(fmt: str, args: tuple, hex_spec: str, with_char: bool) -> str:
    out: list[str] = []
    it = iter(args)
    pending = False
    for ch in fmt:
        if not pending:
            if ch == "%":
                pending = True
            else:
                out.append(ch)
            continue
        pending = False
        if ch == "d":
            out.append(_signed(_take(it)))
        elif ch in "xp":
            out.append(format(int(_take(it)) & 0xFFFFFFFF, hex_spec))
        elif ch == "s":
            out.append(_string(_take(it)))
        elif ch == "c" and with_char:
            out.append(_char(_take(it)))
        elif ch == "%":
            out.append("%")
        else:
            # Unknown sequence: print it to draw attention.
            out.append("%" + ch)
    return "".join(out)


def format_user(fmt: str, *args: Any) -> str:
    """Format like the user-level printf: %d, %x, %p, %s, %c, %%."""
    return _format(fmt, args, "X", with_char=True)


def format_kernel(fmt: str, *args: Any) -> str:
    """Format like the kernel's cprintf: %d, %x, %p, %s, %%."""
    if fmt is None:
        raise ValueError("null fmt")
    return _format(fmt, args, "x", with_char=False)