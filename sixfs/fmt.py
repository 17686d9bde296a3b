"""Minimal printf-style formatting: %d, %x, %p, %s, and %c for user programs."""

from __future__ import annotations

from typing import Any, Iterator

_UPPER = "0123456789ABCDEF"
_LOWER = "0123456789abcdef"


def _render_int(value: int, base: int, signed: bool, digits: str) -> str:
    x = int(value) & 0xFFFFFFFF
    negative = signed and bool(x & 0x80000000)
    if negative:
        x = (1 << 32) - x
    out = []
    while True:
        out.append(digits[x % base])
        x //= base
        if x == 0:
            break
    if negative:
        out.append("-")
    return "".join(reversed(out))


def _next(args: Iterator[Any]) -> Any:
    try:
        return next(args)
    except StopIteration:
        raise TypeError("not enough arguments for format string") from None


def _format(fmt: str, args: tuple, digits: str, with_char: bool) -> str:
    values = iter(args)
    out: list[str] = []
    pending = False
    for c in fmt:
        if not pending:
            if c == "%":
                pending = True
            else:
                out.append(c)
            continue
        pending = False
        if c == "d":
            out.append(_render_int(_next(values), 10, True, digits))
        elif c in "xp":
            out.append(_render_int(_next(values), 16, False, digits))
        elif c == "s":
            s = _next(values)
            out.append("(null)" if s is None else str(s))
        elif c == "c" and with_char:
            ch = _next(values)
            out.append(ch if isinstance(ch, str) else chr(int(ch) & 0xFF))
        elif c == "%":
            out.append("%")
        else:
            # Unknown sequence is printed as-is to draw attention.
            out.append("%" + c)
    return "".join(out)


def format_user(fmt: str, *args: Any) -> str:
    """Format as user programs do: upper-case hex and %c supported."""
    return _format(fmt, args, _UPPER, True)


def format_kernel(fmt: str, *args: Any) -> str:
    """Format as the kernel console does: lower-case hex, no %c."""
    return _format(fmt, args, _LOWER, False)