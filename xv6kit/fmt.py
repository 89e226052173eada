"""A small printf supporting %d, %l, %x, %p, %s, %c and %%."""

from __future__ import annotations

import operator
from typing import Any, Iterator, TextIO

_DIGITS = "0123456789ABCDEF"
_MASK32 = (1 << 32) - 1
_MASK64 = (1 << 64) - 1


def _digits(x: int, base: int) -> str:
    out = []
    while True:
        out.append(_DIGITS[x % base])
        x //= base
        if x == 0:
            break
    return "".join(reversed(out))


def _printint(value: Any, base: int, signed: bool) -> str:
    x = operator.index(value) & _MASK32
    if signed and x & 0x80000000:
        return "-" + _digits((1 << 32) - x, base)
    return _digits(x, base)


def _printptr(value: Any) -> str:
    return "0x" + format(operator.index(value) & _MASK64, "016X")


def _char(value: Any) -> str:
    if isinstance(value, str):
        if len(value) != 1:
            raise TypeError("%c requires a single character")
        return value
    return chr(operator.index(value) & 0xFF)


def _string(value: Any) -> str:
    if value is None:
        return "(null)"
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("latin-1")
    return str(value)


def format_string(fmt: str, *args: Any) -> str:
    """Format ``args`` according to ``fmt`` and return the text.

    Unknown conversions are echoed with their percent sign; a trailing
    lone percent sign produces nothing.
    """
    values: Iterator[Any] = iter(args)

    def take() -> Any:
        try:
            return next(values)
        except StopIteration:
            raise TypeError("not enough arguments for format string") from None

    out = []
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
            out.append(_printint(take(), 10, True))
        elif c == "l":
            out.append(_printint(take(), 10, False))
        elif c == "x":
            out.append(_printint(take(), 16, False))
        elif c == "p":
            out.append(_printptr(take()))
        elif c == "s":
            out.append(_string(take()))
        elif c == "c":
            out.append(_char(take()))
        elif c == "%":
            out.append("%")
        else:
            out.append("%" + c)
    return "".join(out)


def fprintf(stream: TextIO, fmt: str, *args: Any) -> None:
    """Write the formatted text to ``stream``."""
    stream.write(format_string(fmt, *args))