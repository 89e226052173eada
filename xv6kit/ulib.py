"""Small C-library helpers used by the user programs."""

from __future__ import annotations

import io
from typing import IO, AnyStr, Union

_MASK32 = (1 << 32) - 1

_Text = Union[str, bytes, bytearray]


def atoi(s: str) -> int:
    """Convert the leading decimal digits of ``s`` to an int.

    No sign or leading whitespace is accepted; the result wraps to a
    signed 32-bit value.
    """
    n = 0
    for ch in s:
        if not "0" <= ch <= "9":
            break
        n = (n * 10 + ord(ch) - ord("0")) & _MASK32
    return n - (1 << 32) if n & 0x80000000 else n


def _cstr(s: _Text) -> bytes:
    raw = s.encode() if isinstance(s, str) else bytes(s)
    return raw.split(b"\0", 1)[0]


def strcmp(p: _Text, q: _Text) -> int:
    """Compare two strings bytewise; returns the difference of the first mismatch."""
    for a, b in zip(_cstr(p) + b"\0", _cstr(q) + b"\0"):
        if a == 0 or a != b:
            return a - b
    return 0


def gets(stream: IO[AnyStr], max: int) -> AnyStr:
    """Read one line of at most ``max - 1`` characters from ``stream``.

    Reading stops after a newline or carriage return, or at end of input.
    An empty result means end of input.
    """
    pieces = []
    while len(pieces) + 1 < max:
        c = stream.read(1)
        if not c:
            break
        pieces.append(c)
        if c in ("\n", "\r", b"\n", b"\r"):
            break
    if pieces:
        return pieces[0][:0].join(pieces)
    return "" if isinstance(stream, io.TextIOBase) else b""  # type: ignore[return-value]