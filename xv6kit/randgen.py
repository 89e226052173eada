"""A linear congruential generator and substring search helpers."""

from __future__ import annotations

DEFAULT_SEED = 123456789
LETTERS = "abcdefghijklmnopqrstuvwxyz"

_A = 1103515245
_C = 12345
_M = 1 << 31
_MASK32 = (1 << 32) - 1


class LcgRandom:
    """Pseudo-random numbers from an LCG with glibc's constants."""

    def __init__(self, seed: int = DEFAULT_SEED) -> None:
        self.seed = seed & _MASK32

    def next(self) -> int:
        """Advance the generator and return a value below 2**31."""
        self.seed = ((_A * self.seed + _C) & _MASK32) % _M
        return self.seed

    def randstring(self, n: int) -> str:
        """Return ``n - 1`` random lowercase letters (``n`` counts the terminator)."""
        if n < 1:
            raise ValueError("randstring needs room for at least the terminator")
        return "".join(LETTERS[self.next() % 26] for _ in range(n - 1))


def find(big: str, small: str) -> int | None:
    """Return the index of ``small`` in ``big``, or None if it does not occur."""
    index = big.find(small)
    return None if index < 0 else index