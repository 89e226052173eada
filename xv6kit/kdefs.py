"""Shared kernel data structures: intrusive lists, buffers and RTC dates."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Iterator, Sized


class ListHead:
    """A doubly linked list used as a stack: push and pop work at the front."""

    def __init__(self) -> None:
        self._items: deque[Any] = deque()

    def push(self, item: Any) -> None:
        """Insert ``item`` at the front of the list."""
        self._items.appendleft(item)

    def pop(self) -> Any:
        """Remove and return the item at the front of the list."""
        if not self._items:
            raise IndexError("lst_pop: empty list")
        return self._items.popleft()

    def remove(self, item: Any) -> None:
        """Unlink ``item`` (matched by identity) from the list."""
        for index, candidate in enumerate(self._items):
            if candidate is item:
                del self._items[index]
                return
        raise ValueError("lst_remove: item not on list")

    def empty(self) -> bool:
        """Return True when the list holds no items."""
        return not self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._items)

    def __repr__(self) -> str:
        return f"ListHead({list(self._items)!r})"


@dataclass(eq=False)
class Buf:
    """A block-cache buffer holding one disk block."""

    dev: int = 0
    blockno: int = 0
    valid: bool = False  # has data been read from disk?
    disk: bool = False  # does the disk "own" the buffer?
    refcnt: int = 0
    data: bytearray = field(default_factory=bytearray)
    lock: Any = field(default_factory=threading.Lock, repr=False)


@dataclass
class RtcDate:
    """A calendar date and time as reported by a real-time clock."""

    second: int = 0
    minute: int = 0
    hour: int = 0
    day: int = 0
    month: int = 0
    year: int = 0


def nelem(seq: Sized) -> int:
    """Return the number of elements in a fixed-size sequence."""
    return len(seq)