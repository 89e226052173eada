"""A first-fit free-list allocator over a simulated break-extended heap."""

from __future__ import annotations

_HEADER = 16  # bytes per header unit
_MIN_GROWTH = 4096  # minimum units requested from the heap at once
_BASE = -1  # sentinel block that lies below every heap address


class OutOfMemory(MemoryError):
    """The heap cannot be extended enough to satisfy a request."""


class Allocator:
    """A circular, address-ordered free list with coalescing on free.

    Addresses returned by :meth:`malloc` are byte addresses in a heap that
    starts at ``start`` and may grow by at most ``limit`` bytes.
    """

    def __init__(self, limit: int = 1 << 22, start: int = 0x10000) -> None:
        if limit < 0:
            raise ValueError("limit must not be negative")
        self.start = start
        self._limit = limit // _HEADER
        self._brk = 0
        self._size: dict[int, int] = {}
        self._ptr: dict[int, int] = {}
        self._allocated: set[int] = set()
        self._freep: int | None = None

    def _addr(self, unit: int) -> int:
        return self.start + (unit + 1) * _HEADER

    def _unit(self, ap: int) -> int:
        off = ap - self.start
        if off < _HEADER or off % _HEADER:
            raise ValueError(f"free: bad address {ap:#x}")
        return off // _HEADER - 1

    def _insert(self, bp: int) -> None:
        ptr, size = self._ptr, self._size
        p = self._freep
        assert p is not None
        while not p < bp < ptr[p]:
            if p >= ptr[p] and (bp > p or bp < ptr[p]):
                break
            p = ptr[p]
        nxt = ptr[p]
        if bp + size[bp] == nxt:
            size[bp] += size.pop(nxt)
            ptr[bp] = ptr.pop(nxt)
        else:
            ptr[bp] = nxt
        if p + size[p] == bp:
            size[p] += size.pop(bp)
            ptr[p] = ptr.pop(bp)
        else:
            ptr[p] = bp
        self._freep = p

    def _morecore(self, nu: int) -> int | None:
        nu = max(nu, _MIN_GROWTH)
        if self._brk + nu > self._limit:
            return None
        hp = self._brk
        self._brk += nu
        self._size[hp] = nu
        self._insert(hp)
        return self._freep

    def malloc(self, nbytes: int) -> int:
        """Allocate ``nbytes`` and return the block's address."""
        if nbytes < 0:
            raise ValueError("nbytes must not be negative")
        nunits = (nbytes + _HEADER - 1) // _HEADER + 1
        ptr, size = self._ptr, self._size
        if self._freep is None:
            ptr[_BASE] = _BASE
            size[_BASE] = 0
            self._freep = _BASE
        prevp = self._freep
        p = ptr[prevp]
        while True:
            if size[p] >= nunits:
                if size[p] == nunits:
                    ptr[prevp] = ptr.pop(p)
                else:
                    size[p] -= nunits
                    p += size[p]
                    size[p] = nunits
                self._freep = prevp
                self._allocated.add(p)
                return self._addr(p)
            if p == self._freep:
                grown = self._morecore(nunits)
                if grown is None:
                    raise OutOfMemory(f"malloc: cannot allocate {nbytes} bytes")
                p = grown
            prevp, p = p, ptr[p]

    def free(self, ap: int) -> None:
        """Return a block obtained from :meth:`malloc` to the free list."""
        bp = self._unit(ap)
        if bp not in self._allocated:
            raise ValueError(f"free: {ap:#x} is not an allocated block")
        self._allocated.discard(bp)
        self._insert(bp)

    def free_units(self) -> int:
        """Return the number of header-sized units on the free list."""
        if self._freep is None:
            return 0
        total = 0
        p = self._ptr[_BASE]
        while p != _BASE:
            total += self._size[p]
            p = self._ptr[p]
        return total