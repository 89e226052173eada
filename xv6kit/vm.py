"""Simulated Sv39 user address spaces with copy-on-write fork support."""

from __future__ import annotations

from .riscv import (
    MAXVA,
    PGSIZE,
    PTE_COW,
    PTE_R,
    PTE_U,
    PTE_V,
    PTE_W,
    PTE_X,
    pa2pte,
    pg_round_down,
    pg_round_up,
    pte2pa,
    pte_flags,
    px,
)

_DEFAULT_BASE = 0x80000000
_PTE_BYTES = 8
_PTES_PER_TABLE = PGSIZE // _PTE_BYTES


class VMError(Exception):
    """A recoverable virtual-memory failure (bad address, out of memory)."""


class KernelPanic(RuntimeError):
    """An invariant violation that would halt the kernel."""


class PhysicalMemory:
    """Page-granular physical memory with per-page reference counts."""

    def __init__(self, npages: int = 1024, base: int = _DEFAULT_BASE) -> None:
        if npages <= 0:
            raise ValueError("npages must be positive")
        if base % PGSIZE:
            raise ValueError("base must be page aligned")
        self.base = base
        self.npages = npages
        self.end = base + npages * PGSIZE
        self._data = bytearray(npages * PGSIZE)
        self._refs: dict[int, int] = {}
        # Popping from the end hands out the lowest pages first.
        self._free = [base + i * PGSIZE for i in reversed(range(npages))]

    def _check_page(self, pa: int, what: str) -> None:
        if pa % PGSIZE or not self.base <= pa < self.end:
            raise KernelPanic(what)

    def _offset(self, pa: int, n: int) -> int:
        if n < 0 or pa < self.base or pa + n > self.end:
            raise KernelPanic(f"physical address out of range: {pa:#x}")
        return pa - self.base

    def alloc(self) -> int:
        """Allocate one page and return its address, with refcount 1."""
        if not self._free:
            raise VMError("out of physical memory")
        pa = self._free.pop()
        self._refs[pa] = 1
        return pa

    def free(self, pa: int) -> int:
        """Drop one reference to a page; release it when none remain.

        Returns the remaining reference count.
        """
        self._check_page(pa, "kfree")
        count = self._refs.get(pa, 0)
        if count == 0:
            raise KernelPanic("kfree: page not allocated")
        if count == 1:
            del self._refs[pa]
            self._free.append(pa)
            return 0
        self._refs[pa] = count - 1
        return count - 1

    def incref(self, pa: int) -> None:
        """Add a reference to an allocated page."""
        self._check_page(pa, "increfcnt")
        if pa not in self._refs:
            raise KernelPanic("increfcnt: page not allocated")
        self._refs[pa] += 1

    def refcount(self, pa: int) -> int:
        """Return the number of references held on a page."""
        return self._refs.get(pa, 0)

    def read(self, pa: int, n: int) -> bytes:
        """Read ``n`` bytes starting at physical address ``pa``."""
        off = self._offset(pa, n)
        return bytes(self._data[off : off + n])

    def write(self, pa: int, data: bytes) -> None:
        """Write ``data`` starting at physical address ``pa``."""
        off = self._offset(pa, len(data))
        self._data[off : off + len(data)] = data

    def free_pages(self) -> int:
        """Return the number of unallocated pages."""
        return len(self._free)

    def _zero_page(self, pa: int) -> None:
        self.write(pa, bytes(PGSIZE))


class AddressSpace:
    """A three-level Sv39 page table rooted in simulated physical memory."""

    def __init__(self, mem: PhysicalMemory) -> None:
        self.mem = mem
        try:
            self.root = mem.alloc()
        except VMError:
            raise KernelPanic("uvmcreate: out of memory") from None
        mem._zero_page(self.root)

    def _load(self, pte_addr: int) -> int:
        return int.from_bytes(self.mem.read(pte_addr, _PTE_BYTES), "little")

    def _store(self, pte_addr: int, value: int) -> None:
        self.mem.write(pte_addr, value.to_bytes(_PTE_BYTES, "little"))

    def walk(self, va: int, alloc: bool = False) -> int | None:
        """Return the physical address of the leaf PTE for ``va``.

        Missing intermediate tables are created when ``alloc`` is true;
        otherwise, or when memory runs out, None is returned.
        """
        if va >= MAXVA:
            raise KernelPanic("walk")
        table = self.root
        for level in (2, 1):
            pte_addr = table + px(level, va) * _PTE_BYTES
            pte = self._load(pte_addr)
            if pte & PTE_V:
                table = pte2pa(pte)
                continue
            if not alloc:
                return None
            try:
                table = self.mem.alloc()
            except VMError:
                return None
            self.mem._zero_page(table)
            self._store(pte_addr, pa2pte(table) | PTE_V)
        return table + px(0, va) * _PTE_BYTES

    def _user_pte(self, va: int) -> tuple[int, int] | None:
        if va >= MAXVA:
            return None
        pte_addr = self.walk(va)
        if pte_addr is None:
            return None
        pte = self._load(pte_addr)
        if not pte & PTE_V or not pte & PTE_U:
            return None
        return pte_addr, pte

    def walkaddr(self, va: int) -> int | None:
        """Translate a user virtual address to its page's physical address."""
        found = self._user_pte(va)
        return None if found is None else pte2pa(found[1])

    def walkcowaddr(self, va: int) -> int | None:
        """Like walkaddr, but give the caller a private writable page.

        A read-only copy-on-write page is duplicated and remapped
        writable first. Returns None if the page cannot be written.
        """
        found = self._user_pte(va)
        if found is None:
            return None
        _, pte = found
        pa = pte2pa(pte)
        if pte & PTE_W:
            return pa
        if not pte & PTE_COW:
            return None
        try:
            mem = self.mem.alloc()
        except VMError:
            return None
        self.mem.write(mem, self.mem.read(pa, PGSIZE))
        flags = (pte_flags(pte) & ~PTE_COW) | PTE_W
        page = pg_round_down(va)
        self.unmap(page, 1, True)
        try:
            self.mappages(page, PGSIZE, mem, flags)
        except VMError:
            self.mem.free(mem)
            return None
        return mem

    def mappages(self, va: int, size: int, pa: int, perm: int) -> None:
        """Map ``[va, va+size)`` to physical memory starting at ``pa``."""
        if size <= 0:
            raise KernelPanic("mappages: size")
        a = pg_round_down(va)
        last = pg_round_down(va + size - 1)
        while True:
            pte_addr = self.walk(a, True)
            if pte_addr is None:
                raise VMError("mappages: cannot allocate page-table page")
            if self._load(pte_addr) & PTE_V:
                raise KernelPanic("remap")
            self._store(pte_addr, pa2pte(pa) | perm | PTE_V)
            if a == last:
                break
            a += PGSIZE
            pa += PGSIZE

    def unmap(self, va: int, size: int, do_free: bool) -> None:
        """Remove existing leaf mappings, optionally releasing the pages."""
        if size <= 0:
            raise KernelPanic("uvmunmap: size")
        a = pg_round_down(va)
        last = pg_round_down(va + size - 1)
        while True:
            pte_addr = self.walk(a)
            if pte_addr is None:
                raise KernelPanic("uvmunmap: walk")
            pte = self._load(pte_addr)
            if not pte & PTE_V:
                raise KernelPanic(f"uvmunmap: not mapped va={a:#x} pte={pte:#x}")
            if pte_flags(pte) == PTE_V:
                raise KernelPanic("uvmunmap: not a leaf")
            if do_free:
                self.mem.free(pte2pa(pte))
            self._store(pte_addr, 0)
            if a == last:
                break
            a += PGSIZE

    def init_code(self, src: bytes) -> None:
        """Load less than a page of initial code at virtual address 0."""
        if len(src) >= PGSIZE:
            raise KernelPanic("inituvm: more than a page")
        mem = self.mem.alloc()
        self.mem._zero_page(mem)
        self.mappages(0, PGSIZE, mem, PTE_W | PTE_R | PTE_X | PTE_U)
        self.mem.write(mem, bytes(src))

    def grow(self, oldsz: int, newsz: int) -> int:
        """Allocate zeroed user pages from ``oldsz`` up to ``newsz``.

        Returns the new size; on failure undoes the partial growth and
        raises VMError.
        """
        if newsz < oldsz:
            return oldsz
        oldsz = pg_round_up(oldsz)
        for a in range(oldsz, newsz, PGSIZE):
            try:
                mem = self.mem.alloc()
            except VMError:
                self.shrink(a, oldsz)
                raise VMError("uvmalloc: out of memory") from None
            self.mem._zero_page(mem)
            try:
                self.mappages(a, PGSIZE, mem, PTE_W | PTE_X | PTE_R | PTE_U)
            except VMError:
                self.mem.free(mem)
                self.shrink(a, oldsz)
                raise
        return newsz

    def shrink(self, oldsz: int, newsz: int) -> int:
        """Release user pages to bring the size from ``oldsz`` to ``newsz``."""
        if newsz >= oldsz:
            return oldsz
        newup = pg_round_up(newsz)
        if newup < pg_round_up(oldsz):
            self.unmap(newup, oldsz - newup, True)
        return newsz

    def _freewalk(self, table: int) -> None:
        for i in range(_PTES_PER_TABLE):
            pte_addr = table + i * _PTE_BYTES
            pte = self._load(pte_addr)
            if pte & PTE_V and not pte & (PTE_R | PTE_W | PTE_X):
                self._freewalk(pte2pa(pte))
                self._store(pte_addr, 0)
            elif pte & PTE_V:
                raise KernelPanic("freewalk: leaf")
        self.mem.free(table)

    def free(self, sz: int) -> None:
        """Release the user pages below ``sz`` and then every table page."""
        if sz > 0:
            self.unmap(0, sz, True)
        self._freewalk(self.root)

    def copy_to(self, other: AddressSpace, sz: int) -> None:
        """Share the first ``sz`` bytes with ``other`` as copy-on-write pages."""
        for i in range(0, sz, PGSIZE):
            pte_addr = self.walk(i)
            if pte_addr is None:
                raise KernelPanic("uvmcopy: pte should exist")
            pte = self._load(pte_addr)
            if not pte & PTE_V:
                raise KernelPanic("uvmcopy: page not present")
            pa = pte2pa(pte)
            flags = (pte_flags(pte) & ~PTE_W) | PTE_COW
            self._store(pte_addr, pa2pte(pa) | flags)
            try:
                other.mappages(i, PGSIZE, pa, flags)
            except VMError:
                if i > 0:
                    other.unmap(0, i, True)
                raise
            self.mem.incref(pa)

    def clear_user(self, va: int) -> None:
        """Make a page inaccessible to user mode (stack guard page)."""
        pte_addr = self.walk(va)
        if pte_addr is None:
            raise KernelPanic("uvmclear")
        self._store(pte_addr, self._load(pte_addr) & ~PTE_U)

    def copyout(self, dstva: int, data: bytes) -> None:
        """Copy ``data`` to user address ``dstva``, breaking COW sharing."""
        view = memoryview(bytes(data))
        while view:
            va0 = pg_round_down(dstva)
            pa0 = self.walkcowaddr(va0)
            if pa0 is None:
                raise VMError(f"copyout: bad address {dstva:#x}")
            n = min(PGSIZE - (dstva - va0), len(view))
            self.mem.write(pa0 + (dstva - va0), view[:n].tobytes())
            view = view[n:]
            dstva = va0 + PGSIZE

    def copyin(self, srcva: int, n: int) -> bytes:
        """Copy ``n`` bytes from user address ``srcva``."""
        chunks = []
        while n > 0:
            va0 = pg_round_down(srcva)
            pa0 = self.walkaddr(va0)
            if pa0 is None:
                raise VMError(f"copyin: bad address {srcva:#x}")
            take = min(PGSIZE - (srcva - va0), n)
            chunks.append(self.mem.read(pa0 + (srcva - va0), take))
            n -= take
            srcva = va0 + PGSIZE
        return b"".join(chunks)

    def copyinstr(self, srcva: int, max: int) -> bytes:
        """Copy a NUL-terminated string of at most ``max`` bytes, NUL included.

        Returns the string without its terminator.
        """
        chunks = []
        while max > 0:
            va0 = pg_round_down(srcva)
            pa0 = self.walkaddr(va0)
            if pa0 is None:
                raise VMError(f"copyinstr: bad address {srcva:#x}")
            take = min(PGSIZE - (srcva - va0), max)
            chunk = self.mem.read(pa0 + (srcva - va0), take)
            nul = chunk.find(b"\0")
            if nul >= 0:
                chunks.append(chunk[:nul])
                return b"".join(chunks)
            chunks.append(chunk)
            max -= take
            srcva = va0 + PGSIZE
        raise VMError("copyinstr: string not terminated")