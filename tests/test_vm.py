import pytest

from xv6kit.riscv import MAXVA, PGSIZE, PTE_COW, PTE_R, PTE_U, PTE_W, pte_flags
from xv6kit.vm import AddressSpace, KernelPanic, PhysicalMemory, VMError


@pytest.fixture
def mem():
    return PhysicalMemory(64)


@pytest.fixture
def space(mem):
    return AddressSpace(mem)


def test_alloc_and_refcount(mem):
    before = mem.free_pages()
    pa = mem.alloc()
    assert pa % PGSIZE == 0
    assert mem.refcount(pa) == 1
    mem.incref(pa)
    assert mem.refcount(pa) == 2
    assert mem.free(pa) == 1
    assert mem.free_pages() == before - 1
    assert mem.free(pa) == 0
    assert mem.free_pages() == before


def test_free_unallocated_panics(mem):
    with pytest.raises(KernelPanic):
        mem.free(mem.base)


def test_free_misaligned_panics(mem):
    pa = mem.alloc()
    with pytest.raises(KernelPanic):
        mem.free(pa + 1)


def test_exhaustion_raises():
    small = PhysicalMemory(2)
    small.alloc()
    small.alloc()
    with pytest.raises(VMError):
        small.alloc()


def test_physical_read_write_round_trip(mem):
    pa = mem.alloc()
    mem.write(pa + 10, b"hello")
    assert mem.read(pa + 10, 5) == b"hello"


def test_mappages_and_walkaddr(space, mem):
    pa = mem.alloc()
    space.mappages(0x5000, PGSIZE, pa, PTE_R | PTE_W | PTE_U)
    assert space.walkaddr(0x5000) == pa
    assert space.walkaddr(0x5123) == pa
    assert space.walkaddr(0x6000) is None


def test_walkaddr_requires_user_bit(space, mem):
    pa = mem.alloc()
    space.mappages(0, PGSIZE, pa, PTE_R | PTE_W)
    assert space.walkaddr(0) is None


def test_remap_panics(space, mem):
    pa = mem.alloc()
    space.mappages(0, PGSIZE, pa, PTE_R | PTE_U)
    with pytest.raises(KernelPanic, match="remap"):
        space.mappages(0, PGSIZE, pa, PTE_R | PTE_U)


def test_walk_beyond_maxva_panics(space):
    with pytest.raises(KernelPanic):
        space.walk(MAXVA)
    assert space.walkaddr(MAXVA) is None


def test_grow_zeroed_and_copy_round_trip(space):
    assert space.grow(0, 2 * PGSIZE) == 2 * PGSIZE
    assert space.copyin(0, 16) == bytes(16)
    data = bytes(range(200))
    start = PGSIZE - 50
    space.copyout(start, data)
    assert space.copyin(start, len(data)) == data


def test_grow_smaller_is_noop(space):
    assert space.grow(PGSIZE, 0) == PGSIZE


def test_grow_out_of_memory_undoes(mem):
    small = PhysicalMemory(8)
    space = AddressSpace(small)
    with pytest.raises(VMError):
        space.grow(0, 100 * PGSIZE)
    assert space.walkaddr(0) is None


def test_shrink_frees_pages(space, mem):
    space.grow(0, 2 * PGSIZE)
    pa0 = space.walkaddr(0)
    pa1 = space.walkaddr(PGSIZE)
    before = mem.free_pages()
    assert space.shrink(2 * PGSIZE, PGSIZE) == PGSIZE
    assert space.walkaddr(PGSIZE) is None
    assert space.walkaddr(0) == pa0
    assert mem.refcount(pa1) == 0
    assert mem.free_pages() == before + 1


def test_free_returns_all_pages(mem):
    before = mem.free_pages()
    space = AddressSpace(mem)
    space.grow(0, 3 * PGSIZE + 10)
    space.free(3 * PGSIZE + 10)
    assert mem.free_pages() == before


def test_unmap_not_mapped_panics(space):
    space.grow(0, PGSIZE)
    with pytest.raises(KernelPanic):
        space.unmap(0, 2 * PGSIZE, True)


def test_init_code(space):
    space.init_code(b"\x13\x00\x00\x00")
    assert space.copyin(0, 4) == b"\x13\x00\x00\x00"
    assert space.copyin(4, 4) == bytes(4)


def test_init_code_too_large(space):
    with pytest.raises(KernelPanic):
        space.init_code(bytes(PGSIZE))


def test_clear_user_hides_page(space):
    space.grow(0, 2 * PGSIZE)
    space.clear_user(0)
    assert space.walkaddr(0) is None
    with pytest.raises(VMError):
        space.copyin(0, 1)


def test_copy_to_shares_then_breaks_on_write(mem):
    parent = AddressSpace(mem)
    parent.grow(0, 2 * PGSIZE)
    parent.copyout(0, b"parent")
    child = AddressSpace(mem)
    parent.copy_to(child, 2 * PGSIZE)

    shared = parent.walkaddr(0)
    assert child.walkaddr(0) == shared
    assert mem.refcount(shared) == 2
    pte = mem.read(parent.walk(0), 8)
    flags = pte_flags(int.from_bytes(pte, "little"))
    assert flags & PTE_COW
    assert not flags & PTE_W

    child.copyout(0, b"child!")
    assert child.copyin(0, 6) == b"child!"
    assert parent.copyin(0, 6) == b"parent"
    assert mem.refcount(shared) == 1
    assert child.walkaddr(PGSIZE) == parent.walkaddr(PGSIZE)


def test_copy_to_then_free_both(mem):
    before = mem.free_pages()
    parent = AddressSpace(mem)
    parent.grow(0, PGSIZE)
    child = AddressSpace(mem)
    parent.copy_to(child, PGSIZE)
    child.free(PGSIZE)
    parent.free(PGSIZE)
    assert mem.free_pages() == before


def test_copyout_to_readonly_page_fails(space, mem):
    pa = mem.alloc()
    space.mappages(0, PGSIZE, pa, PTE_R | PTE_U)
    with pytest.raises(VMError):
        space.copyout(0, b"x")


def test_copyout_unmapped_fails(space):
    with pytest.raises(VMError):
        space.copyout(0x10000, b"x")


def test_copyinstr(space):
    space.grow(0, 2 * PGSIZE)
    space.copyout(PGSIZE - 3, b"hello\0rest")
    assert space.copyinstr(PGSIZE - 3, 64) == b"hello"


def test_copyinstr_without_terminator(space):
    space.grow(0, PGSIZE)
    space.copyout(0, b"abcdef")
    with pytest.raises(VMError):
        space.copyinstr(0, 4)


def test_copyin_bad_address(space):
    with pytest.raises(VMError):
        space.copyin(MAXVA + PGSIZE, 4)