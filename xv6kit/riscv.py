"""Sv39 paging constants and page-table bit manipulation helpers."""

PGSIZE = 4096  # bytes per page
PGSHIFT = 12  # bits of offset within a page

# Machine status register.
MSTATUS_MPP_MASK = 3 << 11
MSTATUS_MPP_M = 3 << 11
MSTATUS_MPP_S = 1 << 11
MSTATUS_MPP_U = 0 << 11
MSTATUS_MIE = 1 << 3

# Supervisor status register.
SSTATUS_SPP = 1 << 8
SSTATUS_SPIE = 1 << 5
SSTATUS_UPIE = 1 << 4
SSTATUS_SIE = 1 << 1
SSTATUS_UIE = 1 << 0

# Supervisor interrupt enable.
SIE_SEIE = 1 << 9
SIE_STIE = 1 << 5
SIE_SSIE = 1 << 1

# Machine-mode interrupt enable.
MIE_MEIE = 1 << 11
MIE_MTIE = 1 << 7
MIE_MSIE = 1 << 3

SATP_SV39 = 8 << 60

PTE_V = 1 << 0  # valid
PTE_R = 1 << 1
PTE_W = 1 << 2
PTE_X = 1 << 3
PTE_U = 1 << 4  # user can access
PTE_COW = 1 << 8  # shared copy-on-write page

PXMASK = 0x1FF  # 9 bits

# One beyond the highest usable virtual address (one bit less than Sv39 allows,
# so that addresses never need sign extension).
MAXVA = 1 << (9 + 9 + 9 + 12 - 1)

_UINT64 = (1 << 64) - 1


def pg_round_up(sz: int) -> int:
    """Round a size up to a page boundary."""
    return (sz + PGSIZE - 1) & ~(PGSIZE - 1) & _UINT64


def pg_round_down(a: int) -> int:
    """Round an address down to a page boundary."""
    return a & ~(PGSIZE - 1) & _UINT64


def pa2pte(pa: int) -> int:
    """Shift a physical address into the PPN field of a PTE."""
    return ((pa & _UINT64) >> 12) << 10


def pte2pa(pte: int) -> int:
    """Extract the physical address a PTE points to."""
    return ((pte & _UINT64) >> 10) << 12


def pte_flags(pte: int) -> int:
    """Return the low ten flag bits of a PTE."""
    return pte & 0x3FF


def _pxshift(level: int) -> int:
    return PGSHIFT + 9 * level


def px(level: int, va: int) -> int:
    """Return the 9-bit page-table index of ``va`` at ``level`` (0..2)."""
    return ((va & _UINT64) >> _pxshift(level)) & PXMASK


def make_satp(pagetable: int) -> int:
    """Build a satp value selecting Sv39 with the given root table."""
    return SATP_SV39 | ((pagetable & _UINT64) >> 12)