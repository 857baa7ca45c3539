"""Sv39 paging arithmetic and control-register bit definitions."""

from __future__ import annotations

import enum

PGSIZE = 4096
PGSHIFT = 12

PXMASK = 0x1FF
MAXVA = 1 << (9 + 9 + 9 + 12 - 1)

SATP_SV39 = 8 << 60

# Machine status register bits.
MSTATUS_MPP_MASK = 3 << 11
MSTATUS_MPP_M = 3 << 11
MSTATUS_MPP_S = 1 << 11
MSTATUS_MPP_U = 0 << 11
MSTATUS_MIE = 1 << 3

# Supervisor status register bits.
SSTATUS_SPP = 1 << 8
SSTATUS_SPIE = 1 << 5
SSTATUS_UPIE = 1 << 4
SSTATUS_SIE = 1 << 1
SSTATUS_UIE = 1 << 0

# Supervisor interrupt enable bits.
SIE_SEIE = 1 << 9
SIE_STIE = 1 << 5
SIE_SSIE = 1 << 1

# Machine interrupt enable bits.
MIE_MEIE = 1 << 11
MIE_MTIE = 1 << 7
MIE_MSIE = 1 << 3


class PteFlag(enum.IntFlag):
    """Bits in the low ten bits of a page-table entry."""

    V = 1 << 0
    R = 1 << 1
    W = 1 << 2
    X = 1 << 3
    U = 1 << 4
    COW = 1 << 8


def pg_round_up(sz: int) -> int:
    """Round a size up to the next page boundary."""
    return (sz + PGSIZE - 1) & ~(PGSIZE - 1)


def pg_round_down(a: int) -> int:
    """Round an address down to the start of its page."""
    return a & ~(PGSIZE - 1)


def pa2pte(pa: int) -> int:
    """Place a physical address where a PTE keeps its page number."""
    return (pa >> 12) << 10


def pte2pa(pte: int) -> int:
    """Extract the physical page address from a PTE."""
    return (pte >> 10) << 12


def pte_flags(pte: int) -> PteFlag:
    """Return the flag bits of a PTE."""
    return PteFlag(pte & 0x3FF)


def _pxshift(level: int) -> int:
    return PGSHIFT + 9 * level


def px(level: int, va: int) -> int:
    """Return the 9-bit page-table index of ``va`` at ``level`` (0..2)."""
    return (va >> _pxshift(level)) & PXMASK


def make_satp(pagetable: int) -> int:
    """Build a satp value selecting Sv39 with the given root page table."""
    return SATP_SV39 | (pagetable >> 12)