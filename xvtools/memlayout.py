"""Physical and virtual memory layout of the qemu ``virt`` machine."""

from __future__ import annotations

from xvtools.riscv import MAXVA, PGSIZE

UART0 = 0x10000000
UART0_IRQ = 10

VIRTIO0 = 0x10001000
VIRTIO0_IRQ = 1

CLINT = 0x2000000
CLINT_MTIME = CLINT + 0xBFF8

PLIC = 0x0C000000
PLIC_PRIORITY = PLIC + 0x0
PLIC_PENDING = PLIC + 0x1000

KERNBASE = 0x80000000
PHYSTOP = KERNBASE + 128 * 1024 * 1024

TRAMPOLINE = MAXVA - PGSIZE
TRAPFRAME = TRAMPOLINE - PGSIZE


def clint_mtimecmp(hartid: int) -> int:
    """Address of the timer-compare register of a hart."""
    return CLINT + 0x4000 + 8 * hartid


def plic_menable(hart: int) -> int:
    """Machine-mode interrupt enable bits of a hart."""
    return PLIC + 0x2000 + hart * 0x100


def plic_senable(hart: int) -> int:
    """Supervisor-mode interrupt enable bits of a hart."""
    return PLIC + 0x2080 + hart * 0x100


def plic_mpriority(hart: int) -> int:
    """Machine-mode priority threshold of a hart."""
    return PLIC + 0x200000 + hart * 0x2000


def plic_spriority(hart: int) -> int:
    """Supervisor-mode priority threshold of a hart."""
    return PLIC + 0x201000 + hart * 0x2000


def plic_mclaim(hart: int) -> int:
    """Machine-mode claim/complete register of a hart."""
    return PLIC + 0x200004 + hart * 0x2000


def plic_sclaim(hart: int) -> int:
    """Supervisor-mode claim/complete register of a hart."""
    return PLIC + 0x201004 + hart * 0x2000


def kstack(p: int) -> int:
    """Virtual address of process slot ``p``'s kernel stack, below a guard page."""
    return TRAMPOLINE - (p + 1) * 2 * PGSIZE