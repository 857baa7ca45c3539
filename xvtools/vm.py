"""Sv39 page tables over a simulated physical memory, with copy-on-write fork."""

from __future__ import annotations

import struct
from typing import Optional

from xvtools.riscv import (
    MAXVA,
    PGSIZE,
    PteFlag,
    pa2pte,
    pg_round_down,
    pg_round_up,
    pte2pa,
    pte_flags,
    px,
)

_WORD = struct.Struct("<Q")
_PTES_PER_TABLE = PGSIZE // _WORD.size

_V = int(PteFlag.V)
_R = int(PteFlag.R)
_W = int(PteFlag.W)
_X = int(PteFlag.X)
_U = int(PteFlag.U)
_COW = int(PteFlag.COW)


class KernelPanic(RuntimeError):
    """An invariant of the memory system was violated."""


class OutOfMemory(MemoryError):
    """No free physical page was available."""


class BadAddress(ValueError):
    """A user virtual address is not mapped for user access."""


class PhysicalMemory:
    """A range of physical pages with a free list and per-page reference counts."""

    def __init__(self, base: int, npages: int) -> None:
        if base % PGSIZE != 0:
            raise ValueError("base must be page-aligned")
        if npages <= 0:
            raise ValueError("npages must be positive")
        self.base = base
        self.npages = npages
        self.end = base + npages * PGSIZE
        self._data = bytearray(npages * PGSIZE)
        self._free = [base + i * PGSIZE for i in reversed(range(npages))]
        self._refs: dict[int, int] = {}

    def _offset(self, pa: int, n: int) -> int:
        if pa < self.base or pa + n > self.end or n < 0:
            raise KernelPanic(f"physical address {pa:#x} out of range")
        return pa - self.base

    def _check_page(self, pa: int, what: str) -> None:
        if pa % PGSIZE != 0 or pa < self.base or pa >= self.end:
            raise KernelPanic(what)

    def alloc(self) -> int:
        """Take one page off the free list; its reference count becomes 1."""
        if not self._free:
            raise OutOfMemory("out of physical pages")
        pa = self._free.pop()
        self._refs[pa] = 1
        return pa

    def free(self, pa: int) -> None:
        """Drop one reference to a page, returning it to the free list at zero."""
        self._check_page(pa, "kfree")
        count = self._refs.get(pa, 0)
        if count <= 0:
            raise KernelPanic("kfree: page not allocated")
        if count == 1:
            del self._refs[pa]
            self._free.append(pa)
        else:
            self._refs[pa] = count - 1

    def add_ref(self, pa: int) -> None:
        """Add a reference to an allocated page."""
        self._check_page(pa, "add_ref")
        if self._refs.get(pa, 0) <= 0:
            raise KernelPanic("add_ref: page not allocated")
        self._refs[pa] += 1

    def ref_count(self, pa: int) -> int:
        """Number of references held on a page; 0 for a free page."""
        return self._refs.get(pg_round_down(pa), 0)

    def free_count(self) -> int:
        """Number of pages on the free list."""
        return len(self._free)

    def read(self, pa: int, n: int) -> bytes:
        """Read ``n`` bytes at physical address ``pa``."""
        off = self._offset(pa, n)
        return bytes(self._data[off:off + n])

    def write(self, pa: int, data: bytes) -> None:
        """Write ``data`` at physical address ``pa``."""
        off = self._offset(pa, len(data))
        self._data[off:off + len(data)] = data

    def read_word(self, pa: int) -> int:
        """Read a little-endian 64-bit word."""
        return _WORD.unpack(self.read(pa, _WORD.size))[0]

    def write_word(self, pa: int, value: int) -> None:
        """Write a little-endian 64-bit word."""
        self.write(pa, _WORD.pack(int(value)))

    def _zero(self, pa: int) -> None:
        self.write(pa, bytes(PGSIZE))


class PageTable:
    """A three-level Sv39 page table whose root page lives in physical memory."""

    def __init__(self, memory: PhysicalMemory, root: int) -> None:
        self.memory = memory
        self.root = root

    @classmethod
    def create(cls, memory: PhysicalMemory) -> "PageTable":
        """Allocate an empty page table."""
        root = memory.alloc()
        memory._zero(root)
        return cls(memory, root)

    def walk(self, va: int, alloc: bool = False) -> Optional[int]:
        """Return the physical address of the leaf PTE for ``va``.

        Missing page-table pages are created when ``alloc`` is true; otherwise
        ``None`` is returned for them.
        """
        if va >= MAXVA:
            raise KernelPanic("walk")
        mem = self.memory
        table = self.root
        for level in (2, 1):
            slot = table + _WORD.size * px(level, va)
            pte = mem.read_word(slot)
            if pte & _V:
                table = pte2pa(pte)
            else:
                if not alloc:
                    return None
                table = mem.alloc()
                mem._zero(table)
                mem.write_word(slot, pa2pte(table) | _V)
        return table + _WORD.size * px(0, va)

    def walkaddr(self, va: int) -> Optional[int]:
        """Physical page address of a user-accessible mapping, or ``None``."""
        if va >= MAXVA:
            return None
        slot = self.walk(va)
        if slot is None:
            return None
        pte = self.memory.read_word(slot)
        if not pte & _V or not pte & _U:
            return None
        return pte2pa(pte)

    def map_pages(self, va: int, size: int, pa: int, perm: int) -> None:
        """Map the pages covering ``[va, va+size)`` onto consecutive pages from ``pa``."""
        if size == 0:
            raise KernelPanic("mappages: size")
        perm = int(perm)
        a = pg_round_down(va)
        last = pg_round_down(va + size - 1)
        while True:
            slot = self.walk(a, True)
            if self.memory.read_word(slot) & _V:
                raise KernelPanic("mappages: remap")
            self.memory.write_word(slot, pa2pte(pa) | perm | _V)
            if a == last:
                break
            a += PGSIZE
            pa += PGSIZE

    def unmap(self, va: int, npages: int, do_free: bool) -> None:
        """Remove ``npages`` existing leaf mappings starting at page-aligned ``va``."""
        if va % PGSIZE != 0:
            raise KernelPanic("uvmunmap: not aligned")
        mem = self.memory
        for a in range(va, va + npages * PGSIZE, PGSIZE):
            slot = self.walk(a)
            if slot is None:
                raise KernelPanic("uvmunmap: walk")
            pte = mem.read_word(slot)
            if not pte & _V:
                raise KernelPanic("uvmunmap: not mapped")
            if int(pte_flags(pte)) == _V:
                raise KernelPanic("uvmunmap: not a leaf")
            pa = pte2pa(pte)
            if do_free or mem.ref_count(pa) > 1:
                mem.free(pa)
            mem.write_word(slot, 0)

    def load_initcode(self, src: bytes) -> None:
        """Place ``src`` (less than a page) in a fresh page mapped at address 0."""
        if len(src) >= PGSIZE:
            raise KernelPanic("inituvm: more than a page")
        mem = self.memory
        page = mem.alloc()
        mem._zero(page)
        self.map_pages(0, PGSIZE, page, _W | _R | _X | _U)
        mem.write(page, bytes(src))

    def grow(self, oldsz: int, newsz: int) -> int:
        """Allocate zeroed user pages to grow from ``oldsz`` to ``newsz``.

        On running out of memory the pages added so far are released and
        :class:`OutOfMemory` is raised.
        """
        if newsz < oldsz:
            return oldsz
        mem = self.memory
        oldsz = pg_round_up(oldsz)
        for a in range(oldsz, newsz, PGSIZE):
            try:
                page = mem.alloc()
            except OutOfMemory:
                self.shrink(a, oldsz)
                raise
            mem._zero(page)
            try:
                self.map_pages(a, PGSIZE, page, _W | _X | _R | _U)
            except OutOfMemory:
                mem.free(page)
                self.shrink(a, oldsz)
                raise
        return newsz

    def shrink(self, oldsz: int, newsz: int) -> int:
        """Release user pages to bring the size from ``oldsz`` down to ``newsz``."""
        if newsz >= oldsz:
            return oldsz
        if pg_round_up(newsz) < pg_round_up(oldsz):
            npages = (pg_round_up(oldsz) - pg_round_up(newsz)) // PGSIZE
            self.unmap(pg_round_up(newsz), npages, True)
        return newsz

    def _free_table(self, table: int) -> None:
        mem = self.memory
        raw = mem.read(table, PGSIZE)
        for index, (pte,) in enumerate(_WORD.iter_unpack(raw)):
            if pte & _V and not pte & (_R | _W | _X):
                self._free_table(pte2pa(pte))
                mem.write_word(table + index * _WORD.size, 0)
            elif pte & _V:
                raise KernelPanic("freewalk: leaf")
        mem.free(table)

    def free_walk(self) -> None:
        """Free every page-table page; all leaf mappings must already be gone."""
        self._free_table(self.root)

    def free(self, sz: int) -> None:
        """Free ``sz`` bytes of user memory and then the page table itself."""
        if sz > 0:
            self.unmap(0, pg_round_up(sz) // PGSIZE, True)
        self.free_walk()

    def copy_to(self, child: "PageTable", sz: int) -> None:
        """Share the first ``sz`` bytes with ``child`` copy-on-write."""
        mem = self.memory
        for i in range(0, sz, PGSIZE):
            slot = self.walk(i)
            if slot is None:
                raise KernelPanic("uvmcopy: pte should exist")
            pte = mem.read_word(slot)
            if not pte & _V:
                raise KernelPanic("uvmcopy: page not present")
            pa = pte2pa(pte)
            pte = (pte & ~_W) | _COW
            mem.write_word(slot, pte)
            flags = int(pte_flags(pte))
            try:
                child.map_pages(i, PGSIZE, pa, flags)
            except OutOfMemory:
                child.unmap(0, i // PGSIZE, True)
                raise
            mem.add_ref(pa)

    def clear_user(self, va: int) -> None:
        """Make the page at ``va`` inaccessible from user mode."""
        slot = self.walk(va)
        if slot is None:
            raise KernelPanic("uvmclear")
        self.memory.write_word(slot, self.memory.read_word(slot) & ~_U)

    def is_cow(self, va: int) -> bool:
        """True if ``va`` is a valid, read-only, copy-on-write mapping."""
        if va >= MAXVA:
            return False
        slot = self.walk(va)
        if slot is None:
            return False
        pte = self.memory.read_word(slot)
        if not pte & _V:
            return False
        return bool(pte & _COW) and not pte & _W

    def _break_cow(self, va: int) -> None:
        mem = self.memory
        slot = self.walk(va)
        pte = mem.read_word(slot)
        old_pa = pte2pa(pte)
        if mem.ref_count(old_pa) == 1:
            mem.write_word(slot, (pte | _W) & ~_COW)
            return
        try:
            new_pa = mem.alloc()
        except OutOfMemory:
            raise KernelPanic("copyout: kalloc") from None
        mem.write(new_pa, mem.read(old_pa, PGSIZE))
        flags = int(pte_flags(pte))
        mem.write_word(slot, ((pa2pte(new_pa) | flags) | _W) & ~_COW)
        mem.free(old_pa)

    def copy_out(self, dstva: int, data: bytes) -> None:
        """Copy ``data`` to user address ``dstva``, resolving copy-on-write first."""
        if self.is_cow(dstva):
            self._break_cow(dstva)
        view = memoryview(bytes(data))
        while view:
            va0 = pg_round_down(dstva)
            pa0 = self.walkaddr(va0)
            if pa0 is None:
                raise BadAddress(f"copyout to unmapped address {dstva:#x}")
            n = min(PGSIZE - (dstva - va0), len(view))
            self.memory.write(pa0 + (dstva - va0), bytes(view[:n]))
            view = view[n:]
            dstva = va0 + PGSIZE

    def copy_in(self, srcva: int, n: int) -> bytes:
        """Copy ``n`` bytes from user address ``srcva``."""
        out = bytearray()
        while n > 0:
            va0 = pg_round_down(srcva)
            pa0 = self.walkaddr(va0)
            if pa0 is None:
                raise BadAddress(f"copyin from unmapped address {srcva:#x}")
            chunk = min(PGSIZE - (srcva - va0), n)
            out += self.memory.read(pa0 + (srcva - va0), chunk)
            n -= chunk
            srcva = va0 + PGSIZE
        return bytes(out)

    def copy_in_str(self, srcva: int, limit: int) -> bytes:
        """Copy a NUL-terminated string of at most ``limit`` bytes, without the NUL."""
        out = bytearray()
        while limit > 0:
            va0 = pg_round_down(srcva)
            pa0 = self.walkaddr(va0)
            if pa0 is None:
                raise BadAddress(f"copyinstr from unmapped address {srcva:#x}")
            n = min(PGSIZE - (srcva - va0), limit)
            chunk = self.memory.read(pa0 + (srcva - va0), n)
            nul = chunk.find(0)
            if nul >= 0:
                out += chunk[:nul]
                return bytes(out)
            out += chunk
            limit -= n
            srcva = va0 + PGSIZE
        raise BadAddress("string not terminated within limit")