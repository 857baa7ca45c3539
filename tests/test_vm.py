import pytest

from xvtools.memlayout import KERNBASE
from xvtools.riscv import MAXVA, PGSIZE, PteFlag, pte2pa, pte_flags
from xvtools.vm import (
    BadAddress,
    KernelPanic,
    OutOfMemory,
    PageTable,
    PhysicalMemory,
)

NPAGES = 32
USER = PteFlag.R | PteFlag.W | PteFlag.U


@pytest.fixture
def mem():
    return PhysicalMemory(KERNBASE, NPAGES)


@pytest.fixture
def pt(mem):
    return PageTable.create(mem)


def test_alloc_and_free_counts(mem):
    assert mem.free_count() == NPAGES
    pa = mem.alloc()
    assert pa % PGSIZE == 0
    assert mem.free_count() == NPAGES - 1
    assert mem.ref_count(pa) == 1
    mem.free(pa)
    assert mem.free_count() == NPAGES
    assert mem.ref_count(pa) == 0


def test_alloc_exhausted(mem):
    pages = {mem.alloc() for _ in range(NPAGES)}
    assert len(pages) == NPAGES
    with pytest.raises(OutOfMemory):
        mem.alloc()


def test_free_misaligned_panics(mem):
    pa = mem.alloc()
    with pytest.raises(KernelPanic, match="kfree"):
        mem.free(pa + 1)


def test_double_free_panics(mem):
    pa = mem.alloc()
    mem.free(pa)
    with pytest.raises(KernelPanic):
        mem.free(pa)


def test_add_ref_keeps_page(mem):
    pa = mem.alloc()
    mem.add_ref(pa)
    assert mem.ref_count(pa) == 2
    mem.free(pa)
    assert mem.ref_count(pa) == 1
    assert mem.free_count() == NPAGES - 1


def test_read_write_roundtrip(mem):
    pa = mem.alloc()
    mem.write(pa + 10, b"data")
    assert mem.read(pa + 10, 4) == b"data"
    mem.write_word(pa, 0x1122334455667788)
    assert mem.read_word(pa) == 0x1122334455667788


def test_out_of_range_access_panics(mem):
    with pytest.raises(KernelPanic):
        mem.read(KERNBASE + NPAGES * PGSIZE, 1)


def test_walk_unmapped_returns_none(pt):
    assert pt.walk(0) is None
    assert pt.walkaddr(0) is None


def test_walk_beyond_maxva_panics(pt):
    with pytest.raises(KernelPanic, match="walk"):
        pt.walk(MAXVA)
    assert pt.walkaddr(MAXVA) is None


def test_map_pages_and_walkaddr(mem, pt):
    pa = mem.alloc()
    pt.map_pages(PGSIZE, PGSIZE, pa, USER)
    assert pt.walkaddr(PGSIZE) == pa
    pte = mem.read_word(pt.walk(PGSIZE))
    assert pte2pa(pte) == pa
    assert pte_flags(pte) == USER | PteFlag.V


def test_walkaddr_requires_user_bit(mem, pt):
    pa = mem.alloc()
    pt.map_pages(0, PGSIZE, pa, PteFlag.R | PteFlag.W)
    assert pt.walk(0) is not None
    assert pt.walkaddr(0) is None


def test_map_unaligned_range_spans_two_pages(mem, pt):
    pa = mem.alloc()
    mem.alloc()
    pt.map_pages(100, PGSIZE, pa, USER)
    assert pt.walkaddr(0) == pa
    assert pt.walkaddr(PGSIZE) == pa + PGSIZE


def test_remap_panics(mem, pt):
    pa = mem.alloc()
    pt.map_pages(0, PGSIZE, pa, USER)
    with pytest.raises(KernelPanic, match="remap"):
        pt.map_pages(0, PGSIZE, pa, USER)


def test_map_zero_size_panics(mem, pt):
    with pytest.raises(KernelPanic, match="size"):
        pt.map_pages(0, 0, mem.alloc(), USER)


def test_unmap_errors(pt):
    with pytest.raises(KernelPanic, match="not aligned"):
        pt.unmap(1, 1, True)
    with pytest.raises(KernelPanic, match="walk"):
        pt.unmap(0, 1, True)


def test_grow_maps_zeroed_pages(pt):
    size = 3 * PGSIZE
    assert pt.grow(0, size) == size
    assert pt.copy_in(0, size) == bytes(size)
    assert all(pt.walkaddr(va) is not None for va in range(0, size, PGSIZE))
    assert pt.walkaddr(size) is None


def test_grow_smaller_returns_old(pt):
    assert pt.grow(2 * PGSIZE, PGSIZE) == 2 * PGSIZE


def test_shrink_releases_pages(mem, pt):
    pt.grow(0, PGSIZE)
    before = mem.free_count()
    pt.grow(PGSIZE, 4 * PGSIZE)
    assert mem.free_count() == before - 3
    assert pt.shrink(4 * PGSIZE, PGSIZE) == PGSIZE
    assert mem.free_count() == before
    assert pt.walkaddr(PGSIZE) is None


def test_grow_out_of_memory_rolls_back(mem, pt):
    pt.grow(0, PGSIZE)
    before = mem.free_count()
    with pytest.raises(OutOfMemory):
        pt.grow(PGSIZE, 100 * PGSIZE)
    assert mem.free_count() == before
    assert pt.walkaddr(PGSIZE) is None


def test_free_returns_everything(mem, pt):
    pt.grow(0, 5 * PGSIZE)
    pt.free(5 * PGSIZE)
    assert mem.free_count() == NPAGES


def test_free_walk_with_leaf_panics(pt):
    pt.grow(0, PGSIZE)
    with pytest.raises(KernelPanic, match="leaf"):
        pt.free_walk()


def test_load_initcode(pt):
    code = b"\x13\x00\x00\x00init"
    pt.load_initcode(code)
    assert pt.copy_in(0, len(code)) == code
    with pytest.raises(KernelPanic, match="more than a page"):
        PageTable.create(pt.memory).load_initcode(bytes(PGSIZE))


def test_copy_across_page_boundary(pt):
    pt.grow(0, 2 * PGSIZE)
    pt.copy_out(PGSIZE - 3, b"abcdef")
    assert pt.copy_in(PGSIZE - 3, 6) == b"abcdef"


def test_copy_to_unmapped_raises(pt):
    with pytest.raises(BadAddress):
        pt.copy_out(0, b"x")
    with pytest.raises(BadAddress):
        pt.copy_in(0xFFFFFFFFFFFFFFFF, 8)


def test_copy_in_str(pt):
    pt.grow(0, PGSIZE)
    pt.copy_out(0, b"hello\0")
    assert pt.copy_in_str(0, 64) == b"hello"
    with pytest.raises(BadAddress):
        pt.copy_in_str(0, 3)


def test_copy_in_str_past_end_of_memory(pt):
    pt.grow(0, PGSIZE)
    pt.copy_out(PGSIZE - 1, b"x")
    with pytest.raises(BadAddress):
        pt.copy_in_str(PGSIZE - 1, 64)


def test_clear_user(pt):
    pt.grow(0, 2 * PGSIZE)
    pt.clear_user(0)
    assert pt.walkaddr(0) is None
    assert pt.walkaddr(PGSIZE) is not None
    with pytest.raises(KernelPanic, match="uvmclear"):
        pt.clear_user(1 << 30)


def test_fork_shares_pages_copy_on_write(mem, pt):
    pt.grow(0, 2 * PGSIZE)
    pt.copy_out(0, b"parent")
    child = PageTable.create(mem)
    pt.copy_to(child, 2 * PGSIZE)
    pa = pt.walkaddr(0)
    assert child.walkaddr(0) == pa
    assert mem.ref_count(pa) == 2
    assert child.copy_in(0, 6) == b"parent"
    assert pt.is_cow(0) and child.is_cow(0)


def test_copy_out_breaks_shared_cow(mem, pt):
    pt.grow(0, PGSIZE)
    pt.copy_out(0, b"parent")
    child = PageTable.create(mem)
    pt.copy_to(child, PGSIZE)
    shared = pt.walkaddr(0)
    child.copy_out(0, b"child!")
    assert child.walkaddr(0) != shared
    assert child.copy_in(0, 6) == b"child!"
    assert pt.copy_in(0, 6) == b"parent"
    assert mem.ref_count(shared) == 1
    assert not child.is_cow(0)
    assert pt.is_cow(0)


def test_copy_out_sole_owner_reuses_page(mem, pt):
    pt.grow(0, PGSIZE)
    child = PageTable.create(mem)
    pt.copy_to(child, PGSIZE)
    child.free(PGSIZE)
    page = pt.walkaddr(0)
    before = mem.free_count()
    pt.copy_out(0, b"again")
    assert mem.free_count() == before
    assert pt.walkaddr(0) == page
    assert not pt.is_cow(0)
    assert pt.copy_in(0, 5) == b"again"


def test_is_cow_outside_range(pt):
    assert pt.is_cow(MAXVA) is False
    assert pt.is_cow(0) is False


def test_copy_to_missing_page_panics(mem, pt):
    child = PageTable.create(mem)
    with pytest.raises(KernelPanic, match="uvmcopy"):
        pt.copy_to(child, PGSIZE)