import pytest

from moskernel.errors import InvalidArgumentError, NoMemoryError
from moskernel.layout import BY2PG, PTE_COW, PTE_R, PTE_V
from moskernel.memory import AddressSpace, PageAllocator


def test_alloc_takes_pages_until_exhausted():
    allocator = PageAllocator(2)
    first = allocator.alloc()
    second = allocator.alloc()
    assert first is not second
    assert allocator.free_count == 0
    with pytest.raises(NoMemoryError):
        allocator.alloc()


def test_page_address_follows_page_number():
    allocator = PageAllocator(3)
    pages = [allocator.alloc() for _ in range(3)]
    assert [p.pa for p in pages] == [0, BY2PG, 2 * BY2PG]


def test_decref_returns_page_to_pool_when_unreferenced():
    allocator = PageAllocator(1)
    page = allocator.alloc()
    page.ref = 2
    allocator.decref(page)
    assert allocator.free_count == 0
    allocator.decref(page)
    assert allocator.free_count == 1
    assert allocator.alloc() is page


def test_decref_without_references_is_an_error():
    allocator = PageAllocator(1)
    page = allocator.alloc()
    with pytest.raises(ValueError):
        allocator.decref(page)


def test_alloc_zeroes_reused_page():
    allocator = PageAllocator(1)
    page = allocator.alloc()
    page.data[0] = 0xAB
    page.ref = 1
    allocator.decref(page)
    assert allocator.alloc().data == bytearray(BY2PG)


def test_insert_and_lookup_sets_valid_bit():
    allocator = PageAllocator(4)
    space = AddressSpace(allocator)
    page = allocator.alloc()
    space.insert(page, 0x400123, PTE_R)
    found, perm = space.lookup(0x400FFF)
    assert found is page
    assert perm == PTE_R | PTE_V
    assert page.ref == 1
    assert space.lookup(0x401000) is None


def test_insert_replaces_old_page():
    allocator = PageAllocator(4)
    space = AddressSpace(allocator)
    old = allocator.alloc()
    new = allocator.alloc()
    space.insert(old, 0x1000, PTE_R)
    space.insert(new, 0x1000, PTE_R)
    assert space.lookup(0x1000)[0] is new
    assert old.ref == 0
    assert allocator.free_count == 3


def test_reinserting_same_page_only_changes_perm():
    allocator = PageAllocator(1)
    space = AddressSpace(allocator)
    page = allocator.alloc()
    space.insert(page, 0x2000, PTE_R)
    space.insert(page, 0x2000, PTE_COW)
    assert page.ref == 1
    assert space.lookup(0x2000)[1] == PTE_COW | PTE_V


def test_remove_unmapped_is_silent_and_mapped_frees():
    allocator = PageAllocator(2)
    space = AddressSpace(allocator)
    space.remove(0x5000)
    page = allocator.alloc()
    space.insert(page, 0x5000, PTE_R)
    space.remove(0x5000)
    assert space.lookup(0x5000) is None
    assert allocator.free_count == 2


def test_shared_page_survives_one_unmap():
    allocator = PageAllocator(1)
    a = AddressSpace(allocator)
    b = AddressSpace(allocator)
    page = allocator.alloc()
    a.insert(page, 0x1000, PTE_R)
    b.insert(page, 0x9000, PTE_R)
    a.remove(0x1000)
    assert page.ref == 1
    assert allocator.free_count == 0
    b.write(0x9000, b"shared")
    assert b.read(0x9000, 6) == b"shared"


def test_write_read_round_trip_across_pages():
    allocator = PageAllocator(2)
    space = AddressSpace(allocator)
    space.insert(allocator.alloc(), 0x0, PTE_R)
    space.insert(allocator.alloc(), BY2PG, PTE_R)
    payload = bytes(range(256)) * 4
    start = BY2PG - 100
    space.write(start, payload)
    assert space.read(start, len(payload)) == payload


def test_access_to_unmapped_address_raises():
    allocator = PageAllocator(1)
    space = AddressSpace(allocator)
    space.insert(allocator.alloc(), 0x0, PTE_R)
    with pytest.raises(InvalidArgumentError):
        space.read(BY2PG - 4, 8)
    with pytest.raises(InvalidArgumentError):
        space.write(BY2PG, b"x")


def test_mappings_in_address_order():
    allocator = PageAllocator(3)
    space = AddressSpace(allocator)
    pages = [allocator.alloc() for _ in range(3)]
    space.insert(pages[0], 0x3000, PTE_R)
    space.insert(pages[1], 0x1000, PTE_R)
    space.insert(pages[2], 0x2000, 0)
    listed = list(space.mappings())
    assert [va for va, _, _ in listed] == [0x1000, 0x2000, 0x3000]
    assert [p for _, p, _ in listed] == [pages[1], pages[2], pages[0]]
    assert listed[1][2] == PTE_V


def test_address_out_of_range_rejected():
    allocator = PageAllocator(1)
    space = AddressSpace(allocator)
    with pytest.raises(InvalidArgumentError):
        space.lookup(1 << 32)