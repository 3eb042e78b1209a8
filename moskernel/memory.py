"""Physical pages with reference counts and per-environment page mappings."""

from collections import deque
from dataclasses import dataclass, field

from .errors import InvalidArgumentError, NoMemoryError
from .layout import BY2PG, MASK32, PGSHIFT, PTE_V, ppn


@dataclass(eq=False)
class Page:
    """One physical page frame and the count of mappings that point at it."""

    ppn: int
    ref: int = 0
    data: bytearray = field(default_factory=lambda: bytearray(BY2PG), repr=False)

    @property
    def pa(self):
        """Physical address of the start of the page."""
        return self.ppn << PGSHIFT


class PageAllocator:
    """A pool of physical pages handed out from a free list."""

    def __init__(self, npages):
        if npages < 0:
            raise ValueError("page count cannot be negative")
        self.pages = [Page(number) for number in range(npages)]
        self._free = deque(self.pages)

    @property
    def free_count(self):
        """Number of pages currently on the free list."""
        return len(self._free)

    def alloc(self):
        """Take a zero-filled page off the free list."""
        if not self._free:
            raise NoMemoryError()
        page = self._free.popleft()
        page.data[:] = bytes(BY2PG)
        return page

    def decref(self, page):
        """Drop one reference; a page nobody refers to goes back on the free list."""
        if page.ref <= 0:
            raise ValueError(f"page {page.ppn} has no references to drop")
        page.ref -= 1
        if page.ref == 0:
            self._free.appendleft(page)


def _vpn(va):
    if not 0 <= va <= MASK32:
        raise InvalidArgumentError(f"virtual address {va:#x} out of range")
    return ppn(va)


class AddressSpace:
    """Mappings from virtual pages to physical pages with permission bits."""

    def __init__(self, allocator):
        self.allocator = allocator
        self._entries = {}

    def lookup(self, va):
        """Return ``(page, perm)`` for the page holding ``va``, or None if unmapped."""
        return self._entries.get(_vpn(va))

    def insert(self, page, va, perm):
        """Map ``page`` at ``va``, replacing whatever page was mapped there."""
        vpn = _vpn(va)
        perm = (perm & 0xFFF) | PTE_V
        current = self._entries.get(vpn)
        if current is not None:
            if current[0] is page:
                self._entries[vpn] = (page, perm)
                return
            self.remove(va)
        page.ref += 1
        self._entries[vpn] = (page, perm)

    def remove(self, va):
        """Unmap the page at ``va``; nothing happens if none is mapped."""
        entry = self._entries.pop(_vpn(va), None)
        if entry is not None:
            self.allocator.decref(entry[0])

    def _spans(self, va, size):
        if size < 0:
            raise ValueError("size cannot be negative")
        if size and va + size - 1 > MASK32:
            raise InvalidArgumentError(f"range at {va:#x} runs past the address space")
        end = va + size
        while va < end:
            offset = va % BY2PG
            length = min(BY2PG - offset, end - va)
            entry = self._entries.get(_vpn(va))
            if entry is None:
                raise InvalidArgumentError(f"address {va:#x} is not mapped")
            yield entry[0], offset, length
            va += length

    def read(self, va, size):
        """Copy ``size`` bytes out of the mapped pages starting at ``va``."""
        return b"".join(
            bytes(page.data[offset:offset + length])
            for page, offset, length in self._spans(va, size)
        )

    def write(self, va, data):
        """Copy ``data`` into the mapped pages starting at ``va``."""
        data = bytes(data)
        spans = list(self._spans(va, len(data)))
        done = 0
        for page, offset, length in spans:
            page.data[offset:offset + length] = data[done:done + length]
            done += length

    def mappings(self):
        """Yield ``(va, page, perm)`` for every mapped page in address order."""
        for vpn in sorted(self._entries):
            page, perm = self._entries[vpn]
            yield vpn << PGSHIFT, page, perm