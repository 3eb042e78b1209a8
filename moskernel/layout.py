"""Memory layout constants and address arithmetic for the kernel's MIPS machine."""

MASK32 = 0xFFFFFFFF

# Hardware page geometry.
BY2PG = 4096
PDMAP = 4 * 1024 * 1024
PGSHIFT = 12
PDSHIFT = 22
PTE2PT = 1024

# Page table / directory entry flags.
PTE_G = 0x0100
PTE_V = 0x0200
PTE_R = 0x0400
PTE_D = 0x0002
PTE_COW = 0x0001
PTE_UC = 0x0800
PTE_LIBRARY = 0x0004

# Virtual address space layout.
KERNBASE = 0x80010000
ULIM = 0x80000000
VPT = ULIM + PDMAP
KSTACKTOP = VPT - 0x100
KSTKSIZE = 8 * BY2PG

UVPT = ULIM - PDMAP
UPAGES = UVPT - PDMAP
UENVS = UPAGES - PDMAP

UTOP = UENVS
UXSTACKTOP = UTOP
TIMESTACK = 0x82000000

USTACKTOP = UTOP - 2 * BY2PG
UTEXT = 0x00400000

# Environment table geometry.
LOG2NENV = 10
NENV = 1 << LOG2NENV


def _u32(value):
    return int(value) & MASK32


def pdx(va):
    """Page directory index of a virtual address."""
    return (_u32(va) >> PDSHIFT) & 0x03FF


def ptx(va):
    """Page table index of a virtual address."""
    return (_u32(va) >> PGSHIFT) & 0x03FF


def pte_addr(pte):
    """Physical page address held in a page table entry (flags stripped)."""
    return _u32(pte) & ~0xFFF


def ppn(va):
    """Page number of an address."""
    return _u32(va) >> PGSHIFT


def round_up(a, n):
    """Round ``a`` up to a multiple of ``n``; ``n`` must be a power of two."""
    return (_u32(a) + n - 1) & ~(n - 1) & MASK32


def round_down(a, n):
    """Round ``a`` down to a multiple of ``n``; ``n`` must be a power of two."""
    return _u32(a) & ~(n - 1)


def env_index(envid):
    """Slot of an environment id in the environment table."""
    return int(envid) & (NENV - 1)


def env_asid(envid):
    """Address space identifier, shifted for EntryHi, encoded in an environment id."""
    return (int(envid) >> 11) << 6