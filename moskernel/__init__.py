"""A model of a small teaching kernel: memory, environments, scheduling, ELF loading and system calls."""

__version__ = "0.1.0"
__all__ = [
    "layout",
    "errors",
    "fmt",
    "memory",
    "elf",
    "readelf",
    "trapframe",
    "env",
    "loader",
    "sched",
    "traps",
    "envvalue",
    "syscalls",
]