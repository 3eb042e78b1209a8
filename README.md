# moskernel

A model, in plain Python, of a small teaching kernel for a 32-bit MIPS
machine. It has no dependencies outside the standard library.

| Module | What it holds |
| --- | --- |
| `moskernel.layout` | memory layout constants (`UTOP`, `USTACKTOP`, `ULIM`, `PTE_V`, ...) and address helpers `pdx`, `ptx`, `pte_addr`, `ppn`, `round_up`, `round_down`, `env_index`, `env_asid` |
| `moskernel.errors` | `ErrorCode`, `KernelError` and its subclasses, `error_for(code)` |
| `moskernel.fmt` | the kernel's `printf` formatter: `format_string`, `printf`, `panic`, `KernelPanic` |
| `moskernel.memory` | `Page`, `PageAllocator` (reference-counted pages on a free list), `AddressSpace` (virtual page to physical page mappings with permission bits) |
| `moskernel.elf` | 32-bit little-endian ELF parsing: `parse_header`, `program_headers`, `section_headers`, `load_elf` |
| `moskernel.readelf` | `section_addresses`, `readelf`, and the `moskernel-readelf` command |
| `moskernel.trapframe` | `Trapframe`, the saved register frame, with `to_bytes`/`from_bytes` |
| `moskernel.env` | `EnvStatus`, `Env`, `EnvTable` (allocation, ids and ASIDs, `envid2env`, `free`, `destroy`, `run`) |
| `moskernel.loader` | `load_icode` and `create_env`: map an ELF image and a stack page into an environment |
| `moskernel.sched` | `Scheduler`, round robin over two run queues with priority time slices |
| `moskernel.traps` | `ExceptionTable`, `trap_init`, `page_fault_handler` |
| `moskernel.envvalue` | `EnvValueStore`: per-shell and global named integer values |
| `moskernel.syscalls` | `Syscall` numbers and `Kernel`, the system-call handlers with `dispatch` |

## Installing

```
pip install .
```

## Formatting like the kernel does

```python
from moskernel.fmt import format_string

format_string("%08x|%-5d|%s", 0xBEEF, -42, "ok")
# '0000beef|-42  |ok'
```

`printf(fmt, *args, file=None)` writes the same text to a stream (standard
output by default), writing each newline twice as the console does.
`panic(fmt, *args)` raises `KernelPanic` with the formatted message.

## Reading ELF files

```python
from moskernel.readelf import section_addresses

with open("program.elf", "rb") as f:
    for index, addr in enumerate(section_addresses(f.read())):
        print(index, hex(addr))
```

From the command line:

```
moskernel-readelf path/to/file.elf
```

Each section is printed as `N:0xADDR`, one per line. A file that does not
start with the ELF magic number prints `not a standard elf format`; a
missing argument or a missing file prints a short notice.

## Running environments

```python
from moskernel.memory import PageAllocator
from moskernel.env import EnvTable
from moskernel.loader import create_env
from moskernel.sched import Scheduler

allocator = PageAllocator(1024)
table = EnvTable(allocator, 1024)
env = create_env(table, elf_image, 2)   # elf_image: bytes of a 32-bit ELF file
scheduler = Scheduler(table)
scheduler.schedule()   # makes env current; it keeps the processor for two slices
```

`schedule()` returns the environment it switched to, or `None` when nothing
is runnable. Switching saves the outgoing registers from `table.trap_tf`
and loads the incoming ones into it.

## System calls

```python
from moskernel.syscalls import Kernel, Syscall

kernel = Kernel(table, scheduler)
kernel.dispatch(Syscall.GETENVID)                     # id of table.curenv
kernel.dispatch(Syscall.MEM_ALLOC, 0, 0x1000, 0x600)  # 0 or a negative error code
```

The handler methods (`mem_alloc`, `mem_map`, `ipc_can_send`, ...) raise
subclasses of `moskernel.errors.KernelError`, such as `BadEnvError` or
`InvalidArgumentError`; `dispatch` turns those into the negative status
values user code sees. Shell values are kept in an `EnvValueStore`, whose
`get` raises `KeyError` for an unknown name (`dispatch` answers `-214748`
instead).

## What this package does not do

It models the kernel's data structures and decisions; it does not execute
anything. There is no processor emulator, so no user program ever runs,
and no TLB, no boot code and no timer. The console is a Python stream and
device memory is a set of byte arrays in `Kernel.devices`. There is no file
system, no file server and no shell. `Syscall.CGETC` and other numbers
without a handler make `dispatch` raise `ValueError`.

## Running the tests

```
pip install .[test]
pytest
```