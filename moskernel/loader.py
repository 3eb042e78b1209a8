"""Loading ELF images into freshly created environments."""

from .elf import load_elf
from .layout import BY2PG, PTE_R, USTACKTOP


def _page_at(env, allocator, va):
    """Return the page mapped at ``va``, mapping a fresh one if there is none."""
    entry = env.pgdir.lookup(va)
    if entry is not None:
        return entry[0]
    page = allocator.alloc()
    env.pgdir.insert(page, va, PTE_R)
    return page


def _segment_mapper(env, allocator):
    def map_segment(va, memsz, data):
        bin_size = len(data)
        done = 0
        offset = va % BY2PG
        if offset:
            page = _page_at(env, allocator, va)
            size = min(bin_size, BY2PG - offset)
            page.data[offset:offset + size] = data[:size]
            done = size

        while done < bin_size:
            size = min(bin_size - done, BY2PG)
            page = allocator.alloc()
            env.pgdir.insert(page, va + done, PTE_R)
            page.data[:size] = data[done:done + size]
            done += size

        # The rest of the segment is memory with no file content behind it.
        offset = (va + done) % BY2PG
        if offset and done < memsz:
            _page_at(env, allocator, va + done)
            done += min(memsz - done, BY2PG - offset)

        while done < memsz:
            size = min(memsz - done, BY2PG)
            page = allocator.alloc()
            env.pgdir.insert(page, va + done, PTE_R)
            done += size

    return map_segment


def load_icode(table, env, binary):
    """Map a stack page and every loadable segment of ``binary`` into ``env``.

    Sets the environment's program counter to the entry point and returns it.
    """
    allocator = table.allocator
    stack = allocator.alloc()
    env.pgdir.insert(stack, USTACKTOP - BY2PG, PTE_R)
    entry = load_elf(binary, _segment_mapper(env, allocator))
    env.tf.pc = entry
    return entry


def create_env(table, binary, priority=1):
    """Allocate an environment, load ``binary`` into it and queue it to run."""
    env = table.alloc(0)
    env.pri = priority
    load_icode(table, env, binary)
    table.sched_lists[0].insert(0, env)
    return env