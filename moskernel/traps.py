"""Exception vectors and the user page-fault upcall."""

from .layout import BY2PG
from .trapframe import TF_SIZE

NVECTORS = 32


class ExceptionTable:
    """The handler installed for each of the processor's exception codes."""

    def __init__(self):
        self._handlers = [None] * NVECTORS

    def _check(self, n):
        if not 0 <= n < NVECTORS:
            raise IndexError(f"no exception vector {n}")

    def set_vector(self, n, handler):
        """Install ``handler`` for exception ``n`` and return the previous one."""
        self._check(n)
        old = self._handlers[n]
        self._handlers[n] = handler
        return old

    def handler(self, n):
        """The handler installed for exception ``n``."""
        self._check(n)
        return self._handlers[n]


def trap_init(handlers):
    """Build the exception table from handlers named int, mod, tlb, sys and reserved."""
    table = ExceptionTable()
    for n in range(NVECTORS):
        table.set_vector(n, handlers["reserved"])
    table.set_vector(0, handlers["int"])
    table.set_vector(1, handlers["mod"])
    table.set_vector(2, handlers["tlb"])
    table.set_vector(3, handlers["tlb"])
    table.set_vector(8, handlers["sys"])
    return table


def page_fault_handler(tf, env):
    """Push a copy of ``tf`` onto ``env``'s exception stack and aim ``tf`` at its handler.

    A fault taken while already on the exception stack nests below the current
    stack pointer. Returns the address the frame was stored at.
    """
    saved = tf.copy()
    sp = tf.regs[29]
    if env.xstacktop - BY2PG <= sp <= env.xstacktop - 1:
        frame_va = sp - TF_SIZE
    else:
        frame_va = env.xstacktop - TF_SIZE
    env.pgdir.write(frame_va, saved.to_bytes())
    tf.regs[29] = frame_va
    tf.cp0_epc = env.pgfault_handler
    return frame_va