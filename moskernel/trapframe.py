"""Saved processor state of a trapped environment."""

import struct
from dataclasses import dataclass, field, replace

from .layout import MASK32

# Processor-defined trap numbers.
T_DIVIDE = 0
T_DEBUG = 1
T_NMI = 2
T_BRKPT = 3
T_OFLOW = 4
T_BOUND = 5
T_ILLOP = 6
T_DEVICE = 7
T_DBLFLT = 8
T_TSS = 10
T_SEGNP = 11
T_STACK = 12
T_GPFLT = 13
T_PGFLT = 14
T_FPERR = 16
T_ALIGN = 17
T_MCHK = 18

# Software-chosen trap numbers.
T_SYSCALL = 0x30
T_DEFAULT = 500

NREGS = 32

# Byte offsets of each field in the saved frame.
TF_REG0 = 0
TF_STATUS = TF_REG0 + 4 * NREGS
TF_HI = TF_STATUS + 4
TF_LO = TF_HI + 4
TF_BADVADDR = TF_LO + 4
TF_CAUSE = TF_BADVADDR + 4
TF_EPC = TF_CAUSE + 4
TF_PC = TF_EPC + 4
TF_SIZE = TF_PC + 4


def tf_reg(n):
    """Byte offset of general register ``n`` in the saved frame."""
    if not 0 <= n < NREGS:
        raise ValueError(f"no register {n}")
    return TF_REG0 + 4 * n


_LAYOUT = struct.Struct(f"<{NREGS + 7}I")


@dataclass
class Trapframe:
    """General registers plus the coprocessor-0 and multiply registers."""

    regs: list = field(default_factory=lambda: [0] * NREGS)
    cp0_status: int = 0
    hi: int = 0
    lo: int = 0
    cp0_badvaddr: int = 0
    cp0_cause: int = 0
    cp0_epc: int = 0
    pc: int = 0

    def __post_init__(self):
        self.regs = list(self.regs)
        if len(self.regs) != NREGS:
            raise ValueError(f"a trapframe holds {NREGS} registers, not {len(self.regs)}")

    def to_bytes(self):
        """Encode the frame as it is laid out on the kernel stack."""
        words = [*self.regs, self.cp0_status, self.hi, self.lo,
                 self.cp0_badvaddr, self.cp0_cause, self.cp0_epc, self.pc]
        return _LAYOUT.pack(*(int(word) & MASK32 for word in words))

    @staticmethod
    def from_bytes(data):
        """Decode a frame laid out as on the kernel stack."""
        if len(data) != TF_SIZE:
            raise ValueError(f"a trapframe is {TF_SIZE} bytes, not {len(data)}")
        words = _LAYOUT.unpack(bytes(data))
        return Trapframe(list(words[:NREGS]), *words[NREGS:])

    def copy(self):
        """Return an independent copy of the frame."""
        return replace(self, regs=list(self.regs))