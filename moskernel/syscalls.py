"""System call handlers and the dispatcher that turns failures into status values."""

import sys
from enum import IntEnum

from .env import EnvStatus
from .envvalue import EnvValueStore
from .errors import InvalidArgumentError, IpcNotReceivingError, KernelError
from .fmt import panic, printf
from .layout import BY2PG, PTE_COW, PTE_R, PTE_V, ULIM, UTOP, round_down

SYSCALL_BASE = 9527
NR_SYSCALLS = 20
VALUE_NOT_FOUND = -214748
KSEG1 = 0xA0000000

# Physical device windows: start address and length.
DEVICES = ((0x10000000, 0x20), (0x13000000, 0x4200), (0x15000000, 0x200))


class Syscall(IntEnum):
    PUTCHAR = SYSCALL_BASE + 0
    GETENVID = SYSCALL_BASE + 1
    YIELD = SYSCALL_BASE + 2
    ENV_DESTROY = SYSCALL_BASE + 3
    SET_PGFAULT_HANDLER = SYSCALL_BASE + 4
    MEM_ALLOC = SYSCALL_BASE + 5
    MEM_MAP = SYSCALL_BASE + 6
    MEM_UNMAP = SYSCALL_BASE + 7
    ENV_ALLOC = SYSCALL_BASE + 8
    SET_ENV_STATUS = SYSCALL_BASE + 9
    SET_TRAPFRAME = SYSCALL_BASE + 10
    PANIC = SYSCALL_BASE + 11
    IPC_CAN_SEND = SYSCALL_BASE + 12
    IPC_RECV = SYSCALL_BASE + 13
    CGETC = SYSCALL_BASE + 14
    WRITE_DEV = SYSCALL_BASE + 15
    READ_DEV = SYSCALL_BASE + 16
    CREATE_SHELL_ID = SYSCALL_BASE + 17
    DECLARE_ENV_VALUE = SYSCALL_BASE + 18
    UNSET_ENV_VALUE = SYSCALL_BASE + 19
    GET_ENV_VALUE = SYSCALL_BASE + 20


def _check_perm(perm):
    perm &= 0xFFF
    if not perm & PTE_V:
        raise InvalidArgumentError("mapping must be valid")
    return perm


class Kernel:
    """The system calls, run on behalf of the table's current environment.

    Handlers raise ``KernelError`` subclasses; ``dispatch`` turns them into
    the negative status values user code sees.
    """

    def __init__(self, table, scheduler, values=None):
        self.table = table
        self.scheduler = scheduler
        self.values = EnvValueStore() if values is None else values
        self.devices = {start: bytearray(length) for start, length in DEVICES}
        self._handlers = {
            Syscall.PUTCHAR: self.putchar,
            Syscall.GETENVID: self.getenvid,
            Syscall.YIELD: self.yield_,
            Syscall.ENV_DESTROY: self.env_destroy,
            Syscall.SET_PGFAULT_HANDLER: self.set_pgfault_handler,
            Syscall.MEM_ALLOC: self.mem_alloc,
            Syscall.MEM_MAP: self.mem_map,
            Syscall.MEM_UNMAP: self.mem_unmap,
            Syscall.ENV_ALLOC: self.env_alloc,
            Syscall.SET_ENV_STATUS: self.set_env_status,
            Syscall.SET_TRAPFRAME: self._set_trapframe,
            Syscall.PANIC: self._panic,
            Syscall.IPC_CAN_SEND: self.ipc_can_send,
            Syscall.IPC_RECV: self.ipc_recv,
            Syscall.WRITE_DEV: self.write_dev,
            Syscall.READ_DEV: self.read_dev,
            Syscall.CREATE_SHELL_ID: self.create_shell_id,
            Syscall.DECLARE_ENV_VALUE: self._declare_call,
            Syscall.UNSET_ENV_VALUE: self._unset_call,
            Syscall.GET_ENV_VALUE: self._get_call,
        }

    @property
    def _console(self):
        return self.table.console if self.table.console is not None else sys.stdout

    @property
    def _cur(self):
        return self.table.curenv

    def putchar(self, c):
        """Write one character to the console."""
        self._console.write(chr(int(c) & 0xFF))

    def getenvid(self):
        """Id of the current environment."""
        return self._cur.id

    def yield_(self):
        """Give up the processor and let the scheduler pick the next environment."""
        self.table.trap_tf = self.table.syscall_tf.copy()
        self.scheduler.schedule()

    def env_destroy(self, envid):
        """Destroy the current environment or one of its children."""
        env = self.table.envid2env(envid, True)
        printf("[%08x] destroying %08x\n", self._cur.id, env.id, file=self.table.console)
        self.table.destroy(env)

    def set_pgfault_handler(self, envid, func, xstacktop):
        """Set the page-fault entry point and exception stack top of ``envid``."""
        env = self.table.envid2env(envid, False)
        env.pgfault_handler = func
        env.xstacktop = xstacktop

    def mem_alloc(self, envid, va, perm):
        """Map a fresh page at ``va`` in ``envid``, replacing any page there."""
        perm &= 0xFFF
        if va >= UTOP:
            raise InvalidArgumentError(f"address {va:#x} is above UTOP")
        perm = _check_perm(perm)
        if perm & PTE_COW:
            raise InvalidArgumentError("copy-on-write pages cannot be allocated")
        env = self.table.envid2env(envid, True)
        page = self.table.allocator.alloc()
        env.pgdir.insert(page, va, perm)

    def mem_map(self, srcid, srcva, dstid, dstva, perm):
        """Share the page at ``srcva`` of ``srcid`` at ``dstva`` of ``dstid``."""
        srcva = round_down(srcva, BY2PG)
        dstva = round_down(dstva, BY2PG)
        perm &= 0xFFF
        if srcva >= UTOP or dstva >= UTOP:
            raise InvalidArgumentError("addresses must lie below UTOP")
        perm = _check_perm(perm)
        srcenv = self.table.envid2env(srcid, False)
        dstenv = self.table.envid2env(dstid, False)
        entry = srcenv.pgdir.lookup(srcva)
        if entry is None:
            raise InvalidArgumentError(f"no page mapped at {srcva:#x}")
        page, src_perm = entry
        if not src_perm & PTE_R and perm & PTE_R:
            raise InvalidArgumentError("cannot map a read-only page writable")
        dstenv.pgdir.insert(page, dstva, perm)

    def mem_unmap(self, envid, va):
        """Unmap the page at ``va`` in ``envid``; an unmapped address is fine."""
        if va >= UTOP:
            raise InvalidArgumentError(f"address {va:#x} is above UTOP")
        env = self.table.envid2env(envid, False)
        env.pgdir.remove(va)

    def env_alloc(self):
        """Create a child with the caller's registers, not yet runnable; return its id."""
        cur = self._cur
        env = self.table.alloc(cur.id)
        env.tf = self.table.syscall_tf.copy()
        env.tf.pc = env.tf.cp0_epc
        env.tf.regs[2] = 0
        env.status = EnvStatus.NOT_RUNNABLE
        env.pri = cur.pri
        return env.id

    def set_env_status(self, envid, status):
        """Change the status of ``envid``, queueing or unqueueing it to match."""
        try:
            status = EnvStatus(status)
        except ValueError:
            raise InvalidArgumentError(f"unknown environment status {status}") from None
        env = self.table.envid2env(envid, False)
        if env.status != EnvStatus.RUNNABLE and status == EnvStatus.RUNNABLE:
            self.table.sched_lists[0].insert(0, env)
        if env.status == EnvStatus.RUNNABLE and status != EnvStatus.RUNNABLE:
            for queue in self.table.sched_lists:
                if env in queue:
                    queue.remove(env)
                    break
        env.status = status

    def ipc_recv(self, dstva):
        """Block the current environment until a message arrives."""
        if dstva >= UTOP:
            return
        cur = self._cur
        cur.ipc_recving = True
        cur.ipc_dstva = dstva
        cur.status = EnvStatus.NOT_RUNNABLE
        self.yield_()

    def ipc_can_send(self, envid, value, srcva, perm):
        """Deliver ``value`` (and the page at ``srcva`` if not 0) to a receiving env."""
        perm &= 0xFFF
        if srcva >= UTOP:
            raise InvalidArgumentError(f"address {srcva:#x} is above UTOP")
        env = self.table.envid2env(envid, False)
        if not env.ipc_recving:
            raise IpcNotReceivingError()
        cur = self._cur
        env.ipc_recving = False
        env.ipc_from = cur.id
        env.ipc_value = value
        env.ipc_perm = perm
        env.status = EnvStatus.RUNNABLE
        if srcva != 0:
            entry = cur.pgdir.lookup(srcva)
            if entry is None:
                raise InvalidArgumentError(f"no page mapped at {srcva:#x}")
            env.pgdir.insert(entry[0], env.ipc_dstva, perm)

    def _device(self, va, dev, length):
        if va >= ULIM:
            raise InvalidArgumentError(f"address {va:#x} is not a user address")
        for start, size in DEVICES:
            if dev >= start and dev + length <= start + size:
                return self.devices[start], dev - start
        raise InvalidArgumentError(f"device range {dev:#x}+{length:#x} is not valid")

    def write_dev(self, va, dev, length):
        """Copy ``length`` bytes from user memory at ``va`` to the device at ``dev``."""
        memory, offset = self._device(va, dev, length)
        memory[offset:offset + length] = self._cur.pgdir.read(va, length)

    def read_dev(self, va, dev, length):
        """Copy ``length`` bytes from the device at ``dev`` to user memory at ``va``."""
        memory, offset = self._device(va, dev, length)
        self._cur.pgdir.write(va, bytes(memory[offset:offset + length]))

    def create_shell_id(self):
        return self.values.create_shell_id()

    def declare_env_value(self, name, value, shell_id, readonly):
        return self.values.declare(name, value, shell_id, readonly)

    def unset_env_value(self, name, shell_id):
        return self.values.unset(name, shell_id)

    def get_env_value(self, name, shell_id):
        return self.values.get(name, shell_id)

    def _set_trapframe(self, envid, tf):
        return 0

    def _panic(self, msg):
        panic("%s", msg)

    def _declare_call(self, name, value, shell_id, readonly):
        self.declare_env_value(name, value, shell_id, readonly)
        return 0

    def _unset_call(self, name, shell_id):
        self.unset_env_value(name, shell_id)
        return 0

    def _get_call(self, name, kind, shell_id):
        if kind == 0:
            try:
                return self.get_env_value(name, shell_id)
            except KeyError:
                return VALUE_NOT_FOUND
        if kind == 1:
            for line in self.values.describe(shell_id):
                printf("%s", line, file=self.values.console)
        return 0

    def dispatch(self, sysno, *args):
        """Run system call ``sysno``; errors come back as negative status values."""
        try:
            handler = self._handlers[Syscall(sysno)]
        except (ValueError, KeyError):
            raise ValueError(f"unsupported system call {sysno}") from None
        try:
            result = handler(*args)
        except KernelError as err:
            return err.status
        return 0 if result is None else result