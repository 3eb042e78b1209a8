"""Environments (user processes): allocation, ids, teardown and switching."""

from collections import deque
from dataclasses import dataclass, field
from enum import IntEnum

from .errors import BadEnvError, NoFreeEnvError, NoMemoryError
from .fmt import panic, printf
from .layout import LOG2NENV, NENV, USTACKTOP, UTOP, env_asid, env_index
from .memory import AddressSpace
from .trapframe import Trapframe

NASID = 64
INITIAL_STATUS = 0x1000100C


class EnvStatus(IntEnum):
    FREE = 0
    RUNNABLE = 1
    NOT_RUNNABLE = 2


@dataclass(eq=False)
class Env:
    """One slot of the environment table."""

    index: int
    tf: Trapframe = field(default_factory=Trapframe)
    id: int = 0
    parent_id: int = 0
    status: EnvStatus = EnvStatus.FREE
    pgdir: AddressSpace = None
    cr3: int = 0
    pri: int = 0
    ipc_value: int = 0
    ipc_from: int = 0
    ipc_recving: bool = False
    ipc_dstva: int = 0
    ipc_perm: int = 0
    pgfault_handler: int = 0
    xstacktop: int = 0
    runs: int = 0
    pgdir_page: object = field(default=None, repr=False)


class EnvTable:
    """The fixed table of environments with its free list and run queues.

    ``trap_tf`` stands for the frame saved at the timer stack on an interrupt,
    ``syscall_tf`` for the frame saved on the kernel stack on a system call.
    ``on_yield`` is called when the running environment is destroyed and
    another one has to be picked; ``console`` receives kernel messages.
    """

    def __init__(self, allocator, nenv=NENV):
        if not 0 < nenv <= NENV:
            raise ValueError(f"environment count must be between 1 and {NENV}")
        self.allocator = allocator
        self.envs = [Env(number) for number in range(nenv)]
        self._free = deque(self.envs)
        self.sched_lists = ([], [])
        self.curenv = None
        self._asid_bitmap = 0
        self.trap_tf = Trapframe()
        self.syscall_tf = Trapframe()
        self.current_asid = 0
        self.on_yield = None
        self.console = None

    @property
    def free_count(self):
        """Number of environments on the free list."""
        return len(self._free)

    def _asid_alloc(self):
        for asid in range(NASID):
            if not self._asid_bitmap & (1 << asid):
                self._asid_bitmap |= 1 << asid
                return asid
        panic("too many processes!")

    def _asid_free(self, asid):
        self._asid_bitmap &= ~(1 << asid)

    def mkenvid(self, env):
        """Give ``env`` a fresh id built from a newly allocated ASID and its slot."""
        return (self._asid_alloc() << (1 + LOG2NENV)) | (1 << LOG2NENV) | env.index

    def _setup_vm(self, env):
        try:
            page = self.allocator.alloc()
        except NoMemoryError:
            panic("env_setup_vm - page alloc error\n")
        page.ref += 1
        env.pgdir_page = page
        env.pgdir = AddressSpace(self.allocator)
        env.cr3 = page.pa

    def alloc(self, parent_id=0):
        """Take a free environment, give it an address space and an id."""
        if not self._free:
            raise NoFreeEnvError()
        env = self._free[0]
        self._setup_vm(env)
        env.id = self.mkenvid(env)
        env.parent_id = parent_id
        env.status = EnvStatus.RUNNABLE
        env.runs = 0
        env.tf.cp0_status = INITIAL_STATUS
        env.tf.regs[29] = USTACKTOP
        self._free.popleft()
        return env

    def envid2env(self, envid, checkperm=False):
        """Find the environment with ``envid``; id 0 means the current one.

        With ``checkperm`` the target must be the current environment or its
        immediate child.
        """
        if envid == 0:
            return self.curenv
        slot = env_index(envid)
        if slot >= len(self.envs):
            raise BadEnvError()
        env = self.envs[slot]
        if env.status == EnvStatus.FREE or env.id != envid:
            raise BadEnvError()
        if checkperm:
            cur = self.curenv
            if cur is None or (env is not cur and env.parent_id != cur.id):
                raise BadEnvError()
        return env

    def _unschedule(self, env):
        for queue in self.sched_lists:
            for position, queued in enumerate(queue):
                if queued is env:
                    del queue[position]
                    return

    def free(self, env):
        """Release every page ``env`` uses and put it back on the free list."""
        if env.pgdir is None:
            raise BadEnvError(f"environment {env.id:08x} has no address space")
        printf("[%08x] free env %08x\n",
               self.curenv.id if self.curenv else 0, env.id, file=self.console)
        for va, _page, _perm in list(env.pgdir.mappings()):
            if va < UTOP:
                env.pgdir.remove(va)
        page = env.pgdir_page
        env.pgdir = None
        env.pgdir_page = None
        env.cr3 = 0
        self._asid_free(env.id >> (1 + LOG2NENV))
        self.allocator.decref(page)
        env.status = EnvStatus.FREE
        self._free.appendleft(env)
        self._unschedule(env)

    def destroy(self, env):
        """Free ``env``; if it was running, pick another environment to run."""
        self.free(env)
        if self.curenv is env:
            self.curenv = None
            self.trap_tf = self.syscall_tf.copy()
            printf("i am killed ... \n", file=self.console)
            if self.on_yield is not None:
                self.on_yield()

    def run(self, env):
        """Save the running environment's registers and switch to ``env``."""
        if self.curenv is not None:
            saved = self.trap_tf.copy()
            saved.pc = saved.cp0_epc
            self.curenv.tf = saved
        self.curenv = env
        self.current_asid = env_asid(env.id)
        self.trap_tf = env.tf.copy()