import io

import pytest

from moskernel.env import EnvStatus, EnvTable
from moskernel.envvalue import DeclareResult, EnvValueStore
from moskernel.errors import BadEnvError, ErrorCode, InvalidArgumentError, IpcNotReceivingError
from moskernel.fmt import KernelPanic
from moskernel.layout import BY2PG, PTE_COW, PTE_R, PTE_V, ULIM, UTOP
from moskernel.memory import PageAllocator
from moskernel.sched import Scheduler
from moskernel.syscalls import VALUE_NOT_FOUND, Kernel, Syscall


@pytest.fixture
def system():
    allocator = PageAllocator(64)
    table = EnvTable(allocator, 8)
    table.console = io.StringIO()
    scheduler = Scheduler(table)
    values = EnvValueStore()
    values.console = table.console
    kernel = Kernel(table, scheduler, values)
    parent = table.alloc(0)
    table.curenv = parent
    return kernel, table, parent


def _child(kernel, table):
    return table.envid2env(kernel.env_alloc())


def test_dispatch_by_raw_syscall_numbers(system):
    kernel, table, parent = system
    kernel.dispatch(9527, ord("Z"))
    assert table.console.getvalue() == "Z"
    assert kernel.dispatch(9528) == parent.id


def test_putchar_and_getenvid(system):
    kernel, table, parent = system
    kernel.putchar(ord("A"))
    assert table.console.getvalue() == "A"
    assert kernel.getenvid() == 1024 == parent.id


def test_mem_alloc_maps_page(system):
    kernel, _table, parent = system
    kernel.mem_alloc(0, 0x1000, PTE_V | PTE_R)
    page, perm = parent.pgdir.lookup(0x1000)
    assert page.ref == 1
    assert perm & PTE_R


@pytest.mark.parametrize("va, perm", [(UTOP, PTE_V), (0x1000, PTE_R), (0x1000, PTE_V | PTE_COW)])
def test_mem_alloc_rejects(system, va, perm):
    kernel, _table, _parent = system
    with pytest.raises(InvalidArgumentError):
        kernel.mem_alloc(0, va, perm)


def test_mem_alloc_needs_child(system):
    kernel, table, _parent = system
    stranger = table.alloc(0)
    with pytest.raises(BadEnvError):
        kernel.mem_alloc(stranger.id, 0x1000, PTE_V)


def test_mem_map_shares_page(system):
    kernel, table, parent = system
    child = _child(kernel, table)
    kernel.mem_alloc(0, 0x1000, PTE_V | PTE_R)
    kernel.mem_map(0, 0x1234, child.id, 0x5000, PTE_V | PTE_R)
    page, _ = parent.pgdir.lookup(0x1000)
    assert child.pgdir.lookup(0x5000)[0] is page
    assert page.ref == 2


def test_mem_map_refuses_write_upgrade(system):
    kernel, table, _parent = system
    child = _child(kernel, table)
    kernel.mem_alloc(0, 0x1000, PTE_V)
    with pytest.raises(InvalidArgumentError):
        kernel.mem_map(0, 0x1000, child.id, 0x5000, PTE_V | PTE_R)
    with pytest.raises(InvalidArgumentError):
        kernel.mem_map(0, 0x9000, child.id, 0x5000, PTE_V)


def test_mem_unmap(system):
    kernel, _table, parent = system
    kernel.mem_alloc(0, 0x1000, PTE_V)
    kernel.mem_unmap(0, 0x1000)
    assert parent.pgdir.lookup(0x1000) is None
    with pytest.raises(InvalidArgumentError):
        kernel.mem_unmap(0, UTOP)


def test_env_alloc_copies_caller(system):
    kernel, table, parent = system
    parent.pri = 3
    table.syscall_tf.cp0_epc = 0x400100
    table.syscall_tf.regs[2] = 99
    child = _child(kernel, table)
    assert child.parent_id == parent.id
    assert child.status == EnvStatus.NOT_RUNNABLE
    assert child.tf.regs[2] == 0
    assert child.tf.pc == table.syscall_tf.cp0_epc
    assert child.pri == parent.pri


def test_set_env_status_queues(system):
    kernel, table, _parent = system
    child = _child(kernel, table)
    kernel.set_env_status(child.id, EnvStatus.RUNNABLE)
    assert table.sched_lists[0][0] is child
    kernel.set_env_status(child.id, EnvStatus.NOT_RUNNABLE)
    assert child not in table.sched_lists[0]
    with pytest.raises(InvalidArgumentError):
        kernel.set_env_status(child.id, 7)


def test_ipc_roundtrip(system):
    kernel, table, parent = system
    child = _child(kernel, table)
    table.curenv = child
    kernel.ipc_recv(0x3000)
    assert child.ipc_recving
    assert child.status == EnvStatus.NOT_RUNNABLE
    table.curenv = parent
    kernel.ipc_can_send(child.id, 42, 0, 0)
    assert child.ipc_value == 42
    assert child.ipc_from == parent.id
    assert child.status == EnvStatus.RUNNABLE
    with pytest.raises(IpcNotReceivingError):
        kernel.ipc_can_send(child.id, 1, 0, 0)


def test_ipc_transfers_page(system):
    kernel, table, parent = system
    child = _child(kernel, table)
    kernel.mem_alloc(0, 0x1000, PTE_V | PTE_R)
    parent.pgdir.write(0x1000, b"hello")
    table.curenv = child
    kernel.ipc_recv(0x3000)
    table.curenv = parent
    kernel.ipc_can_send(child.id, 0, 0x1000, PTE_V | PTE_R)
    assert child.pgdir.read(0x3000, 5) == b"hello"


def test_device_roundtrip(system):
    kernel, _table, parent = system
    kernel.mem_alloc(0, 0x1000, PTE_V | PTE_R)
    parent.pgdir.write(0x1000, b"\x01\x02\x03\x04")
    kernel.write_dev(0x1000, 0x13000000, 4)
    assert kernel.devices[0x13000000][:4] == b"\x01\x02\x03\x04"
    kernel.read_dev(0x1000 + BY2PG // 2, 0x13000000, 4)
    assert parent.pgdir.read(0x1000 + BY2PG // 2, 4) == b"\x01\x02\x03\x04"


def test_device_range_checked(system):
    kernel, _table, _parent = system
    kernel.mem_alloc(0, 0x1000, PTE_V | PTE_R)
    with pytest.raises(InvalidArgumentError):
        kernel.write_dev(0x1000, 0x10000010, 0x20)
    with pytest.raises(InvalidArgumentError):
        kernel.read_dev(ULIM, 0x10000000, 4)


def test_env_destroy_child(system):
    kernel, table, _parent = system
    child = _child(kernel, table)
    kernel.env_destroy(child.id)
    assert child.status == EnvStatus.FREE
    assert "destroying" in table.console.getvalue()


def test_set_pgfault_handler(system):
    kernel, _table, parent = system
    kernel.set_pgfault_handler(0, 0x401000, UTOP)
    assert parent.pgfault_handler == 0x401000
    assert parent.xstacktop == UTOP


def test_env_values_through_kernel(system):
    kernel, _table, _parent = system
    shell = kernel.create_shell_id()
    assert kernel.declare_env_value("x", 5, shell, False) is DeclareResult.CREATED
    assert kernel.get_env_value("x", shell) == 5
    assert kernel.unset_env_value("x", shell) == 1


def test_dispatch_returns_status(system):
    kernel, _table, parent = system
    assert kernel.dispatch(Syscall.MEM_ALLOC, 0, UTOP, PTE_V) == -ErrorCode.INVAL
    assert kernel.dispatch(Syscall.GETENVID) == parent.id
    assert kernel.dispatch(Syscall.GET_ENV_VALUE, "none", 0, 1) == VALUE_NOT_FOUND
    assert kernel.dispatch(Syscall.DECLARE_ENV_VALUE, "y", 3, 0, 0) == 0
    assert kernel.dispatch(Syscall.GET_ENV_VALUE, "y", 0, 1) == 3


def test_dispatch_panic_and_unknown(system):
    kernel, _table, _parent = system
    with pytest.raises(KernelPanic, match="boom"):
        kernel.dispatch(Syscall.PANIC, "boom")
    with pytest.raises(ValueError):
        kernel.dispatch(12345)