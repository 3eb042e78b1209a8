"""Kernel and file system error codes and the exceptions that carry them."""

from enum import IntEnum


class ErrorCode(IntEnum):
    UNSPECIFIED = 1
    BAD_ENV = 2
    INVAL = 3
    NO_MEM = 4
    NO_FREE_ENV = 5
    IPC_NOT_RECV = 6
    NO_DISK = 7
    MAX_OPEN = 8
    NOT_FOUND = 9
    BAD_PATH = 10
    FILE_EXISTS = 11
    NOT_EXEC = 12


MAXERROR = max(ErrorCode)

_DESCRIPTIONS = {
    ErrorCode.UNSPECIFIED: "unspecified or unknown problem",
    ErrorCode.BAD_ENV: "environment doesn't exist or cannot be used in requested action",
    ErrorCode.INVAL: "invalid parameter",
    ErrorCode.NO_MEM: "request failed due to memory shortage",
    ErrorCode.NO_FREE_ENV: "attempt to create a new environment beyond the maximum allowed",
    ErrorCode.IPC_NOT_RECV: "attempt to send to env that is not receiving",
    ErrorCode.NO_DISK: "no free space left on disk",
    ErrorCode.MAX_OPEN: "too many files are open",
    ErrorCode.NOT_FOUND: "file or block not found",
    ErrorCode.BAD_PATH: "bad path",
    ErrorCode.FILE_EXISTS: "file already exists",
    ErrorCode.NOT_EXEC: "file not a valid executable",
}


class KernelError(Exception):
    """A failure reported by the kernel, tagged with its error code."""

    code = ErrorCode.UNSPECIFIED

    def __init__(self, message=None, *, code=None):
        if code is not None:
            self.code = ErrorCode(code)
        super().__init__(message or _DESCRIPTIONS[self.code])

    @property
    def status(self):
        """The negative status value a system call returns for this error."""
        return -int(self.code)


class BadEnvError(KernelError):
    code = ErrorCode.BAD_ENV


class InvalidArgumentError(KernelError):
    code = ErrorCode.INVAL


class NoMemoryError(KernelError):
    code = ErrorCode.NO_MEM


class NoFreeEnvError(KernelError):
    code = ErrorCode.NO_FREE_ENV


class IpcNotReceivingError(KernelError):
    code = ErrorCode.IPC_NOT_RECV


_BY_CODE = {
    cls.code: cls
    for cls in (BadEnvError, InvalidArgumentError, NoMemoryError, NoFreeEnvError, IpcNotReceivingError)
}


def error_for(code):
    """Build the exception for an error code; negative status values are accepted."""
    try:
        error_code = ErrorCode(abs(int(code)))
    except ValueError:
        raise ValueError(f"unknown kernel error code {code}") from None
    cls = _BY_CODE.get(error_code)
    if cls is None:
        return KernelError(code=error_code)
    return cls()