"""Named integer values visible to one shell or to every shell."""

from dataclasses import dataclass
from enum import Enum

from .errors import InvalidArgumentError, NoMemoryError
from .fmt import printf

MAX_VALUE_NUM = 128
MAX_NAME_LEN = 32
GLOBAL_SHELL = 0


class DeclareResult(Enum):
    """What a declaration did."""

    CREATED = "created"
    REDECLARED = "redeclared"
    READONLY = "readonly"


@dataclass
class EnvValue:
    """One declared value; ``shell_id`` 0 makes it global."""

    name: str
    value: int
    shell_id: int
    readonly: bool = False
    alive: bool = True

    @property
    def is_global(self):
        return self.shell_id == GLOBAL_SHELL


class EnvValueStore:
    """All declared values, in declaration order, plus the shell id counter.

    Status messages go to ``console`` (standard output when it is None).
    """

    def __init__(self):
        self._values = []
        self._next_shell_id = 1
        self.console = None

    def _say(self, message):
        printf("%s", message, file=self.console)

    def create_shell_id(self):
        """Hand out a new shell id; ids start at 1."""
        shell_id = self._next_shell_id
        self._next_shell_id += 1
        return shell_id

    def _reachable(self, shell_id):
        return (
            entry for entry in self._values
            if entry.alive and (entry.shell_id == shell_id or entry.is_global)
        )

    def declare(self, name, value, shell_id, readonly=False):
        """Create a value, or update the one the shell already owns.

        A read-only value of the same name, local or global, blocks the
        declaration.
        """
        for entry in self._reachable(shell_id):
            if entry.name != name:
                continue
            if entry.readonly:
                self._say("\033[31mWARNING : Redeclare readonly value\033[m\n")
                return DeclareResult.READONLY
            if entry.shell_id == shell_id:
                entry.value = value
                entry.readonly = bool(readonly)
                self._say("\033[32mSuccess redeclare value\033[m\n")
                return DeclareResult.REDECLARED
        if len(name) >= MAX_NAME_LEN:
            raise InvalidArgumentError(f"value name longer than {MAX_NAME_LEN - 1} characters")
        if len(self._values) >= MAX_VALUE_NUM:
            raise NoMemoryError(f"no room for more than {MAX_VALUE_NUM} values")
        self._values.append(EnvValue(name, value, shell_id, bool(readonly)))
        self._say("\033[32mSuccess create value\033[m\n")
        return DeclareResult.CREATED

    def unset(self, name, shell_id):
        """Unset every value named ``name`` the shell can see; return how many.

        Stops at the first read-only match, which is left in place.
        """
        removed = 0
        for entry in self._reachable(shell_id):
            if entry.name != name:
                continue
            if entry.readonly:
                self._say("\033[31mWARNING : Unset readonly value\033[m\n")
                return removed
            entry.alive = False
            removed += 1
            self._say("\033[32mSuccess unset value\033[m\n")
        return removed

    def get(self, name, shell_id):
        """Return the value of ``name``: the shell's own first, then the global one."""
        for owner in (shell_id, GLOBAL_SHELL):
            for entry in self._values:
                if entry.alive and entry.shell_id == owner and entry.name == name:
                    return entry.value
        raise KeyError(name)

    def visible(self, shell_id):
        """Values the shell can see, local and global, in declaration order."""
        return list(self._reachable(shell_id))

    def describe(self, shell_id):
        """One coloured console line for each value the shell can see."""
        lines = []
        for entry in self._reachable(shell_id):
            line = (
                f"\033[36mName : \033[m\033[32m{entry.name}\033[m "
                f"\033[36mValue : \033[m\033[32m{entry.value}\033[m "
            )
            if entry.readonly:
                line += "\033[36mReadOnly : \033[m\033[32mYES\033[m "
            else:
                line += "\033[36mReadOnly : \033[m\033[31mNo\033[m  "
            if entry.is_global:
                line += "\033[36mVisibility : \033[m\033[31mGLOBAL\033[m\n"
            else:
                line += "\033[36mVisibility : \033[m\033[32mLOCAL\033[m \n"
            lines.append(line)
        return lines