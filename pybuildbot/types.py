from enum import Enum, Flag
from typing import Literal

Args = tuple[str, ...]
Cmd = tuple[str, ...]

Action = Literal["build", "clean"]
BackendName = Literal["msvc", "gcc"]


class Architecture(Flag):
    x86 = 1
    x64 = 2


class BuildConfiguration(Flag):
    Debug = 1
    Release = 2


class AssemblyType(Enum):
    UNSPECIFIED = "unspecified"
    SHARED_LIBRARY = "shared"
    STATIC_LIBRARY = "static"
    EXECUTABLE = "exe"


class CellStatus(Enum):
    PENDING = "pending"
    COMPILING = "compiling"
    LINKING = "linking"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def flag_members(value: Flag) -> tuple[Flag, ...]:
    """Single-bit members set in `value`, in declaration order."""
    return tuple(member for member in type(value) if member in value)
