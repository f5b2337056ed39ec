from dataclasses import dataclass, field
from pathlib import Path
from threading import Lock
from typing import Iterator

from pybuildbot.errors import BuildBotError
from pybuildbot.types import Architecture, BuildConfiguration, CellStatus, Cmd


@dataclass(frozen=True)
class CommandEntity:
    """One tool invocation: what to run, where, and what it produces."""

    command: Cmd
    output_path: Path
    cwd: Path | None = None

    @property
    def executable(self) -> str:
        return self.command[0]

    @property
    def args(self) -> Cmd:
        return self.command[1:]


@dataclass
class BuildCell:
    configuration: BuildConfiguration
    architecture: Architecture
    intermediary_directory: Path
    output_path: Path
    compiler_flags: list[str] = field(default_factory=list)
    linker_flags: list[str] = field(default_factory=list)
    status: CellStatus = CellStatus.PENDING

    @property
    def name(self) -> str:
        return f"{self.configuration.name} {self.architecture.name}"


class ErrorLog:
    """Ordered, append-only record of the failures of one run or clean."""

    def __init__(self) -> None:
        self._entries: list[BuildBotError] = []
        self._lock = Lock()

    def append(self, error: BuildBotError) -> None:
        with self._lock:
            self._entries.append(error)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    @property
    def entries(self) -> tuple[BuildBotError, ...]:
        with self._lock:
            return tuple(self._entries)

    def __iter__(self) -> Iterator[BuildBotError]:
        return iter(self.entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __bool__(self) -> bool:
        return len(self) > 0
