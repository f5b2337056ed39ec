from collections.abc import Iterable, Iterator, Mapping
from enum import Enum
from pathlib import Path
from threading import Event, Lock
import os

from pybuildbot.domain.backends import ToolchainBackend
from pybuildbot.errors import (
    EnvironmentCaptureError,
    InvalidArchitectureSelection,
    ProcessError,
)
from pybuildbot.process import ProcessRunner, run_process
from pybuildbot.types import Architecture, flag_members


class EnvironmentSnapshot(Mapping[str, str]):
    """Immutable environment with case-insensitive variable names.

    Each entry keeps the spelling it was first added with.
    """

    def __init__(self, variables: Mapping[str, str] | Iterable[tuple[str, str]] = ()):
        items = variables.items() if isinstance(variables, Mapping) else variables
        self._entries: dict[str, tuple[str, str]] = {}
        for name, value in items:
            self._set(name, value)

    def _set(self, name: str, value: str) -> None:
        key = name.upper()
        original = self._entries.get(key, (name, value))[0]
        self._entries[key] = (original, value)

    def __getitem__(self, name: str) -> str:
        return self._entries[name.upper()][1]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.upper() in self._entries

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EnvironmentSnapshot):
            return NotImplemented
        return self._entries == other._entries

    def __hash__(self):
        return hash(frozenset(self._entries.items()))

    def __repr__(self) -> str:
        return f"EnvironmentSnapshot({len(self)} variables)"

    def merge(self, variables: Iterable[tuple[str, str]]) -> "EnvironmentSnapshot":
        """A new snapshot where `variables` override or extend this one."""
        merged = EnvironmentSnapshot()
        merged._entries = dict(self._entries)
        for name, value in variables:
            merged._set(name, value)
        return merged


def parse_environment_dump(text: str | Iterable[str]) -> tuple[tuple[str, str], ...]:
    """Extracts NAME=VALUE pairs from the output of `SET` / `env`.

    Lines are split on the first "="; lines without one, or with a blank
    name, are skipped.
    """
    lines = text.splitlines() if isinstance(text, str) else text
    pairs = []
    for line in lines:
        name, sep, value = line.rstrip("\r\n").partition("=")
        if not sep or not name.strip():
            continue
        pairs.append((name, value))
    return tuple(pairs)


def single_architecture(architecture: Architecture) -> Architecture:
    if not isinstance(architecture, Architecture) or len(flag_members(architecture)) != 1:
        raise InvalidArchitectureSelection(architecture)
    return architecture


class EnvironmentResolver:
    """Captures the environment a toolchain needs for one target architecture.

    The toolchain's setup script is run through a shell which then prints
    its variable table; the printed variables are layered over the base
    environment. Results are cached per (version, architecture).
    """

    def __init__(
        self,
        backend: ToolchainBackend,
        base_environment: Mapping[str, str] | None = None,
        runner: ProcessRunner = run_process,
        working_directory: str | Path | None = None,
        timeout: float | None = None,
    ):
        self.backend = backend
        self.base_environment = EnvironmentSnapshot(
            os.environ if base_environment is None else base_environment
        )
        self.runner = runner
        self.working_directory = working_directory
        self.timeout = timeout
        self._cache: dict[tuple[Enum, Architecture], EnvironmentSnapshot] = {}
        self._key_locks: dict[tuple[Enum, Architecture], Lock] = {}
        self._lock = Lock()

    def resolve(
        self, install_path: str, architecture: Architecture, cancel: Event | None = None
    ) -> EnvironmentSnapshot:
        architecture = single_architecture(architecture)

        stdout: list[str] = []
        stderr: list[str] = []
        executable, *args = self.backend.setup_command(install_path, architecture)
        try:
            exit_code = self.runner(
                executable,
                args,
                cwd=self.working_directory,
                env=self.base_environment,
                timeout=self.timeout,
                on_stdout=stdout.append,
                on_stderr=stderr.append,
                cancel=cancel,
            )
        except ProcessError as e:
            raise EnvironmentCaptureError(architecture, install_path, None) from e

        if exit_code != 0:
            raise EnvironmentCaptureError(architecture, install_path, exit_code)

        return self.base_environment.merge(parse_environment_dump(stdout))

    def cached(
        self,
        version: Enum,
        install_path: str,
        architecture: Architecture,
        cancel: Event | None = None,
    ) -> EnvironmentSnapshot:
        key = (version, single_architecture(architecture))
        with self._lock:
            key_lock = self._key_locks.setdefault(key, Lock())
        # one capture per key; different architectures capture concurrently
        with key_lock:
            if key not in self._cache:
                self._cache[key] = self.resolve(install_path, architecture, cancel)
            return self._cache[key]
