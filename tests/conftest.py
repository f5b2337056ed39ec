from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Callable

import pytest

from pybuildbot.task import CompilerTaskConfig
from pybuildbot.types import AssemblyType

SETUP_EXECUTABLES = ("cmd.exe", "sh")


@dataclass(frozen=True)
class Call:
    executable: str
    args: tuple[str, ...]
    cwd: object
    env: object
    cancel: object = None

    @property
    def command(self) -> tuple[str, ...]:
        return (self.executable, *self.args)


class FakeRunner:
    """Stands in for run_process: records every call and answers from a script.

    `outcome(call)` may return an exit code or raise; setup commands print
    one variable per target architecture.
    """

    def __init__(self, outcome: Callable[[Call], int] | None = None, setup_exit_code: int = 0):
        self.outcome = outcome
        self.setup_exit_code = setup_exit_code
        self.calls: list[Call] = []
        self._lock = Lock()

    def __call__(
        self,
        executable,
        args=(),
        *,
        cwd=None,
        env=None,
        executable_dir=None,
        timeout=None,
        on_stdout=None,
        on_stderr=None,
        cancel=None,
    ) -> int:
        call = Call(executable, tuple(args), cwd, env, cancel)
        with self._lock:
            self.calls.append(call)

        if executable in SETUP_EXECUTABLES:
            architecture = call.args[3] if executable == "cmd.exe" else "any"
            for line in (f"INCLUDE=C:\\include\\{architecture}", "Path=C:\\bin", "not a variable"):
                if on_stdout:
                    on_stdout(line)
            return self.setup_exit_code

        if self.outcome is None:
            return 0
        return self.outcome(call)

    def tool_calls(self, executable: str) -> list[Call]:
        return [c for c in self.calls if c.executable == executable]


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def msvc_environ(tmp_path) -> dict[str, str]:
    """An environment announcing a Visual Studio 2015 install with cl.exe."""
    root = tmp_path / "VS14"
    (root / "VC" / "bin").mkdir(parents=True)
    (root / "VC" / "bin" / "cl.exe").touch()
    (root / "Common7" / "Tools").mkdir(parents=True)
    return {"VS140COMNTOOLS": str(root / "Common7" / "Tools") + "/"}


@pytest.fixture
def project(tmp_path) -> Path:
    """Sources and headers of a small library."""
    directory = tmp_path / "project"
    (directory / "src").mkdir(parents=True)
    (directory / "src" / "a.c").write_text("int a(void) { return 1; }\n")
    (directory / "src" / "b.c").write_text("int b(void) { return 2; }\n")
    (directory / "include" / "nested").mkdir(parents=True)
    (directory / "include" / "a.h").write_text("int a(void);\n")
    (directory / "include" / "nested" / "b.h").write_text("int b(void);\n")
    (directory / "include" / "impl.c").write_text("\n")
    (directory / "out").mkdir()
    return directory


def make_task(project: Path, assembly_type=AssemblyType.SHARED_LIBRARY, **kwargs):
    options = dict(
        strict_paths=True,
        working_directory=project,
        sources=["src/a.c", "src/b.c"],
        include_paths=[project / "include"],
        intermediary_directory=project / "obj",
        output_directory=project / "out",
        output_file_name="demo",
        output_assembly_type=assembly_type,
    )
    options.update(kwargs)
    return CompilerTaskConfig(**options)
