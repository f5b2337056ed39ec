from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from threading import Event, Thread
from typing import IO, Protocol
import os
import shutil
import signal
import subprocess
import sys
import time

from pybuildbot.errors import (
    ProcessCancelledError,
    ProcessInvocationError,
    ProcessTimeoutError,
)

LineCallback = Callable[[str], None]

_POLL_INTERVAL = 0.05
_READER_GRACE = 2.0


class ProcessRunner(Protocol):
    def __call__(
        self,
        executable: str,
        args: Iterable[str] = (),
        *,
        cwd: Path | str | None = None,
        env: Mapping[str, str] | None = None,
        executable_dir: Path | str | None = None,
        timeout: float | None = None,
        on_stdout: LineCallback | None = None,
        on_stderr: LineCallback | None = None,
        cancel: Event | None = None,
    ) -> int:
        ...


def _echo_stdout(line: str) -> None:
    print(line, file=sys.stdout)


def _echo_stderr(line: str) -> None:
    print(line, file=sys.stderr)


def merge_environment(env: Mapping[str, str] | None) -> dict[str, str]:
    """The current process environment overridden by `env`."""
    merged = os.environ.copy()
    if env:
        upper = {key.upper(): key for key in merged}
        for key, value in env.items():
            # an existing entry keeps its spelling ("Path" vs "PATH")
            merged[upper.get(key.upper(), key)] = value
    return merged


def _search_path(env: Mapping[str, str]) -> str | None:
    for key, value in env.items():
        if key.upper() == "PATH":
            return value
    return None


def resolve_executable(
    executable: str,
    env: Mapping[str, str],
    executable_dir: Path | str | None = None,
) -> str:
    if executable_dir:
        path = Path(executable_dir, executable)
        if not path.is_file():
            raise ProcessInvocationError((str(path),), "no such file")
        return str(path)
    found = shutil.which(executable, path=_search_path(env))
    if found is None:
        raise ProcessInvocationError((executable,), "not found on the search path")
    return found


def _pump(stream: IO[str], callback: LineCallback) -> None:
    with stream:
        for line in iter(stream.readline, ""):
            callback(line.rstrip("\r\n"))


def _new_process_group() -> dict:
    if os.name == "nt":
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    return {"start_new_session": True}


def _terminate(process: subprocess.Popen) -> None:
    """Kills the child together with every process it started."""
    if os.name == "nt":
        subprocess.run(
            ("taskkill", "/T", "/F", "/PID", str(process.pid)),
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    else:
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
    if process.poll() is None:
        process.kill()
    process.wait()


def run_process(
    executable: str,
    args: Iterable[str] = (),
    *,
    cwd: Path | str | None = None,
    env: Mapping[str, str] | None = None,
    executable_dir: Path | str | None = None,
    timeout: float | None = None,
    on_stdout: LineCallback | None = None,
    on_stderr: LineCallback | None = None,
    cancel: Event | None = None,
) -> int:
    """Runs one external program to completion and returns its exit code.

    `env` is layered over the current environment. Output is handed to the
    callbacks one line at a time while the program runs; without callbacks
    it is echoed to the console. When `timeout` elapses or `cancel` is set
    the child and everything it started are killed before the corresponding
    error is raised.
    """
    merged_env = merge_environment(env)
    command = (
        resolve_executable(executable, merged_env, executable_dir),
        *map(str, args),
    )

    try:
        process = subprocess.Popen(
            command,
            cwd=str(cwd) if cwd else None,
            env=merged_env,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
            bufsize=1,
            **_new_process_group(),
        )
    except OSError as e:
        raise ProcessInvocationError(command, e.strerror or str(e)) from e

    readers = (
        Thread(target=_pump, args=(process.stdout, on_stdout or _echo_stdout), daemon=True),
        Thread(target=_pump, args=(process.stderr, on_stderr or _echo_stderr), daemon=True),
    )
    for reader in readers:
        reader.start()

    deadline = None if timeout is None else time.monotonic() + timeout
    killed = False
    try:
        while True:
            try:
                process.wait(timeout=_POLL_INTERVAL)
                break
            except subprocess.TimeoutExpired:
                pass
            if cancel is not None and cancel.is_set():
                killed = True
                _terminate(process)
                raise ProcessCancelledError(command)
            if deadline is not None and time.monotonic() >= deadline:
                killed = True
                _terminate(process)
                raise ProcessTimeoutError(command, timeout)
    except BaseException:
        if process.poll() is None:
            killed = True
            _terminate(process)
        raise
    finally:
        for reader in readers:
            # a killed tree may leave a pipe open in a process we cannot reach
            reader.join(_READER_GRACE if killed else None)

    return process.returncode
