from threading import Event, Timer
import os
import sys
import time

import pytest

from pybuildbot.errors import (
    ProcessCancelledError,
    ProcessInvocationError,
    ProcessTimeoutError,
)
from pybuildbot.process import merge_environment, run_process


def python(code: str, **kwargs) -> tuple[int, list[str], list[str]]:
    stdout: list[str] = []
    stderr: list[str] = []
    exit_code = run_process(
        sys.executable,
        ("-c", code),
        on_stdout=stdout.append,
        on_stderr=stderr.append,
        **kwargs,
    )
    return exit_code, stdout, stderr


def test_streams_lines():
    exit_code, stdout, stderr = python(
        "import sys; print('one'); print('two'); print('oops', file=sys.stderr)"
    )

    assert exit_code == 0
    assert stdout == ["one", "two"]
    assert stderr == ["oops"]


def test_returns_exit_code():
    exit_code, _, _ = python("import sys; sys.exit(3)")

    assert exit_code == 3


def test_environment_is_layered_over_the_current_one():
    _, stdout, _ = python(
        "import os; print(os.environ['PYBUILDBOT_TEST']); print('PATH' in os.environ)",
        env={"PYBUILDBOT_TEST": "value"},
    )

    assert stdout == ["value", "True"]


def test_working_directory(tmp_path):
    _, stdout, _ = python("import os; print(os.getcwd())", cwd=tmp_path)

    assert stdout == [str(tmp_path.resolve())] or stdout == [str(tmp_path)]


def test_echoes_to_console_without_callbacks(capsys):
    assert run_process(sys.executable, ("-c", "print('hello')")) == 0

    assert "hello" in capsys.readouterr().out


def test_missing_executable():
    with pytest.raises(ProcessInvocationError):
        run_process("pybuildbot-no-such-tool")


def test_missing_executable_in_directory(tmp_path):
    with pytest.raises(ProcessInvocationError):
        run_process("tool", executable_dir=tmp_path)


def test_timeout_kills_the_process():
    with pytest.raises(ProcessTimeoutError) as e:
        python("import time; time.sleep(30)", timeout=0.5)
    assert e.value.timeout == 0.5


def test_cancel_kills_the_process():
    cancel = Event()
    timer = Timer(0.3, cancel.set)
    timer.start()
    try:
        with pytest.raises(ProcessCancelledError):
            python("import time; time.sleep(30)", cancel=cancel)
    finally:
        timer.cancel()


def test_merge_environment_keeps_existing_spelling(monkeypatch):
    monkeypatch.setenv("PyBuildBot_Var", "old")

    merged = merge_environment({"PYBUILDBOT_VAR": "new"})

    matches = [key for key in merged if key.upper() == "PYBUILDBOT_VAR"]
    assert len(matches) == 1
    assert merged[matches[0]] == "new"


@pytest.mark.skipif(os.name == "nt", reason="uses a POSIX shell")
def test_timeout_kills_grandchildren(tmp_path):
    marker = tmp_path / "survived"
    started = time.monotonic()

    with pytest.raises(ProcessTimeoutError):
        run_process(
            "sh",
            ("-c", f"sleep 3; touch '{marker}'"),
            timeout=0.3,
            on_stdout=lambda line: None,
        )

    assert time.monotonic() - started < 2.5
    time.sleep(3.5)
    assert not marker.exists()


@pytest.mark.skipif(os.name == "nt", reason="uses a POSIX shell")
def test_cancel_kills_grandchildren():
    cancel = Event()
    timer = Timer(0.3, cancel.set)
    started = time.monotonic()
    timer.start()
    try:
        with pytest.raises(ProcessCancelledError):
            run_process("sh", ("-c", "sleep 3; echo done"), cancel=cancel)
    finally:
        timer.cancel()

    assert time.monotonic() - started < 2.5
