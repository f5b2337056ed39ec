from returns.io import IOResultE

from pybuildbot.commands.build import report
from pybuildbot.config import TaskFile, task_file_load
from pybuildbot.domain.builder import BuildMatrixExecutor


def run_clean(task_file: TaskFile) -> int:
    executor = BuildMatrixExecutor(task_file.task, task_file.backend)
    if executor.clean():
        print(f"[pybuildbot] cleaned '{task_file.task.intermediary_directory}'")
        return 0
    report(executor.errors)
    return 1


def task_cleaner(args) -> IOResultE[int]:
    return task_file_load(args.file).map(run_clean)
