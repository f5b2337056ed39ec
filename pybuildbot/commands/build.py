from returns.io import IOResultE

from pybuildbot.config import TaskFile, parse_flags, task_file_load
from pybuildbot.domain.builder import BuildMatrixExecutor
from pybuildbot.domain.entities import ErrorLog
from pybuildbot.types import Architecture, BuildConfiguration


def report(errors: ErrorLog) -> None:
    for error in errors:
        print(f"[pybuildbot] Error: {error}")


def _apply_overrides(task_file: TaskFile, args) -> TaskFile:
    return task_file.with_matrix(
        configurations=parse_flags(BuildConfiguration, args.configurations, "configurations")
        if args.configurations
        else None,
        architectures=parse_flags(Architecture, args.architectures, "architectures")
        if args.architectures
        else None,
        jobs=args.jobs,
    )


def run_build(task_file: TaskFile, verbose: bool = False) -> int:
    executor = BuildMatrixExecutor(
        task_file.task,
        task_file.backend,
        timeout=task_file.timeout,
        jobs=task_file.jobs,
        verbose=verbose,
    )
    verdict = executor.run(
        task_file.configurations, task_file.architectures, task_file.minimum_version
    )
    report(executor.errors)
    print(
        f"[pybuildbot] {executor.succeeded}/{executor.attempted} cells built"
        f" -> {'ok' if verdict else 'failed'}"
    )
    return 0 if verdict else 1


def task_builder(args) -> IOResultE[int]:
    return (
        task_file_load(args.file)
        .map(lambda task_file: _apply_overrides(task_file, args))
        .map(lambda task_file: run_build(task_file, args.verbose))
    )
