from collections.abc import Mapping
from concurrent import futures
from enum import Enum
from pathlib import Path
from threading import Event, Lock
import shutil

from returns.io import IOFailure, IOResultE, IOSuccess, impure_safe
from returns.pipeline import flow
from returns.pointfree import alt, bind
from returns.result import Failure, Success
from returns.unsafe import unsafe_perform_io

from pybuildbot.domain.backends import ToolchainBackend
from pybuildbot.domain.compiler import (
    CompilerContext,
    archive_command,
    compile_command,
    create_cells,
    intermediary_root,
    is_merged_link,
)
from pybuildbot.domain.entities import BuildCell, CommandEntity, ErrorLog
from pybuildbot.domain.environment import EnvironmentResolver, EnvironmentSnapshot
from pybuildbot.domain.toolchain import ToolchainLocator
from pybuildbot.errors import (
    ArtifactPropagationError,
    CellFailure,
    CleanFailure,
    CompilationFailure,
    ConfigurationError,
    LibrarianFailure,
    LinkFailure,
    MissingValueError,
    ProcessCancelledError,
    ToolchainNotFoundError,
)
from pybuildbot.files import copy_directory, create_path
from pybuildbot.process import ProcessRunner, run_process
from pybuildbot.task import CompilerTaskConfig
from pybuildbot.types import (
    Architecture,
    AssemblyType,
    BuildConfiguration,
    CellStatus,
    flag_members,
)

SOURCE_EXTENSIONS = (".c", ".cpp", ".cxx")


def _check_preconditions(task: CompilerTaskConfig) -> tuple[ConfigurationError, ...]:
    errors = []
    if not task.output_directory:
        errors.append(MissingValueError("No output directory specified.", "output_directory"))
    if not task.output_file_name:
        errors.append(MissingValueError("No output file name specified.", "output_file_name"))
    if not task.sources:
        errors.append(MissingValueError("No sources defined.", "sources"))
    if task.output_assembly_type == AssemblyType.UNSPECIFIED:
        errors.append(
            MissingValueError("No output assembly type specified.", "output_assembly_type")
        )
    return tuple(errors)


def _step_failure(failure: type[CellFailure], cell: BuildCell):
    """Maps any error of a step onto the step's own failure, keeping the
    original as its cause."""

    def _inner(error: Exception) -> Exception:
        if isinstance(error, CellFailure):
            return error
        step_failure = failure(cell.configuration, cell.architecture, None)
        step_failure.__cause__ = error
        return step_failure

    return _inner


def remove_dir(d: Path) -> Path:
    if d.exists():
        shutil.rmtree(d)
    return d


def _recreate_dir(d: Path) -> Path:
    d.mkdir(parents=True)
    return d


class BuildMatrixExecutor:
    """Builds one compiler task for every requested configuration and
    architecture and reduces the cells into a single verdict.

    Failures never escape `run` or `clean`; they are collected in `errors`.
    """

    def __init__(
        self,
        task: CompilerTaskConfig,
        backend: ToolchainBackend,
        *,
        environ: Mapping[str, str] | None = None,
        runner: ProcessRunner = run_process,
        timeout: float | None = None,
        jobs: int = 1,
        verbose: bool = False,
    ):
        self.task = task
        self.backend = backend
        self.runner = runner
        self.timeout = timeout
        self.jobs = max(1, jobs)
        self.verbose = verbose

        self.locator = ToolchainLocator(backend, environ)
        self.resolver = EnvironmentResolver(
            backend,
            base_environment=environ,
            runner=runner,
            working_directory=task.working_directory,
            timeout=timeout,
        )

        self.errors = ErrorLog()
        self.attempted = 0
        self.succeeded = 0
        self._counter_lock = Lock()
        self._cancel = Event()

    def cancel(self) -> None:
        """Kills in-flight tool processes; cells not started yet fail."""
        self._cancel.set()

    def _reset(self) -> None:
        self.errors.clear()
        self._cancel.clear()
        with self._counter_lock:
            self.attempted = 0
            self.succeeded = 0

    def run(
        self,
        configurations: BuildConfiguration,
        architectures: Architecture,
        minimum_version: Enum,
    ) -> bool:
        self._reset()

        preconditions = _check_preconditions(self.task)
        if not flag_members(configurations):
            preconditions += (MissingValueError("No build configuration requested.", "configurations"),)
        if not flag_members(architectures):
            preconditions += (MissingValueError("No architecture requested.", "architectures"),)
        unsupported = architectures & ~self.backend.supported_architectures
        if unsupported:
            preconditions += (
                ConfigurationError(
                    f"The {self.backend.name} toolchain does not support {unsupported}.",
                    "architectures",
                    unsupported,
                ),
            )
        if preconditions:
            for error in preconditions:
                self.errors.append(error)
            return False

        registry = self.locator.discover()
        if minimum_version not in registry:
            self.errors.append(ToolchainNotFoundError(minimum_version, registry.keys()))
            return False

        context = CompilerContext(self.task, self.backend, minimum_version)
        cells = create_cells(configurations, architectures)(context)
        install_path = registry[minimum_version]

        if self.jobs == 1:
            for cell in cells:
                self._record(cell, self._build_cell(cell, context, install_path))
        else:
            with futures.ThreadPoolExecutor(max_workers=self.jobs) as executor:
                results = executor.map(
                    lambda cell: self._build_cell(cell, context, install_path), cells
                )
                try:
                    for cell, result in zip(cells, results):
                        self._record(cell, result)
                except KeyboardInterrupt:
                    # workers must not keep the shutdown waiting on compilers
                    self.cancel()
                    raise

        verdict = self.attempted > 0 and self.succeeded == self.attempted
        if verdict and self._should_propagate():
            verdict = self._propagate_headers()
        return verdict

    def _record(self, cell: BuildCell, result: IOResultE[BuildCell]) -> None:
        match unsafe_perform_io(result):
            case Success(_):
                cell.status = CellStatus.SUCCEEDED
                with self._counter_lock:
                    self.attempted += 1
                    self.succeeded += 1
            case Failure(error):
                cell.status = CellStatus.FAILED
                with self._counter_lock:
                    self.attempted += 1
                self.errors.append(error)
                print(f"  [failed] {cell.name}: {error}")

    def _build_cell(
        self, cell: BuildCell, context: CompilerContext, install_path: str
    ) -> IOResultE[BuildCell]:
        first_step = (
            LinkFailure if is_merged_link(self.task.output_assembly_type) else CompilationFailure
        )
        if self._cancel.is_set():
            cancelled = ProcessCancelledError((self.backend.compiler(context.version),))
            return IOFailure(_step_failure(first_step, cell)(cancelled))

        print(f"[pybuildbot] building '{self.task.output_file_name}' ({cell.name})")
        return flow(
            impure_safe(self.resolver.cached)(
                context.version, install_path, cell.architecture, self._cancel
            ),
            alt(_step_failure(first_step, cell)),
            bind(lambda env: self._compile(cell, context, env)),
            bind(lambda env: self._archive(cell, context, env)),
            bind(lambda _: IOSuccess(cell)),
        )

    def _execute(
        self, cmd: CommandEntity, env: EnvironmentSnapshot
    ) -> IOResultE[int]:
        if self.verbose:
            print(" ".join(cmd.command))
        return impure_safe(self.runner)(
            cmd.executable,
            cmd.args,
            cwd=cmd.cwd,
            env=env,
            timeout=self.timeout,
            cancel=self._cancel,
        )

    def _run_step(
        self,
        cell: BuildCell,
        cmd: CommandEntity,
        env: EnvironmentSnapshot,
        failure: type[CellFailure],
    ) -> IOResultE[EnvironmentSnapshot]:
        def _check_exit_code(exit_code: int) -> IOResultE[EnvironmentSnapshot]:
            if exit_code != 0:
                return IOFailure(failure(cell.configuration, cell.architecture, exit_code))
            return IOSuccess(env)

        return flow(
            self._execute(cmd, env),
            alt(_step_failure(failure, cell)),
            bind(_check_exit_code),
        )

    def _compile(
        self, cell: BuildCell, context: CompilerContext, env: EnvironmentSnapshot
    ) -> IOResultE[EnvironmentSnapshot]:
        merged = is_merged_link(self.task.output_assembly_type)
        cell.status = CellStatus.LINKING if merged else CellStatus.COMPILING

        @impure_safe
        def _prepare() -> CommandEntity:
            cell.intermediary_directory.mkdir(parents=True, exist_ok=True)
            create_path(cell.output_path)
            return compile_command(cell)(context)

        failure = LinkFailure if merged else CompilationFailure
        if merged:
            print(f"  [linking] {cell.output_path.name}")
        else:
            print(f"  [compiling] {len(self.task.sources)} sources")
        return flow(
            _prepare(),
            alt(_step_failure(failure, cell)),
            bind(lambda cmd: self._run_step(cell, cmd, env, failure)),
        )

    def _archive(
        self, cell: BuildCell, context: CompilerContext, env: EnvironmentSnapshot
    ) -> IOResultE[EnvironmentSnapshot]:
        if self.task.output_assembly_type != AssemblyType.STATIC_LIBRARY:
            return IOSuccess(env)

        cell.status = CellStatus.LINKING
        print(f"  [archiving] {cell.output_path.name} ({cell.name})")
        return self._run_step(cell, archive_command(cell)(context), env, LibrarianFailure)

    def _should_propagate(self) -> bool:
        return self.task.auto_copy_includes and self.task.output_assembly_type in (
            AssemblyType.SHARED_LIBRARY,
            AssemblyType.STATIC_LIBRARY,
        )

    def _propagate_headers(self) -> bool:
        base = Path(self.task.working_directory or Path.cwd())
        destination = Path(base, self.task.output_directory, "include")
        for include_path in self.task.include_paths:
            source = Path(base, include_path)
            result = impure_safe(copy_directory)(
                source, destination, recursive=True, overwrite=True, excluded=SOURCE_EXTENSIONS
            )
            match unsafe_perform_io(result):
                case Failure(reason):
                    error = ArtifactPropagationError(source, destination)
                    error.__cause__ = reason
                    self.errors.append(error)
                    return False
        return True

    def clean(self) -> bool:
        """Deletes and recreates the intermediary directory."""
        self._reset()

        if not self.task.intermediary_directory:
            self.errors.append(
                MissingValueError("No intermediary directory specified.", "intermediary_directory")
            )
            return False

        directory = intermediary_root(self.task)
        result = flow(
            directory,
            impure_safe(remove_dir),
            bind(impure_safe(_recreate_dir)),
        )
        match unsafe_perform_io(result):
            case Success(_):
                return True
            case Failure(error):
                clean_failure = CleanFailure(directory)
                clean_failure.__cause__ = error
                self.errors.append(clean_failure)
                return False
