from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Protocol

from returns.context import RequiresContext

from pybuildbot.domain.backends import ToolchainBackend
from pybuildbot.domain.entities import BuildCell, CommandEntity
from pybuildbot.task import CompilerTaskConfig
from pybuildbot.types import Architecture, AssemblyType, BuildConfiguration, flag_members


class _CompilerConfig(Protocol):
    task: CompilerTaskConfig
    backend: ToolchainBackend
    version: Enum


@dataclass(frozen=True)
class CompilerContext:
    task: CompilerTaskConfig
    backend: ToolchainBackend
    version: Enum


def _absolute(path: str | Path, base: str | None) -> Path:
    path = Path(path)
    if path.is_absolute():
        return path
    return Path(base or Path.cwd(), path).absolute()


def intermediary_root(task: CompilerTaskConfig) -> Path:
    """The configured intermediary directory, or the working directory."""
    return Path(task.intermediary_directory or task.working_directory or Path.cwd())


def _create_cell(
    configuration: BuildConfiguration, architecture: Architecture
) -> RequiresContext[BuildCell, _CompilerConfig]:
    def _inner_create_cell(context: _CompilerConfig) -> BuildCell:
        name = f"{configuration.name} {architecture.name}"
        task = context.task
        return BuildCell(
            configuration=configuration,
            architecture=architecture,
            intermediary_directory=intermediary_root(task) / name,
            output_path=_absolute(
                Path(task.output_directory or ".", name, task.output_file_name or ""),
                task.working_directory,
            ),
            # fresh lists, never the task-level sequences
            compiler_flags=list(task.compiler_flags),
            linker_flags=list(task.linker_flags),
        )

    return RequiresContext(_inner_create_cell)


def _compose_flags(cell: BuildCell) -> RequiresContext[BuildCell, _CompilerConfig]:
    def _inner_compose_flags(context: _CompilerConfig) -> BuildCell:
        backend, task = context.backend, context.task
        machine_cflags, machine_ldflags = backend.machine_flags(cell.architecture)

        cell.compiler_flags.extend(backend.configuration_flags(cell.configuration))
        cell.compiler_flags.extend(backend.intermediary_flags(cell.intermediary_directory))
        cell.compiler_flags.extend(
            backend.include_flag(str(_absolute(path, task.working_directory)))
            for path in task.include_paths
        )
        cell.compiler_flags.extend(machine_cflags)
        cell.linker_flags.extend(machine_ldflags)

        match task.output_assembly_type:
            case AssemblyType.SHARED_LIBRARY:
                shared_cflags, shared_ldflags = backend.shared_library_flags()
                cell.compiler_flags.extend(shared_cflags)
                cell.linker_flags.extend(shared_ldflags)
            case AssemblyType.STATIC_LIBRARY:
                if backend.no_link_flag not in cell.compiler_flags:
                    cell.compiler_flags.append(backend.no_link_flag)
            case AssemblyType.EXECUTABLE:
                pass
            case other:
                raise ValueError(f"No output assembly type for {other}")

        cell.output_path = cell.output_path.with_name(
            cell.output_path.name + backend.extension(task.output_assembly_type)
        )
        return cell

    return RequiresContext(_inner_compose_flags)


def create_cells(
    configurations: BuildConfiguration, architectures: Architecture
) -> RequiresContext[tuple[BuildCell, ...], _CompilerConfig]:
    """One composed cell per (configuration, architecture), in declared order."""
    return RequiresContext(
        lambda context: tuple(
            _create_cell(configuration, architecture)
            .bind(_compose_flags)(context)
            for configuration in flag_members(configurations)
            for architecture in flag_members(architectures)
        )
    )


def is_merged_link(assembly_type: AssemblyType) -> bool:
    return assembly_type in (AssemblyType.SHARED_LIBRARY, AssemblyType.EXECUTABLE)


def _compile_cwd(cell: BuildCell, context: _CompilerConfig) -> Path | None:
    if context.backend.compiles_in_intermediary_directory:
        return cell.intermediary_directory
    return Path(context.task.working_directory) if context.task.working_directory else None


def compile_command(cell: BuildCell) -> RequiresContext[CommandEntity, _CompilerConfig]:
    """The compiler invocation of a cell; merged with the link step unless
    the cell builds a static library."""

    def _inner_compile_command(context: _CompilerConfig) -> CommandEntity:
        backend, task = context.backend, context.task
        sources = tuple(str(_absolute(s, task.working_directory)) for s in task.sources)
        command = (backend.compiler(context.version), *cell.compiler_flags, *sources)

        if is_merged_link(task.output_assembly_type):
            command = (
                *command,
                *backend.output_flags(cell.output_path),
                *backend.link_separator,
                *cell.linker_flags,
                *(
                    backend.library_path_flag(str(_absolute(p, task.working_directory)))
                    for p in task.library_paths
                ),
                *map(backend.library_flag, task.additional_libraries),
            )

        return CommandEntity(
            command=command,
            output_path=cell.output_path
            if is_merged_link(task.output_assembly_type)
            else cell.intermediary_directory,
            cwd=_compile_cwd(cell, context),
        )

    return RequiresContext(_inner_compile_command)


def object_files(cell: BuildCell, suffix: str) -> tuple[Path, ...]:
    return tuple(sorted(cell.intermediary_directory.glob(f"*{suffix}")))


def archive_command(
    cell: BuildCell, objects: Iterable[Path] | None = None
) -> RequiresContext[CommandEntity, _CompilerConfig]:
    """Archives the cell's object files into a static library"""

    def _inner_archive_command(context: _CompilerConfig) -> CommandEntity:
        backend, task = context.backend, context.task
        return CommandEntity(
            command=backend.archive_command(
                cell.output_path,
                object_files(cell, backend.object_suffix) if objects is None else objects,
                (str(_absolute(p, task.working_directory)) for p in task.library_paths),
            ),
            output_path=cell.output_path,
            cwd=_compile_cwd(cell, context),
        )

    return RequiresContext(_inner_archive_command)
