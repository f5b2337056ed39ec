from dataclasses import dataclass, replace
from enum import Enum, Flag
from functools import reduce
from pathlib import Path
from typing import Literal, TypedDict

from returns.io import impure_safe
import toml

from pybuildbot.domain.backends import ToolchainBackend, get_backend
from pybuildbot.errors import ConfigurationError, MissingValueError
from pybuildbot.task import CompilerTaskConfig
from pybuildbot.types import Architecture, AssemblyType, BackendName, BuildConfiguration

DEFAULT_TASK_FILE = "pybuildbot.toml"


class TaskSection(TypedDict, total=False):
    backend: BackendName
    minimum_version: str
    configurations: list[str]
    architectures: list[str]
    jobs: int
    timeout: float


class CompilerSection(TypedDict, total=False):
    strict_paths: bool
    working_directory: str
    sources: list[str]
    include_paths: list[str]
    library_paths: list[str]
    libraries: list[str]
    cflags: list[str]
    ldflags: list[str]
    intermediary_directory: str
    output_directory: str
    output_file_name: str
    output_type: Literal["shared", "static", "exe"]
    auto_copy_includes: bool


class Config(TypedDict):
    task: TaskSection
    compiler: CompilerSection


@dataclass(frozen=True)
class TaskFile:
    """A loaded task file: the compilation request plus the matrix to build."""

    task: CompilerTaskConfig
    backend: ToolchainBackend
    minimum_version: Enum
    configurations: BuildConfiguration
    architectures: Architecture
    jobs: int = 1
    timeout: float | None = None

    def with_matrix(
        self,
        configurations: BuildConfiguration | None = None,
        architectures: Architecture | None = None,
        jobs: int | None = None,
    ) -> "TaskFile":
        return replace(
            self,
            configurations=configurations or self.configurations,
            architectures=architectures or self.architectures,
            jobs=jobs or self.jobs,
        )


def config_load(filename: Path) -> Config:
    with filename.open("r") as f:
        config = toml.load(f)
    return Config(task=config.get("task", {}), compiler=config.get("compiler", {}))  # type: ignore


def parse_flags(flag_type: type[Flag], names: list[str], field: str) -> Flag:
    """`["Debug", "release"]` -> `BuildConfiguration.Debug | BuildConfiguration.Release`"""
    members = {member.name.lower(): member for member in flag_type}
    try:
        return reduce(
            lambda acc, name: acc | members[name.lower()], names, flag_type(0)
        )
    except KeyError as e:
        raise ConfigurationError(f"Unknown {field} value {e.args[0]!r}", field, names) from None


def _version(backend: ToolchainBackend, name: str | None) -> Enum:
    if not name:
        raise MissingValueError("No minimum toolchain version specified.", "minimum_version")
    for version in backend.versions:
        if str(name).lower() in (version.name.lower(), str(version.value)):
            return version
    raise ConfigurationError(
        f"Unknown {backend.name} version {name!r}", "minimum_version", name
    )


def _resolve(base: Path, value: str) -> str:
    return str(Path(base, value))


def _resolve_library(base: Path, value: str) -> str:
    # bare names are looked up in the library paths
    if Path(value).name == value:
        return value
    return _resolve(base, value)


def _compiler_task(compiler: CompilerSection, base: Path) -> CompilerTaskConfig:
    try:
        output_type = AssemblyType(compiler.get("output_type", AssemblyType.UNSPECIFIED.value))
    except ValueError:
        raise ConfigurationError(
            f"Unknown output type {compiler.get('output_type')!r}",
            "output_type",
            compiler.get("output_type"),
        ) from None

    intermediary = compiler.get("intermediary_directory")
    output_directory = compiler.get("output_directory")
    return CompilerTaskConfig(
        strict_paths=compiler.get("strict_paths", False),
        working_directory=_resolve(base, compiler.get("working_directory", ".")),
        include_paths=[_resolve(base, p) for p in compiler.get("include_paths", [])],
        library_paths=[_resolve(base, p) for p in compiler.get("library_paths", [])],
        additional_libraries=[_resolve_library(base, l) for l in compiler.get("libraries", [])],
        sources=[_resolve(base, s) for s in compiler.get("sources", [])],
        compiler_flags=compiler.get("cflags", []),
        linker_flags=compiler.get("ldflags", []),
        intermediary_directory=_resolve(base, intermediary) if intermediary else None,
        output_directory=_resolve(base, output_directory) if output_directory else None,
        output_file_name=compiler.get("output_file_name"),
        output_assembly_type=output_type,
        auto_copy_includes=compiler.get("auto_copy_includes", False),
    )


def task_file_from_config(config: Config, base: Path) -> TaskFile:
    task = config["task"]
    try:
        backend = get_backend(task.get("backend", "msvc"))
    except ValueError as e:
        raise ConfigurationError(str(e), "backend", task.get("backend")) from None

    return TaskFile(
        task=_compiler_task(config["compiler"], base.absolute()),
        backend=backend,
        minimum_version=_version(backend, task.get("minimum_version")),
        configurations=parse_flags(
            BuildConfiguration, task.get("configurations", ["Debug", "Release"]), "configurations"
        ),
        architectures=parse_flags(
            Architecture, task.get("architectures", ["x86", "x64"]), "architectures"
        ),
        jobs=task.get("jobs", 1),
        timeout=task.get("timeout"),
    )


@impure_safe
def task_file_load(filename: Path) -> TaskFile:
    return task_file_from_config(config_load(filename), filename.parent)