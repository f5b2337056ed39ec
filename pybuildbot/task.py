from collections.abc import Iterable
from pathlib import Path
import os

from pybuildbot.errors import (
    IllegalPathCharactersError,
    NotADirectoryPathError,
    PathNotFoundError,
    RelativePathError,
)
from pybuildbot.types import AssemblyType

_ILLEGAL_CHARACTERS = frozenset(
    "\0"
    if os.name != "nt"
    else '\0<>"|?*' + "".join(map(chr, range(1, 32)))
)
_ILLEGAL_FILE_NAME_CHARACTERS = _ILLEGAL_CHARACTERS | frozenset("/\\")


def _has_illegal_characters(value: str, illegal=_ILLEGAL_CHARACTERS) -> bool:
    return any(c in illegal for c in value)


def _check_legal(field: str, value: str) -> None:
    if _has_illegal_characters(value):
        raise IllegalPathCharactersError(
            f"Supplied {field} contains illegal path characters: {value!r}", field, value
        )


def _check_directory(field: str, value: str) -> None:
    _check_legal(field, value)
    path = Path(value)
    if not path.exists():
        raise PathNotFoundError(f"Supplied {field} does not exist: {value}", field, value)
    if not path.is_dir():
        raise NotADirectoryPathError(
            f"Supplied {field} does not point to a directory: {value}", field, value
        )


def _has_directory_part(value: str) -> bool:
    return Path(value).name != value


def _find_file(value: str, directories: Iterable[str]) -> Path | None:
    for directory in directories:
        candidate = Path(directory, value)
        if candidate.is_file():
            return candidate
    return None


class CompilerTaskConfig:
    """One compilation request.

    With `strict_paths` every path-valued assignment is checked before it is
    stored; a rejected value leaves the previous one in place. Library search
    paths must be assigned before library names for the strict library check
    to see them.
    """

    def __init__(
        self,
        *,
        strict_paths: bool = False,
        working_directory: str | Path | None = None,
        sources: Iterable[str | Path] = (),
        include_paths: Iterable[str | Path] = (),
        library_paths: Iterable[str | Path] = (),
        additional_libraries: Iterable[str | Path] = (),
        compiler_flags: Iterable[str] = (),
        linker_flags: Iterable[str] = (),
        intermediary_directory: str | Path | None = None,
        output_directory: str | Path | None = None,
        output_file_name: str | None = None,
        output_assembly_type: AssemblyType = AssemblyType.UNSPECIFIED,
        auto_copy_includes: bool = False,
    ):
        self.strict_paths = strict_paths
        self.auto_copy_includes = auto_copy_includes
        self.output_assembly_type = output_assembly_type

        self._working_directory: str | None = None
        self._sources: tuple[str, ...] = ()
        self._include_paths: tuple[str, ...] = ()
        self._library_paths: tuple[str, ...] = ()
        self._additional_libraries: tuple[str, ...] = ()
        self._compiler_flags: tuple[str, ...] = ()
        self._linker_flags: tuple[str, ...] = ()
        self._intermediary_directory: str | None = None
        self._output_directory: str | None = None
        self._output_file_name: str | None = None

        # order matters: sources resolve against the working directory and
        # libraries against the library paths
        self.working_directory = working_directory
        self.include_paths = include_paths
        self.library_paths = library_paths
        self.additional_libraries = additional_libraries
        self.sources = sources
        self.compiler_flags = compiler_flags
        self.linker_flags = linker_flags
        self.intermediary_directory = intermediary_directory
        self.output_directory = output_directory
        self.output_file_name = output_file_name

    def __repr__(self) -> str:
        return (
            f"CompilerTaskConfig(output={self._output_file_name!r}, "
            f"type={self.output_assembly_type.value}, sources={len(self._sources)})"
        )

    @property
    def working_directory(self) -> str | None:
        return self._working_directory

    @working_directory.setter
    def working_directory(self, value: str | Path | None) -> None:
        value = str(value) if value else None
        if value and self.strict_paths:
            _check_directory("working directory", value)
        self._working_directory = value

    @property
    def sources(self) -> tuple[str, ...]:
        return self._sources

    @sources.setter
    def sources(self, value: Iterable[str | Path]) -> None:
        entries = tuple(map(str, value or ()))
        if self.strict_paths:
            for entry in entries:
                self._check_source(entry)
        self._sources = entries

    def _check_source(self, entry: str) -> None:
        _check_legal("source file", entry)
        if _has_directory_part(entry):
            candidates = [Path(entry)]
            if self._working_directory and not Path(entry).is_absolute():
                candidates.append(Path(self._working_directory, entry))
            if not any(c.is_file() for c in candidates):
                raise PathNotFoundError(
                    f"Supplied source file could not be found: {entry}", "sources", entry
                )
            return

        if not self._working_directory:
            raise PathNotFoundError(
                f"Supplied source file could not be found: {entry}. The path is not "
                "absolute and no working directory is set to expand it against.",
                "sources",
                entry,
            )
        if _find_file(entry, (self._working_directory,)) is None:
            raise PathNotFoundError(
                f"Supplied source file could not be found: {entry}", "sources", entry
            )

    @property
    def include_paths(self) -> tuple[str, ...]:
        return self._include_paths

    @include_paths.setter
    def include_paths(self, value: Iterable[str | Path]) -> None:
        entries = tuple(map(str, value or ()))
        if self.strict_paths:
            for entry in entries:
                _check_directory("include path", entry)
        self._include_paths = entries

    @property
    def library_paths(self) -> tuple[str, ...]:
        return self._library_paths

    @library_paths.setter
    def library_paths(self, value: Iterable[str | Path]) -> None:
        entries = tuple(map(str, value or ()))
        if self.strict_paths:
            for entry in entries:
                _check_directory("library path", entry)
        self._library_paths = entries

    @property
    def additional_libraries(self) -> tuple[str, ...]:
        return self._additional_libraries

    @additional_libraries.setter
    def additional_libraries(self, value: Iterable[str | Path]) -> None:
        entries = tuple(map(str, value or ()))
        if self.strict_paths:
            for entry in entries:
                self._check_library(entry)
        self._additional_libraries = entries

    def _check_library(self, entry: str) -> None:
        _check_legal("library", entry)
        if _has_directory_part(entry):
            if not Path(entry).is_file():
                raise PathNotFoundError(
                    f"Supplied library could not be found: {entry}",
                    "additional_libraries",
                    entry,
                )
            return

        if not self._library_paths:
            raise PathNotFoundError(
                f"Supplied library could not be found: {entry}. No library paths are "
                "configured; set library paths before libraries when using strict paths.",
                "additional_libraries",
                entry,
            )
        # the search paths may have vanished since they were assigned
        for directory in self._library_paths:
            _check_directory("library path", directory)
        if _find_file(entry, self._library_paths) is None:
            raise PathNotFoundError(
                f"Supplied library could not be found: {entry}",
                "additional_libraries",
                entry,
            )

    @property
    def compiler_flags(self) -> tuple[str, ...]:
        return self._compiler_flags

    @compiler_flags.setter
    def compiler_flags(self, value: Iterable[str]) -> None:
        self._compiler_flags = tuple(value or ())

    @property
    def linker_flags(self) -> tuple[str, ...]:
        return self._linker_flags

    @linker_flags.setter
    def linker_flags(self, value: Iterable[str]) -> None:
        self._linker_flags = tuple(value or ())

    @property
    def intermediary_directory(self) -> str | None:
        return self._intermediary_directory

    @intermediary_directory.setter
    def intermediary_directory(self, value: str | Path | None) -> None:
        if not value:
            self._intermediary_directory = None
            return
        value = str(value)
        _check_legal("intermediary directory", value)
        # always enforced: clean deletes this directory recursively
        if not Path(value).is_absolute():
            raise RelativePathError(
                f"Intermediary directory must be an absolute path: {value}",
                "intermediary_directory",
                value,
            )
        if self.strict_paths and not Path(value).parent.is_dir():
            raise PathNotFoundError(
                f"Parent of the intermediary directory does not exist: {value}",
                "intermediary_directory",
                value,
            )
        self._intermediary_directory = value

    @property
    def output_directory(self) -> str | None:
        return self._output_directory

    @output_directory.setter
    def output_directory(self, value: str | Path | None) -> None:
        value = str(value) if value else None
        if value and self.strict_paths:
            _check_directory("output directory", value)
        self._output_directory = value

    @property
    def output_file_name(self) -> str | None:
        return self._output_file_name

    @output_file_name.setter
    def output_file_name(self, value: str | None) -> None:
        if value and self.strict_paths and _has_illegal_characters(
            value, _ILLEGAL_FILE_NAME_CHARACTERS
        ):
            raise IllegalPathCharactersError(
                f"Supplied output file name contains illegal characters: {value!r}",
                "output_file_name",
                value,
            )
        self._output_file_name = value or None
