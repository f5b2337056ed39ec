from pathlib import Path
from typing import Any, Sequence


class BuildBotError(Exception):
    """Base class of every error pybuildbot records or raises."""


class ConfigurationError(BuildBotError):
    def __init__(self, message: str, field: str | None = None, value: Any = None):
        super().__init__(message)
        self.field = field
        self.value = value


class MissingValueError(ConfigurationError):
    pass


class PathNotFoundError(ConfigurationError):
    pass


class NotADirectoryPathError(ConfigurationError):
    pass


class IllegalPathCharactersError(ConfigurationError):
    pass


class RelativePathError(ConfigurationError):
    pass


class ToolchainNotFoundError(BuildBotError):
    def __init__(self, minimum_version, available: Sequence = ()):
        super().__init__(
            f"An installation meeting the minimum required version of "
            f"{minimum_version.name} could not be found."
        )
        self.minimum_version = minimum_version
        self.available = tuple(available)


class InvalidArchitectureSelection(BuildBotError, ValueError):
    def __init__(self, architecture):
        super().__init__(
            f"One and only one architecture flag must be set, got {architecture!r}."
        )
        self.architecture = architecture


class EnvironmentCaptureError(BuildBotError):
    def __init__(self, architecture, install_path: str | Path, exit_code: int | None):
        super().__init__(
            f"Loading the toolchain environment for {architecture.name} from "
            f"'{install_path}' failed (exit code {exit_code})."
        )
        self.architecture = architecture
        self.install_path = str(install_path)
        self.exit_code = exit_code


class ProcessError(BuildBotError):
    def __init__(self, message: str, command: Sequence[str]):
        super().__init__(message)
        self.command = tuple(command)


class ProcessInvocationError(ProcessError):
    def __init__(self, command: Sequence[str], reason: str = "not found"):
        super().__init__(f"Command '{command[0]}' could not be started: {reason}", command)


class ProcessTimeoutError(ProcessError):
    def __init__(self, command: Sequence[str], timeout: float):
        super().__init__(
            f"Command '{command[0]}' did not finish within {timeout} seconds", command
        )
        self.timeout = timeout


class ProcessCancelledError(ProcessError):
    def __init__(self, command: Sequence[str]):
        super().__init__(f"Command '{command[0]}' was cancelled", command)


class CellFailure(BuildBotError):
    """A build step of one (configuration, architecture) cell failed."""

    step = "build"

    def __init__(self, configuration, architecture, exit_code: int | None):
        super().__init__(
            f"{self.step} failed for '{configuration.name} {architecture.name}' "
            f"(exit code {exit_code})"
        )
        self.configuration = configuration
        self.architecture = architecture
        self.exit_code = exit_code


class CompilationFailure(CellFailure):
    step = "compilation"


class LinkFailure(CellFailure):
    step = "compile+link"


class LibrarianFailure(CellFailure):
    step = "archiving"


class CleanFailure(BuildBotError):
    def __init__(self, directory: str | Path):
        super().__init__(f"Failed to run clean action on '{directory}'.")
        self.directory = str(directory)


class ArtifactPropagationError(BuildBotError):
    def __init__(self, source: str | Path, destination: str | Path):
        super().__init__(f"Copying headers from '{source}' to '{destination}' failed.")
        self.source = str(source)
        self.destination = str(destination)
