from collections.abc import Iterable, Mapping
from enum import Enum
from pathlib import Path
from typing import Protocol
import os
import platform
import shutil

from pybuildbot.types import Architecture, Args, AssemblyType, BuildConfiguration, Cmd


class MSVCVersion(Enum):
    v11 = 11  # Visual Studio 2012
    v12 = 12  # Visual Studio 2013
    v14 = 14  # Visual Studio 2015


class GCCVersion(Enum):
    gcc9 = 9
    gcc10 = 10
    gcc11 = 11
    gcc12 = 12
    gcc13 = 13
    gcc14 = 14


class ToolchainBackend(Protocol):
    name: str
    versions: type[Enum]
    supported_architectures: Architecture
    object_suffix: str
    no_link_flag: str
    link_separator: Args
    compiles_in_intermediary_directory: bool

    def probe(self, version: Enum, environ: Mapping[str, str]) -> str | None:
        """Install path of `version`, or None when it is not installed."""
        ...

    def setup_command(self, install_path: str, architecture: Architecture) -> Cmd:
        """Command that runs the environment setup and prints NAME=VALUE lines."""
        ...

    def compiler(self, version: Enum) -> str:
        ...

    def configuration_flags(self, configuration: BuildConfiguration) -> Args:
        ...

    def intermediary_flags(self, directory: Path) -> Args:
        ...

    def include_flag(self, path: str) -> str:
        ...

    def machine_flags(self, architecture: Architecture) -> tuple[Args, Args]:
        """(compiler flags, linker flags) selecting the target machine."""
        ...

    def shared_library_flags(self) -> tuple[Args, Args]:
        ...

    def output_flags(self, output: Path) -> Args:
        ...

    def library_path_flag(self, path: str) -> str:
        ...

    def library_flag(self, library: str) -> str:
        ...

    def extension(self, assembly_type: AssemblyType) -> str:
        ...

    def archive_command(
        self, output: Path, objects: Iterable[Path], library_paths: Iterable[str]
    ) -> Cmd:
        ...


class MSVCBackend:
    name = "msvc"
    versions = MSVCVersion
    supported_architectures = Architecture.x86 | Architecture.x64
    object_suffix = ".obj"
    no_link_flag = "/c"
    link_separator: Args = ("/link",)
    compiles_in_intermediary_directory = False

    DEBUG_FLAGS: Args = ("/Od", "/Zi", "/MDd", "/D_DEBUG")
    RELEASE_FLAGS: Args = ("/O2", "/MD", "/DNDEBUG")

    _EXTENSIONS = {
        AssemblyType.SHARED_LIBRARY: ".dll",
        AssemblyType.STATIC_LIBRARY: ".lib",
        AssemblyType.EXECUTABLE: ".exe",
    }

    def probe(self, version: Enum, environ: Mapping[str, str]) -> str | None:
        # e.g. VS140COMNTOOLS=C:\Program Files (x86)\Microsoft Visual Studio 14.0\Common7\Tools\
        common_tools = environ.get(f"VS{version.value}0COMNTOOLS", "").strip()
        if not common_tools:
            return None

        parts = common_tools.replace("\\", "/").split("/")
        if "Common7" not in parts:
            return None
        root = "/".join(parts[: parts.index("Common7")])

        vc_bin = Path(root, "VC", "bin")
        if not (vc_bin / "cl.exe").is_file():
            return None
        return str(vc_bin)

    def setup_command(self, install_path: str, architecture: Architecture) -> Cmd:
        # vcvarsall.bat lives one level above VC/bin
        vcvars = Path(install_path).parent / "vcvarsall.bat"
        return ("cmd.exe", "/C", "call", str(vcvars), architecture.name, "&&", "SET")

    def compiler(self, version: Enum) -> str:
        return "cl.exe"

    def configuration_flags(self, configuration: BuildConfiguration) -> Args:
        return self.RELEASE_FLAGS if configuration == BuildConfiguration.Release else self.DEBUG_FLAGS

    def intermediary_flags(self, directory: Path) -> Args:
        return (f"/Fo{directory}{os.sep}",)

    def include_flag(self, path: str) -> str:
        return f"/I{path}"

    def machine_flags(self, architecture: Architecture) -> tuple[Args, Args]:
        return (), (f"/MACHINE:{architecture.name}",)

    def shared_library_flags(self) -> tuple[Args, Args]:
        return ("/D_USRDLL", "/D_WINDLL"), ("/DLL",)

    def output_flags(self, output: Path) -> Args:
        return (f"/Fe{output}",)

    def library_path_flag(self, path: str) -> str:
        return f"/LIBPATH:{path}"

    def library_flag(self, library: str) -> str:
        return library

    def extension(self, assembly_type: AssemblyType) -> str:
        return self._EXTENSIONS[assembly_type]

    def archive_command(
        self, output: Path, objects: Iterable[Path], library_paths: Iterable[str]
    ) -> Cmd:
        return (
            "lib.exe",
            f"/OUT:{output}",
            *map(self.library_path_flag, library_paths),
            *map(str, objects),
        )


class GCCBackend:
    name = "gcc"
    versions = GCCVersion
    supported_architectures = Architecture.x86 | Architecture.x64
    object_suffix = ".o"
    no_link_flag = "-c"
    link_separator: Args = ()
    compiles_in_intermediary_directory = True

    DEBUG_FLAGS: Args = (
        "-g",
        "-Wall",
        "-Wextra",
        "-Wpedantic",
        "-Wshadow",
    )
    RELEASE_FLAGS: Args = ("-O2", "-DNDEBUG")

    _MACHINE = {Architecture.x86: "-m32", Architecture.x64: "-m64"}

    def probe(self, version: Enum, environ: Mapping[str, str]) -> str | None:
        search_path = environ.get("PATH")
        if not search_path:
            return None
        found = shutil.which(self.compiler(version), path=search_path)
        return str(Path(found).parent) if found else None

    def setup_command(self, install_path: str, architecture: Architecture) -> Cmd:
        return ("sh", "-c", "env")

    def compiler(self, version: Enum) -> str:
        return f"gcc-{version.value}"

    def configuration_flags(self, configuration: BuildConfiguration) -> Args:
        return self.RELEASE_FLAGS if configuration == BuildConfiguration.Release else self.DEBUG_FLAGS

    def intermediary_flags(self, directory: Path) -> Args:
        return ()

    def include_flag(self, path: str) -> str:
        return f"-I{path}"

    def machine_flags(self, architecture: Architecture) -> tuple[Args, Args]:
        flag = self._MACHINE[architecture]
        return (flag,), (flag,)

    def shared_library_flags(self) -> tuple[Args, Args]:
        return ("-fPIC",), ("-shared",)

    def output_flags(self, output: Path) -> Args:
        return ("-o", str(output))

    def library_path_flag(self, path: str) -> str:
        return f"-L{path}"

    def library_flag(self, library: str) -> str:
        if Path(library).name != library or Path(library).suffix in (".a", ".so", ".dylib"):
            return library
        return f"-l{library}"

    def extension(self, assembly_type: AssemblyType) -> str:
        system = platform.system()
        match assembly_type:
            case AssemblyType.SHARED_LIBRARY:
                return {"Windows": ".dll", "Darwin": ".dylib"}.get(system, ".so")
            case AssemblyType.STATIC_LIBRARY:
                return ".a"
            case AssemblyType.EXECUTABLE:
                return ".exe" if system == "Windows" else ""
            case other:
                raise ValueError(other)

    def archive_command(
        self, output: Path, objects: Iterable[Path], library_paths: Iterable[str]
    ) -> Cmd:
        return ("ar", "rcs", str(output), *map(str, objects))


BACKENDS: dict[str, type] = {
    MSVCBackend.name: MSVCBackend,
    GCCBackend.name: GCCBackend,
}


def get_backend(name: str) -> ToolchainBackend:
    try:
        return BACKENDS[name.lower()]()
    except KeyError:
        raise ValueError(f"Unknown toolchain backend '{name}'") from None
