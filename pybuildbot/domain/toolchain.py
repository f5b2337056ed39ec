from collections.abc import Iterable, Mapping
from enum import Enum
from types import MappingProxyType
import os

from pybuildbot.domain.backends import ToolchainBackend
from pybuildbot.domain.environment import EnvironmentSnapshot

ToolchainRegistry = Mapping[Enum, str]


class ToolchainLocator:
    """Finds which versions of a toolchain are installed, and where."""

    def __init__(self, backend: ToolchainBackend, environ: Mapping[str, str] | None = None):
        self.backend = backend
        self.environ = environ

    def discover(self, candidate_versions: Iterable[Enum] | None = None) -> ToolchainRegistry:
        # looked up on every call, installs can change between runs
        environ = EnvironmentSnapshot(os.environ if self.environ is None else self.environ)
        versions = self.backend.versions if candidate_versions is None else candidate_versions

        registry: dict[Enum, str] = {}
        for version in versions:
            install_path = self.backend.probe(version, environ)
            if install_path:
                registry[version] = install_path
        return MappingProxyType(registry)
