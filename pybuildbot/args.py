from pathlib import Path
from typing import Protocol
import argparse

from pybuildbot.__version__ import __version__
from pybuildbot.config import DEFAULT_TASK_FILE
from pybuildbot.types import Action, Architecture, BuildConfiguration


class ArgsConfig(Protocol):
    action: Action
    file: Path
    configurations: list[str] | None
    architectures: list[str] | None
    jobs: int | None
    verbose: bool


def args_parse(argv: list[str]) -> ArgsConfig:
    parser = argparse.ArgumentParser(
        prog="pybuildbot",
        description="Builds native C/C++ tasks for every configuration and architecture",
    )
    parser.add_argument("-f", "--file", type=Path, default=Path(DEFAULT_TASK_FILE))
    parser.add_argument(
        "-c",
        "--configuration",
        dest="configurations",
        action="append",
        choices=[c.name for c in BuildConfiguration],
    )
    parser.add_argument(
        "-a",
        "--architecture",
        dest="architectures",
        action="append",
        choices=[a.name for a in Architecture],
    )
    parser.add_argument("-j", "--jobs", type=int, default=None)
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("--version", action="version", version=__version__)

    subparser = parser.add_subparsers(dest="action", required=True)
    subparser.add_parser("build")
    subparser.add_parser("clean")

    return parser.parse_args(argv)  # type: ignore
