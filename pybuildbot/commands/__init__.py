from returns.io import IOResultE

from pybuildbot.commands.build import task_builder
from pybuildbot.commands.clean import task_cleaner


def build(args) -> IOResultE[int]:
    return task_builder(args)


def clean(args) -> IOResultE[int]:
    return task_cleaner(args)
