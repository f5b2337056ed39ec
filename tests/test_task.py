import os

import pytest

from pybuildbot.errors import (
    IllegalPathCharactersError,
    NotADirectoryPathError,
    PathNotFoundError,
    RelativePathError,
)
from pybuildbot.task import CompilerTaskConfig
from pybuildbot.types import AssemblyType


def test_defaults():
    task = CompilerTaskConfig()

    assert task.sources == ()
    assert task.working_directory is None
    assert task.intermediary_directory is None
    assert task.output_assembly_type == AssemblyType.UNSPECIFIED
    assert not task.strict_paths


def test_sequences_are_copied(tmp_path):
    flags = ["-O2"]
    task = CompilerTaskConfig(compiler_flags=flags)
    flags.append("-g")

    assert task.compiler_flags == ("-O2",)


def test_lenient_mode_accepts_missing_paths(tmp_path):
    task = CompilerTaskConfig(
        working_directory=tmp_path / "missing",
        sources=["nowhere.c"],
        include_paths=[tmp_path / "missing"],
    )

    assert task.sources == ("nowhere.c",)


def test_missing_working_directory(tmp_path):
    task = CompilerTaskConfig(strict_paths=True)

    with pytest.raises(PathNotFoundError):
        task.working_directory = tmp_path / "missing"


def test_working_directory_must_be_a_directory(tmp_path):
    file = tmp_path / "file.txt"
    file.touch()
    task = CompilerTaskConfig(strict_paths=True)

    with pytest.raises(NotADirectoryPathError):
        task.working_directory = file


def test_rejected_assignment_keeps_previous_value(tmp_path):
    task = CompilerTaskConfig(strict_paths=True, working_directory=tmp_path)

    with pytest.raises(PathNotFoundError):
        task.working_directory = tmp_path / "missing"
    assert task.working_directory == str(tmp_path)


def test_illegal_characters_are_checked_first(tmp_path):
    task = CompilerTaskConfig(strict_paths=True)

    with pytest.raises(IllegalPathCharactersError) as e:
        task.include_paths = [f"{tmp_path}/inc\0lude"]
    assert e.value.field == "include path"


def test_bare_source_resolves_against_working_directory(tmp_path):
    (tmp_path / "main.c").touch()
    task = CompilerTaskConfig(strict_paths=True, working_directory=tmp_path, sources=["main.c"])

    assert task.sources == ("main.c",)
    with pytest.raises(PathNotFoundError):
        task.sources = ["other.c"]
    assert task.sources == ("main.c",)


def test_bare_source_needs_working_directory():
    task = CompilerTaskConfig(strict_paths=True)

    with pytest.raises(PathNotFoundError):
        task.sources = ["main.c"]


def test_relative_source_with_directory(tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "main.c").touch()

    task = CompilerTaskConfig(
        strict_paths=True, working_directory=tmp_path, sources=[os.path.join("src", "main.c")]
    )
    assert len(task.sources) == 1


def test_library_lookup(tmp_path):
    (tmp_path / "foo.lib").touch()
    task = CompilerTaskConfig(
        strict_paths=True, library_paths=[tmp_path], additional_libraries=["foo.lib"]
    )

    assert task.additional_libraries == ("foo.lib",)
    with pytest.raises(PathNotFoundError):
        task.additional_libraries = ["bar.lib"]


def test_library_name_without_library_paths():
    task = CompilerTaskConfig(strict_paths=True)

    with pytest.raises(PathNotFoundError):
        task.additional_libraries = ["foo.lib"]


def test_library_with_directory_part(tmp_path):
    task = CompilerTaskConfig(strict_paths=True)

    with pytest.raises(PathNotFoundError):
        task.additional_libraries = [str(tmp_path / "foo.lib")]
    (tmp_path / "foo.lib").touch()
    task.additional_libraries = [str(tmp_path / "foo.lib")]


def test_intermediary_directory_must_be_absolute():
    task = CompilerTaskConfig()

    with pytest.raises(RelativePathError):
        task.intermediary_directory = "obj"


def test_intermediary_directory_parent_must_exist(tmp_path):
    task = CompilerTaskConfig(strict_paths=True)

    task.intermediary_directory = tmp_path / "obj"
    with pytest.raises(PathNotFoundError):
        task.intermediary_directory = tmp_path / "missing" / "obj"
    assert task.intermediary_directory == str(tmp_path / "obj")


def test_intermediary_directory_can_be_unset(tmp_path):
    task = CompilerTaskConfig(intermediary_directory=tmp_path)

    task.intermediary_directory = ""
    assert task.intermediary_directory is None


def test_output_file_name(tmp_path):
    task = CompilerTaskConfig(strict_paths=True)

    task.output_file_name = "demo"
    with pytest.raises(IllegalPathCharactersError):
        task.output_file_name = "out/demo"
    assert task.output_file_name == "demo"


def test_output_directory(tmp_path):
    task = CompilerTaskConfig(strict_paths=True)

    with pytest.raises(PathNotFoundError):
        task.output_directory = tmp_path / "out"
