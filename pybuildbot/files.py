from collections.abc import Iterable
from pathlib import Path
import hashlib
import shutil

HASH_ALGORITHMS = ("md5", "sha1", "sha256", "sha384", "sha512")


def create_path(*args) -> Path:
    """Create path and mkdir's the parents to make sure the directory is valid."""
    path = Path(*args)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def _normalize(entries: Iterable[str] | None) -> frozenset[str] | None:
    if entries is None:
        return None
    return frozenset(entry.lower() for entry in entries)


def _selected(file: Path, included: frozenset[str] | None, excluded: frozenset[str]) -> bool:
    keys = {file.name.lower(), file.suffix.lower()}
    if keys & excluded:
        return False
    return included is None or bool(keys & included)


def copy_directory(
    source: Path,
    destination: Path,
    *,
    recursive: bool = True,
    overwrite: bool = True,
    included: Iterable[str] | None = None,
    excluded: Iterable[str] | None = None,
) -> tuple[Path, ...]:
    """Copies the files of `source` into `destination`.

    `included` and `excluded` hold file extensions (".h") or file names,
    matched case-insensitively at every depth. Returns the copied paths.
    """
    source, destination = Path(source), Path(destination)
    if not source.is_dir():
        raise FileNotFoundError(f"Source does not exist: {source}")

    include_set = _normalize(included)
    exclude_set = _normalize(excluded) or frozenset()

    copied: list[Path] = []
    destination.mkdir(parents=True, exist_ok=True)
    for entry in sorted(source.iterdir()):
        target = destination / entry.name
        if entry.is_dir():
            if recursive:
                copied.extend(
                    copy_directory(
                        entry,
                        target,
                        recursive=recursive,
                        overwrite=overwrite,
                        included=include_set,
                        excluded=exclude_set,
                    )
                )
        elif _selected(entry, include_set, exclude_set):
            if target.exists() and not overwrite:
                continue
            copied.append(Path(shutil.copy2(entry, target)))
    return tuple(copied)


def verify_file_hash(algorithm: str, path: Path, expected: str) -> bool:
    """Compares the hex digest of `path` with `expected`, ignoring case."""
    if algorithm.lower() not in HASH_ALGORITHMS:
        raise ValueError(f"Unsupported hash algorithm: {algorithm}")
    if not str(path).strip():
        raise ValueError("Supplied file path cannot be empty.")
    if not expected.strip():
        raise ValueError("Supplied hash cannot be empty.")

    path = Path(path)
    if not path.is_file():
        return False

    digest = hashlib.new(algorithm.lower())
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest().lower() == expected.strip().lower()
