from __future__ import annotations
import os
import pathlib
import stat
from dataclasses import dataclass

from sqlimport import charsets
from sqlimport.errors import FileSystemError

DUMP_SUFFIX = ".sql"


@dataclass(frozen=True)
class DumpFile:
    """One dump file on disk plus the codec it will be decoded with."""

    path: pathlib.Path
    encoding: str = "utf-8-sig"

    @property
    def name(self) -> str:
        return self.path.name


def is_dump_file(path: pathlib.Path) -> bool:
    return path.suffix.lower() == DUMP_SUFFIX


def _stat(path: pathlib.Path) -> os.stat_result:
    try:
        return path.stat()
    except FileNotFoundError as exc:
        raise FileSystemError(f"{path} does not exist") from exc
    except OSError as exc:
        raise FileSystemError(f"Cannot stat {path}: {exc.strerror or exc}") from exc


def _expand_dir(root: pathlib.Path) -> list[pathlib.Path]:
    """
    Every dump file below *root*, recursively, in POSIX path order so the
    same directory always imports in the same sequence.
    """
    found: list[pathlib.Path] = []
    try:
        for dirpath, _dirnames, filenames in os.walk(root, onerror=_raise_walk_error):
            for fname in filenames:
                p = pathlib.Path(dirpath) / fname
                if is_dump_file(p) and p.is_file():
                    found.append(p)
    except OSError as exc:
        raise FileSystemError(f"Cannot read directory {root}: {exc.strerror or exc}") from exc
    return sorted(found, key=lambda p: p.as_posix())


def _raise_walk_error(exc: OSError) -> None:
    raise exc


def resolve(*inputs: str | os.PathLike, encoding: str = charsets.DEFAULT_ENCODING) -> list[DumpFile]:
    """
    Expand *inputs* (files and/or directories) into an ordered list of
    :class:`DumpFile`.

    • A **file** is taken as given, whatever its extension.
    • A **directory** contributes every ``*.sql`` file beneath it.
    • A missing input fails the whole call before anything is returned.

    Duplicates are kept: a path named twice is imported twice.
    """
    codec = charsets.validate(encoding)
    out: list[DumpFile] = []
    for raw in inputs:
        path = pathlib.Path(raw).expanduser()
        st = _stat(path)
        if stat.S_ISDIR(st.st_mode):
            out.extend(DumpFile(p.resolve(), codec) for p in _expand_dir(path))
        else:
            out.append(DumpFile(path.resolve(), codec))
    return out

