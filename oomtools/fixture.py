"""Describe directory trees in code and materialize them on disk for tests."""

from __future__ import annotations

import errno
import os
import shutil
import tempfile
from typing import Callable, Iterable, Mapping, Optional, Tuple, Union

from oomtools.errors import system_error
from oomtools.util import split

_FIXTURES_DIR_PREFIX = "__oomd_fixtures_"

Materializer = Callable[[str, str], None]


class DirEntry:
    """A file or directory that knows how to create itself under a path."""

    def __init__(self, materializer: Materializer) -> None:
        self._materializer = materializer

    def materialize(self, path: str, name: str) -> None:
        """Create this entry as ``name`` inside ``path``."""
        self._materializer(path, name)


DirEntryPair = Tuple[str, DirEntry]
Entries = Union[Mapping[str, DirEntry], Iterable[DirEntryPair]]


def make_file(name: str, content: str = "") -> DirEntryPair:
    """Return a named entry that materializes as a file holding content."""

    def _write(path: str, entry_name: str) -> None:
        write_checked(os.path.join(path, entry_name), content)

    return name, DirEntry(_write)


def make_dir(name: str, entries: Optional[Entries] = None) -> DirEntryPair:
    """Return a named entry that materializes as a directory with entries."""
    children = dict(entries or {})

    def _create(path: str, entry_name: str) -> None:
        mkdirs_checked(entry_name, path)
        new_path = os.path.join(path, entry_name)
        for child_name, child in children.items():
            child.materialize(new_path, child_name)

    return name, DirEntry(_create)


def materialize(pair: DirEntryPair, path: str = "") -> None:
    """Create the named entry of pair under path."""
    name, entry = pair
    entry.materialize(path, name)


def _temp_dir() -> str:
    for var in ("TMPDIR", "TMP", "TEMP", "TEMPDIR"):
        value = os.environ.get(var)
        if value is not None:
            return value
    return "/tmp"


def mkdtemp_checked() -> str:
    """Create a fresh uniquely named directory in the temp dir and return it."""
    base = _temp_dir()
    try:
        return tempfile.mkdtemp(prefix=_FIXTURES_DIR_PREFIX, dir=base)
    except OSError as exc:
        target = os.path.join(base, _FIXTURES_DIR_PREFIX + "XXXXXX")
        raise system_error(exc.errno or errno.EIO, f"{target}: mkdtemp failed") from exc


def mkdirs_checked(path: str, prefix: str = "") -> None:
    """Create every directory along path, relative to prefix if path is relative."""
    if path.startswith("/"):
        current = "/"
    elif prefix:
        current = prefix + "/"
    else:
        current = ""
    for component in split(path, "/"):
        current += component + "/"
        try:
            os.mkdir(current, 0o777)
        except FileExistsError:
            continue
        except OSError as exc:
            raise system_error(exc.errno or errno.EIO, f"{current}: mkdir failed") from exc


def write_checked(path: str, content: str) -> None:
    """Create or truncate the file at path and write content to it."""
    data = content.encode()
    try:
        fd = os.open(path, os.O_CREAT | os.O_WRONLY | os.O_TRUNC, 0o666)
    except OSError as exc:
        raise system_error(exc.errno or errno.EIO, f"{path}: open failed") from exc
    try:
        view = memoryview(data)
        written = 0
        while written < len(view):
            count = os.write(fd, view[written:])
            if count == 0:
                break
            written += count
    except OSError as exc:
        raise system_error(exc.errno or errno.EIO, f"{path}: write failed") from exc
    finally:
        os.close(fd)
    if written != len(data):
        raise system_error(errno.EIO, f"{path}: write failed: not all bytes are written")


def rmr_checked(path: str) -> None:
    """Remove path and everything below it; a missing path is not an error."""
    try:
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        else:
            os.remove(path)
    except FileNotFoundError:
        return
    except OSError as exc:
        raise system_error(exc.errno or errno.EIO, f"{path}: remove failed") from exc