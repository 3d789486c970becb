"""Filesystem helpers: fd wrappers, directory listing, globbing and /proc parsing."""

from __future__ import annotations

import enum
import errno
import glob as _glob
import os
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from oomtools.errors import OomdError, system_error
from oomtools.util import split, write_full

CONTROLLERS_FILE = "cgroup.controllers"
SUBTREE_CONTROL_FILE = "cgroup.subtree_control"
PROCS_FILE = "cgroup.procs"
EVENTS_FILE = "cgroup.events"
CGROUP_FREEZE = "cgroup.freeze"
MEM_CURRENT_FILE = "memory.current"
MEM_PRESSURE_FILE = "memory.pressure"
MEM_LOW_FILE = "memory.low"
MEM_HIGH_FILE = "memory.high"
MEM_MAX_FILE = "memory.max"
MEM_HIGH_TMP_FILE = "memory.high.tmp"
MEM_RECLAIM_FILE = "memory.reclaim"
MEM_MIN_FILE = "memory.min"
MEM_STAT_FILE = "memory.stat"
CGROUP_STAT_FILE = "cgroup.stat"
MEM_SWAP_CURRENT_FILE = "memory.swap.current"
MEM_SWAP_MAX_FILE = "memory.swap.max"
MEM_OOM_GROUP_FILE = "memory.oom.group"
IO_PRESSURE_FILE = "io.pressure"
IO_STAT_FILE = "io.stat"
DEVICE_TYPE_DIR = "queue"
DEVICE_TYPE_FILE = "rotational"
OOMD_SYSTEM_PREFER_XATTR = "trusted.oomd_prefer"
OOMD_USER_PREFER_XATTR = "user.oomd_prefer"
OOMD_SYSTEM_AVOID_XATTR = "trusted.oomd_avoid"
OOMD_USER_AVOID_XATTR = "user.oomd_avoid"
PIDS_CURRENT_FILE = "pids.current"
CGROUP_KILL = "cgroup.kill"

_INT_PREFIX_RE = re.compile(r"\s*([+-]?\d+)")
_MEMINFO_RE = re.compile(r"([^:]{1,255}):[ \t]+\s*(\d+)")
_INT32_MIN, _INT32_MAX = -(1 << 31), (1 << 31) - 1
_INT64_MIN, _INT64_MAX = -(1 << 63), (1 << 63) - 1


def _leading_int(text: str, low: int = _INT64_MIN, high: int = _INT64_MAX) -> int:
    match = _INT_PREFIX_RE.match(text)
    if match is None:
        raise ValueError(f"invalid integer: {text!r}")
    value = int(match.group(1))
    if not low <= value <= high:
        raise ValueError(f"integer out of range: {text!r}")
    return value


def _from_os(exc: OSError, *msg) -> OomdError:
    return system_error(exc.errno or errno.EIO, *msg)


@dataclass
class DirEnts:
    """Names of the directories and files found in a directory."""

    dirs: List[str] = field(default_factory=list)
    files: List[str] = field(default_factory=list)


class DirEntFlags(enum.IntFlag):
    """Which kinds of directory entries to report."""

    FILE = 1
    DIR = 1 << 1


class DeviceType(enum.Enum):
    """Kind of block device."""

    SSD = "ssd"
    HDD = "hdd"


class Fd:
    """Owned file descriptor that closes itself."""

    def __init__(self, fd: int = -1) -> None:
        self._fd = fd

    @property
    def fd(self) -> int:
        """The raw descriptor, or -1 once closed."""
        return self._fd

    @classmethod
    def open(cls, path: str, read_only: bool = True) -> "Fd":
        """Open path for reading, or for writing if read_only is False."""
        flags = os.O_RDONLY if read_only else os.O_WRONLY
        try:
            return cls(os.open(path, flags))
        except OSError as exc:
            raise _from_os(exc, path) from exc

    @classmethod
    def openat(cls, dirfd: "DirFd", path: str, read_only: bool = True) -> "Fd":
        """Open path relative to the directory dirfd."""
        flags = os.O_RDONLY if read_only else os.O_WRONLY
        try:
            return Fd(os.open(path, flags, dir_fd=dirfd.fd))
        except OSError as exc:
            raise _from_os(exc, path) from exc

    def inode(self) -> int:
        """Return the inode number of the open file."""
        try:
            return os.fstat(self._fd).st_ino
        except OSError as exc:
            raise _from_os(exc) from exc

    def close(self) -> None:
        """Close the descriptor if it is still open."""
        if self._fd != -1:
            try:
                os.close(self._fd)
            finally:
                self._fd = -1

    def __enter__(self) -> "Fd":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    def __del__(self) -> None:
        if getattr(self, "_fd", -1) != -1:
            try:
                os.close(self._fd)
            except OSError:
                pass
            self._fd = -1


class DirFd(Fd):
    """Owned descriptor of an open directory."""

    @classmethod
    def open(cls, path: str) -> "DirFd":  # type: ignore[override]
        """Open the directory at path."""
        try:
            return cls(os.open(path, os.O_RDONLY | os.O_DIRECTORY))
        except OSError as exc:
            raise _from_os(exc, path) from exc

    def open_child_dir(self, path: str) -> "DirFd":
        """Open a directory relative to this one."""
        try:
            return DirFd(os.open(path, os.O_RDONLY | os.O_DIRECTORY, dir_fd=self.fd))
        except OSError as exc:
            raise _from_os(exc, path) from exc


def is_cgroup_valid(dirfd: DirFd) -> bool:
    """A cgroup is still valid while its cgroup.controllers file exists."""
    return os.access(CONTROLLERS_FILE, os.F_OK, dir_fd=dirfd.fd)


def _collect(scanner, flags: int) -> DirEnts:
    ents = DirEnts()
    for entry in scanner:
        if entry.name.startswith("."):
            continue
        if flags & DirEntFlags.FILE and entry.is_file(follow_symlinks=False):
            ents.files.append(entry.name)
        elif flags & DirEntFlags.DIR and entry.is_dir(follow_symlinks=False):
            ents.dirs.append(entry.name)
    return ents


def read_dir(path: str, flags: int) -> DirEnts:
    """List the requested entry kinds of a directory, skipping dotfiles."""
    try:
        with os.scandir(path) as scanner:
            return _collect(scanner, flags)
    except OSError as exc:
        raise _from_os(exc, path) from exc


def read_dir_at(dirfd: DirFd, flags: int) -> DirEnts:
    """Like read_dir, but for an open directory; dirfd stays reusable."""
    try:
        os.lseek(dirfd.fd, 0, os.SEEK_SET)
        with os.scandir(dirfd.fd) as scanner:
            return _collect(scanner, flags)
    except OSError as exc:
        raise _from_os(exc) from exc


def is_dir(path: str) -> bool:
    """Return True if path names a directory."""
    return os.path.isdir(path)


def _expand_braces(pattern: str) -> List[str]:
    start = pattern.find("{")
    while start != -1:
        depth = 0
        commas: List[int] = []
        for pos in range(start, len(pattern)):
            char = pattern[pos]
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    bounds = [start, *commas, pos]
                    head, tail = pattern[:start], pattern[pos + 1 :]
                    return [
                        expanded
                        for lo, hi in zip(bounds, bounds[1:])
                        for expanded in _expand_braces(head + pattern[lo + 1 : hi] + tail)
                    ]
            elif char == "," and depth == 1:
                commas.append(pos)
        start = pattern.find("{", start + 1)
    return [pattern]


def glob_paths(pattern: str, dir_only: bool = False) -> List[str]:
    """Resolve a wildcarded path (with brace alternatives) to matching paths."""
    result: List[str] = []
    for expanded in _expand_braces(pattern):
        for path in _glob.glob(expanded):
            if dir_only and not is_dir(path):
                continue
            result.append(path)
    return result


def remove_prefix(text: str, prefix: str) -> str:
    """Path-aware prefix removal; a leading './' is stripped as well."""
    if prefix in text:
        if text.startswith("./") and not prefix.startswith("./"):
            text = text[2:]
        text = text[len(prefix) :]
    return text


def _split_lines(data: str, delim: str) -> List[str]:
    parts = data.split(delim)
    if parts and parts[-1] == "":
        parts.pop()
    return parts


def read_file_by_line(path: str, delim: str = "\n") -> List[str]:
    """Read a file and return its contents split on delim."""
    try:
        handle = open(path, "r", newline="", encoding="utf-8", errors="surrogateescape")
    except OSError as exc:
        raise system_error(errno.ENOENT, path) from exc
    with handle:
        try:
            data = handle.read()
        except OSError as exc:
            raise system_error(errno.EINVAL, path) from exc
    return _split_lines(data, delim)


def read_fd_lines(fd: Fd) -> List[str]:
    """Read everything from fd as newline-separated lines, then close it."""
    chunks: List[bytes] = []
    with fd:
        try:
            while True:
                chunk = os.read(fd.fd, 65536)
                if not chunk:
                    break
                chunks.append(chunk)
        except OSError as exc:
            raise _from_os(exc) from exc
    return _split_lines(b"".join(chunks).decode("utf-8", "surrogateescape"), "\n")


def check_exist_at(dirfd: DirFd, name: str) -> None:
    """Raise OomdError unless name exists inside dirfd."""
    if not os.access(name, os.F_OK, dir_fd=dirfd.fd):
        raise system_error(errno.ENOENT, name)


def get_vmstat(path: str = "/proc/vmstat") -> Dict[str, int]:
    """Parse a vmstat-style file of "key value" lines."""
    result: Dict[str, int] = {}
    for line in read_file_by_line(path):
        key, sep, item = line.partition(" ")
        if not sep:
            raise system_error(errno.EINVAL, "Invalid vmstat line format: ", line)
        result[key] = _leading_int(item)
    return result


def get_meminfo(path: str = "/proc/meminfo") -> Dict[str, int]:
    """Parse a meminfo-style file; values are converted from kB to bytes."""
    result: Dict[str, int] = {}
    for line in read_file_by_line(path):
        match = _MEMINFO_RE.match(line)
        if match is not None:
            result[match.group(1)] = int(match.group(2)) * 1024
    return result


def get_cgroup2_mount_point(path: str = "/proc/mounts") -> str:
    """Return the cgroup2 mount point listed in a mounts file, with a trailing '/'."""
    for line in read_file_by_line(path):
        parts = split(line, " ")
        if len(parts) > 2 and parts[2] == "cgroup2":
            return parts[1] + "/"
    raise system_error(errno.EINVAL, path)


def is_under_parent_path(parent_path: str, path: str) -> bool:
    """Return True if path is parent_path or lies somewhere inside it."""
    if not parent_path or not path:
        return False
    parent_parts = split(parent_path, "/")
    path_parts = split(path, "/")
    if len(path_parts) < len(parent_parts):
        return False
    return all(a == b for a, b in zip(parent_parts, path_parts))


def setxattr(path: str, attr: str, val: str) -> None:
    """Set extended attribute attr of path to val."""
    try:
        os.setxattr(path, attr, val.encode())
    except OSError as exc:
        raise _from_os(exc, path) from exc


def getxattr(path: str, attr: str) -> str:
    """Return extended attribute attr of path, or "" if it is not set."""
    try:
        return os.getxattr(path, attr).decode("utf-8", "surrogateescape")
    except OSError as exc:
        if exc.errno == errno.ENODATA:
            return ""
        raise _from_os(exc, path) from exc


def hasxattr_at(dirfd: DirFd, attr: str) -> bool:
    """Return True if the open directory carries extended attribute attr."""
    try:
        os.getxattr(dirfd.fd, attr)
    except OSError as exc:
        if exc.errno in (errno.ENODATA, errno.EOPNOTSUPP):
            return False
        raise _from_os(exc, attr) from exc
    return True


def get_device_type(dev_id: str, path: str = "/sys/dev/block") -> DeviceType:
    """Return whether the block device "<major>:<minor>" is an SSD or an HDD."""
    type_file = f"{path}/{dev_id}/{DEVICE_TYPE_DIR}/{DEVICE_TYPE_FILE}"
    lines = read_file_by_line(type_file)
    if len(lines) == 1:
        if lines[0] == "1":
            return DeviceType.HDD
        if lines[0] == "0":
            return DeviceType.SSD
    raise system_error(errno.EINVAL, type_file)


def get_swappiness(path: str = "/proc/sys/vm/swappiness") -> int:
    """Return the system swappiness."""
    lines = read_fd_lines(Fd.open(path))
    if len(lines) != 1:
        raise system_error(errno.EINVAL, path, " malformed")
    return _leading_int(lines[0], _INT32_MIN, _INT32_MAX)


def _write_control_file(fd: Fd, content: str) -> None:
    with fd:
        try:
            write_full(fd.fd, content.encode())
        except OSError as exc:
            raise _from_os(exc) from exc


def set_swappiness(swappiness: int, path: str = "/proc/sys/vm/swappiness") -> None:
    """Write the system swappiness."""
    _write_control_file(Fd.open(path, False), str(swappiness))