"""Readers and writers for cgroup v2 control files and kernel PSI files."""

from __future__ import annotations

import enum
import errno
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, List, Optional, Union

from oomtools.errors import system_error
from oomtools.fs import (
    CGROUP_FREEZE,
    CGROUP_KILL,
    CGROUP_STAT_FILE,
    CONTROLLERS_FILE,
    EVENTS_FILE,
    IO_PRESSURE_FILE,
    IO_STAT_FILE,
    MEM_CURRENT_FILE,
    MEM_HIGH_FILE,
    MEM_HIGH_TMP_FILE,
    MEM_LOW_FILE,
    MEM_MAX_FILE,
    MEM_MIN_FILE,
    MEM_OOM_GROUP_FILE,
    MEM_PRESSURE_FILE,
    MEM_RECLAIM_FILE,
    MEM_STAT_FILE,
    MEM_SWAP_CURRENT_FILE,
    MEM_SWAP_MAX_FILE,
    OOMD_SYSTEM_AVOID_XATTR,
    OOMD_SYSTEM_PREFER_XATTR,
    OOMD_USER_AVOID_XATTR,
    OOMD_USER_PREFER_XATTR,
    PIDS_CURRENT_FILE,
    PROCS_FILE,
    DirFd,
    Fd,
    get_meminfo,
    hasxattr_at,
    read_fd_lines,
    read_file_by_line,
)
from oomtools.util import split, starts_with, write_full

INT64_MAX = (1 << 63) - 1
_INT32_MIN, _INT32_MAX = -(1 << 31), (1 << 31) - 1
_INT64_MIN = -(1 << 63)

_INT_PREFIX_RE = re.compile(r"\s*([+-]?\d+)")
_MEMSTAT_RE = re.compile(r"\s*(\S+)\s+(\d+)")
_IOSTAT_RE = re.compile(
    r"\s*([+-]?\d+):([+-]?\d+)\s*rbytes=\s*([+-]?\d+)\s*wbytes=\s*([+-]?\d+)"
    r"\s*rios=\s*([+-]?\d+)\s*wios=\s*([+-]?\d+)\s*dbytes=\s*([+-]?\d+)"
    r"\s*dios=\s*([+-]?\d+)"
)


class PressureType(enum.Enum):
    """Which PSI line to read."""

    SOME = "some"
    FULL = "full"


@dataclass
class ResourcePressure:
    """PSI averages over 10, 60 and 300 seconds, plus total stall time."""

    sec_10: float = 0.0
    sec_60: float = 0.0
    sec_300: float = 0.0
    total: Optional[timedelta] = None


@dataclass
class DeviceIOStat:
    """One device's line from io.stat."""

    dev_id: str = ""
    rbytes: int = 0
    wbytes: int = 0
    rios: int = 0
    wios: int = 0
    dbytes: int = 0
    dios: int = 0


class KillPreference(enum.Enum):
    """Kill preference set on a cgroup through extended attributes."""

    PREFER = "prefer"
    NORMAL = "normal"
    AVOID = "avoid"


def _int(text: str, low: int = _INT64_MIN, high: int = INT64_MAX) -> int:
    match = _INT_PREFIX_RE.match(text)
    if match is None:
        raise system_error(errno.EINVAL, f"invalid integer: {text!r}")
    value = int(match.group(1))
    if not low <= value <= high:
        raise system_error(errno.ERANGE, f"integer out of range: {text!r}")
    return value


def _float(text: str) -> float:
    try:
        return float(text)
    except ValueError as exc:
        raise system_error(errno.EINVAL, f"invalid number: {text!r}") from exc


def _lines_at(dirfd: DirFd, name: str) -> List[str]:
    return read_fd_lines(Fd.openat(dirfd, name))


def _first_line(lines: List[str], name: str) -> str:
    if not lines:
        raise system_error(errno.EINVAL, name, " is empty")
    return lines[0]


def _write_at(dirfd: DirFd, name: str, content: str) -> None:
    with Fd.openat(dirfd, name, False) as fd:
        try:
            write_full(fd.fd, content.encode())
        except OSError as exc:
            raise system_error(exc.errno or errno.EIO, name) from exc


def _memstat_like(lines: List[str]) -> Dict[str, int]:
    result: Dict[str, int] = {}
    for line in lines:
        match = _MEMSTAT_RE.match(line)
        if match is not None:
            result[match.group(1)] = int(match.group(2))
    return result


def read_controllers_at(dirfd: DirFd) -> List[str]:
    """Return the controllers enabled for the cgroup."""
    return split(_first_line(_lines_at(dirfd, CONTROLLERS_FILE), CONTROLLERS_FILE), " ")


def get_pids_at(dirfd: DirFd) -> List[int]:
    """Return the pids listed in cgroup.procs."""
    return [_int(line, _INT32_MIN, _INT32_MAX) for line in _lines_at(dirfd, PROCS_FILE)]


def read_is_populated_at(dirfd: DirFd) -> bool:
    """Return the "populated" flag from cgroup.events."""
    for line in _lines_at(dirfd, EVENTS_FILE):
        toks = split(line, " ")
        if len(toks) == 2 and toks[0] == "populated":
            if toks[1] == "1":
                return True
            if toks[1] == "0":
                return False
            raise system_error(errno.EINVAL, EVENTS_FILE)
    raise system_error(errno.EINVAL, EVENTS_FILE)


def read_respressure_from_lines(
    lines: List[str], pressure_type: PressureType = PressureType.FULL
) -> ResourcePressure:
    """Parse PSI lines in either the upstream or the old experimental format."""
    if not lines:
        raise system_error(errno.ENOENT, "pressure file is empty")
    index = 0 if pressure_type is PressureType.SOME else 1
    first = lines[0]
    try:
        if starts_with("some", first) and len(lines) >= 2:
            toks = split(lines[index], " ")
            if toks[0] != pressure_type.value:
                raise system_error(errno.EINVAL, "unexpected pressure line")
            fields = {}
            for key, tok in zip(("avg10", "avg60", "avg300", "total"), toks[1:5]):
                parts = split(tok, "=")
                if parts[0] != key:
                    raise system_error(errno.EINVAL, f"expected {key}")
                fields[key] = parts[1]
            if len(fields) != 4:
                raise system_error(errno.EINVAL, "truncated pressure line")
            return ResourcePressure(
                _float(fields["avg10"]),
                _float(fields["avg60"]),
                _float(fields["avg300"]),
                timedelta(microseconds=_int(fields["total"], 0)),
            )
        if starts_with("aggr", first) and len(lines) >= 3:
            toks = split(lines[index + 1], " ")
            if toks[0] != pressure_type.value:
                raise system_error(errno.EINVAL, "unexpected pressure line")
            return ResourcePressure(
                _float(toks[1]), _float(toks[2]), _float(toks[3]), None
            )
    except IndexError as exc:
        raise system_error(errno.EINVAL, "malformed pressure line") from exc
    raise system_error(errno.EINVAL, "unrecognized pressure format")


def read_root_memcurrent() -> int:
    """Return system-wide memory in use: MemTotal minus MemFree."""
    meminfo = get_meminfo("/proc/meminfo")
    if "MemTotal" not in meminfo or "MemFree" not in meminfo:
        raise system_error(errno.EINVAL, "/proc/meminfo")
    return meminfo["MemTotal"] - meminfo["MemFree"]


def read_memcurrent_at(dirfd: DirFd) -> int:
    """Return memory.current."""
    return _int(_first_line(_lines_at(dirfd, MEM_CURRENT_FILE), MEM_CURRENT_FILE))


def read_root_mempressure(pressure_type: PressureType = PressureType.FULL) -> ResourcePressure:
    """Return system-wide memory pressure."""
    try:
        lines = read_file_by_line("/proc/pressure/memory")
    except OSError:
        lines = read_file_by_line("/proc/mempressure")
    return read_respressure_from_lines(lines, pressure_type)


def read_mempressure_at(
    dirfd: DirFd, pressure_type: PressureType = PressureType.FULL
) -> ResourcePressure:
    """Return the cgroup's memory pressure."""
    return read_respressure_from_lines(_lines_at(dirfd, MEM_PRESSURE_FILE), pressure_type)


def read_min_max_low_high_from_lines(lines: List[str]) -> int:
    """Parse a single-line limit file; "max" means the largest int64."""
    if len(lines) != 1:
        raise system_error(errno.EINVAL, "expected one line")
    if lines[0] == "max":
        return INT64_MAX
    return _int(lines[0])


def read_memhightmp_from_lines(lines: List[str]) -> int:
    """Parse memory.high.tmp ("<value> <duration>") and return the value."""
    if len(lines) != 1:
        raise system_error(errno.ENOENT, "expected one line")
    tokens = split(lines[0], " ")
    if len(tokens) != 2:
        raise system_error(errno.EINVAL, "expected two tokens")
    if tokens[0] == "max":
        return INT64_MAX
    return _int(tokens[0])


def read_memlow_at(dirfd: DirFd) -> int:
    """Return memory.low."""
    return read_min_max_low_high_from_lines(_lines_at(dirfd, MEM_LOW_FILE))


def read_memhigh_at(dirfd: DirFd) -> int:
    """Return memory.high."""
    return read_min_max_low_high_from_lines(_lines_at(dirfd, MEM_HIGH_FILE))


def read_memmax_at(dirfd: DirFd) -> int:
    """Return memory.max."""
    return read_min_max_low_high_from_lines(_lines_at(dirfd, MEM_MAX_FILE))


def read_memhightmp_at(dirfd: DirFd) -> int:
    """Return the value part of memory.high.tmp."""
    return read_memhightmp_from_lines(_lines_at(dirfd, MEM_HIGH_TMP_FILE))


def read_memmin_at(dirfd: DirFd) -> int:
    """Return memory.min."""
    return read_min_max_low_high_from_lines(_lines_at(dirfd, MEM_MIN_FILE))


def read_swap_current_at(dirfd: DirFd) -> int:
    """Return memory.swap.current."""
    lines = _lines_at(dirfd, MEM_SWAP_CURRENT_FILE)
    return _int(_first_line(lines, MEM_SWAP_CURRENT_FILE))


def read_swap_max_at(dirfd: DirFd) -> int:
    """Return memory.swap.max."""
    return read_min_max_low_high_from_lines(_lines_at(dirfd, MEM_SWAP_MAX_FILE))


def read_root_iopressure(pressure_type: PressureType = PressureType.FULL) -> ResourcePressure:
    """Return system-wide IO pressure."""
    return read_respressure_from_lines(read_file_by_line("/proc/pressure/io"), pressure_type)


def read_iopressure_at(
    dirfd: DirFd, pressure_type: PressureType = PressureType.FULL
) -> ResourcePressure:
    """Return the cgroup's IO pressure."""
    return read_respressure_from_lines(_lines_at(dirfd, IO_PRESSURE_FILE), pressure_type)


def read_pids_current_at(dirfd: DirFd) -> int:
    """Return pids.current."""
    return _int(_first_line(_lines_at(dirfd, PIDS_CURRENT_FILE), PIDS_CURRENT_FILE))


def write_memhigh_at(dirfd: DirFd, value: int) -> None:
    """Write memory.high."""
    _write_at(dirfd, MEM_HIGH_FILE, str(value))


def write_memhightmp_at(dirfd: DirFd, value: int, duration: Union[timedelta, int]) -> None:
    """Write memory.high.tmp; duration is a timedelta or microseconds."""
    if isinstance(duration, timedelta):
        micros = duration // timedelta(microseconds=1)
    else:
        micros = int(duration)
    _write_at(dirfd, MEM_HIGH_TMP_FILE, f"{value} {micros}")


def write_mem_reclaim_at(dirfd: DirFd, value: int, swappiness: Optional[int] = None) -> None:
    """Ask the kernel to reclaim value bytes, optionally with a swappiness."""
    content = str(value)
    if swappiness is not None:
        content += f" swappiness={swappiness}"
    _write_at(dirfd, MEM_RECLAIM_FILE, content)


def write_freeze_at(dirfd: DirFd, freeze: int) -> None:
    """Write cgroup.freeze."""
    _write_at(dirfd, CGROUP_FREEZE, str(int(freeze)))


def write_kill_at(dirfd: DirFd) -> None:
    """Kill every process in the cgroup through cgroup.kill."""
    _write_at(dirfd, CGROUP_KILL, "1")


def get_nr_dying_descendants_at(dirfd: DirFd) -> int:
    """Return nr_dying_descendants from cgroup.stat, 0 if absent."""
    return _memstat_like(_lines_at(dirfd, CGROUP_STAT_FILE)).get("nr_dying_descendants", 0)


def read_kill_preference_at(dirfd: DirFd) -> KillPreference:
    """Return the kill preference from the oomd prefer/avoid xattrs."""
    checks = (
        (OOMD_SYSTEM_PREFER_XATTR, KillPreference.PREFER),
        (OOMD_USER_PREFER_XATTR, KillPreference.PREFER),
        (OOMD_SYSTEM_AVOID_XATTR, KillPreference.AVOID),
        (OOMD_USER_AVOID_XATTR, KillPreference.AVOID),
    )
    for attr, preference in checks:
        if hasxattr_at(dirfd, attr):
            return preference
    return KillPreference.NORMAL


def read_memory_oom_group_at(dirfd: DirFd) -> bool:
    """Return True if memory.oom.group is exactly "1"."""
    return _lines_at(dirfd, MEM_OOM_GROUP_FILE) == ["1"]


def read_iostat_at(dirfd: DirFd) -> List[DeviceIOStat]:
    """Parse io.stat into one record per device."""
    stats: List[DeviceIOStat] = []
    for line in _lines_at(dirfd, IO_STAT_FILE):
        match = _IOSTAT_RE.match(line)
        if match is None:
            raise system_error(errno.EINVAL, "invalid io.stat line: ", line)
        major, minor, *values = (int(group) for group in match.groups())
        stats.append(DeviceIOStat(f"{major}:{minor}", *values))
    return stats


def get_memstat_at(dirfd: DirFd) -> Dict[str, int]:
    """Return memory.stat as a name-to-value map."""
    return _memstat_like(_lines_at(dirfd, MEM_STAT_FILE))