# oomtools

Building blocks for Linux tools that watch memory and IO pressure through the
cgroup v2 filesystem. The package is a library only. It has no dependencies
outside the standard library.

## Installation

```
pip install oomtools
```

To get the test dependencies, install the `test` extra:

```
pip install "oomtools[test]"
```

## Modules

### `oomtools.util`

- `parse_size` turns a size string into bytes. Examples are
  `parse_size("1.5M 32K 512")` and `parse_size("8K")`.
- `parse_size_or_percent(text, total)` accepts three forms:
  - `"<n>%"`, a percentage of `total`;
  - a bare number, which is read as megabytes;
  - a size with a suffix.

  Both parsing functions raise `ValueError` on bad input.
- String helpers: `split`, which drops empty tokens, `starts_with` and `trim`.
- Raw descriptor helpers: `read_full(fd, count)` and `write_full(fd, data)`.
- `generate_uuid` returns a random hex string built from two 64-bit random
  numbers.

### `oomtools.errors`

`OomdError` is an `OSError` that carries an errno code. Its text is the
context message followed by the system's description of the errno.

- Build one with `system_error(code, *parts)`.
- Add context to an existing one with `chain_error(err, *parts)`.

### `oomtools.scope`

`ScopeGuard` and `scope_exit(fn)` give you a context manager that calls `fn`
when the `with` block is left. This happens whether the block ends normally or
raises.

### `oomtools.fixture`

This module describes directory trees for tests and creates them on disk.

- `make_dir(name, entries)` and `make_file(name, content)` describe the tree.
- `materialize(pair, path)` creates it.
- Checked helpers raise `OomdError` on failure: `mkdtemp_checked`,
  `mkdirs_checked`, `write_checked` and `rmr_checked`.

### `oomtools.argparser`

`PluginArgParser` declares the arguments of a plugin and parses a
`dict[str, str]` of values.

- `add_argument(name, kind, required)` takes a `kind` of `int`, `float`,
  `bool`, `str`, `datetime.timedelta` (read as milliseconds) or
  `ResourceType`.
- `add_argument_custom(name, func, required)` converts the value with your own
  function.
- `parse` returns a dict of converted values. It raises `OomdError` (EINVAL)
  when:
  - a required argument is missing;
  - an argument name is not known;
  - a value fails to convert.
- `valid_arg_names` returns the declared names.

`parse_unsigned_int` and `parse_value(kind, text)` can also be used on their
own.

### `oomtools.fs`

- File descriptor wrappers that close themselves and can be used with `with`:
  `Fd` and `DirFd`.
- Directory listing with `read_dir` and `read_dir_at`, filtered by
  `DirEntFlags`. The result is a `DirEnts`.
- Path checks: `is_dir`, `is_cgroup_valid` and `check_exist_at`.
- Glob matching with brace alternatives: `glob_paths`.
- Path helpers: `remove_prefix` and `is_under_parent_path`.
- Line readers: `read_file_by_line` and `read_fd_lines`.
- Parsers for system files:
  - `get_meminfo`, which returns values in bytes;
  - `get_vmstat`;
  - `get_cgroup2_mount_point`.
- Extended attributes: `setxattr`, `getxattr` and `hasxattr_at`.
- `get_device_type` returns a `DeviceType`, SSD or HDD.
- Swappiness: `get_swappiness` and `set_swappiness`.

### `oomtools.cgroupfs`

This module reads and writes cgroup control files.

**Readers:**

- Cgroup state:
  - `read_controllers_at`
  - `get_pids_at`
  - `read_is_populated_at`
  - `read_pids_current_at`
  - `get_nr_dying_descendants_at`
- Memory usage:
  - `read_memcurrent_at`
  - `read_swap_current_at`
- Memory limits:
  - `read_memlow_at`
  - `read_memmin_at`
  - `read_memhigh_at`
  - `read_memmax_at`
  - `read_memhightmp_at`
  - `read_swap_max_at`
- Statistics:
  - `get_memstat_at`
  - `read_iostat_at`, which returns `DeviceIOStat` records
- Cgroup settings:
  - `read_memory_oom_group_at`
  - `read_kill_preference_at`, which returns a `KillPreference`

**Writers:**

- `write_memhigh_at`
- `write_memhightmp_at`
- `write_mem_reclaim_at`
- `write_freeze_at`
- `write_kill_at`

**Pressure (PSI):**

- Per cgroup: `read_mempressure_at` and `read_iopressure_at`.
- System-wide: `read_root_mempressure`, `read_root_iopressure` and
  `read_root_memcurrent`.
- `read_respressure_from_lines` parses both the upstream PSI format and the
  older experimental format.
- Results are `ResourcePressure` values. Choose the `some` or `full` line with
  `PressureType`.

## Example

```python
from oomtools.fs import DirFd
from oomtools.cgroupfs import PressureType, read_mempressure_at, read_memcurrent_at

with DirFd.open("/sys/fs/cgroup/system.slice") as cgroup:
    pressure = read_mempressure_at(cgroup, PressureType.SOME)
    print(pressure.sec_10, pressure.sec_60, pressure.sec_300)
    print(read_memcurrent_at(cgroup))
```

When opening, reading or writing a file fails, the call raises `OomdError`, and
the errno is in `err.errno`. No call returns a status code.

```python
from oomtools.argparser import PluginArgParser, ResourceType

parser = PluginArgParser("pressure_above")
parser.add_argument("resource", ResourceType, True)
parser.add_argument("threshold", int, True)
values = parser.parse({"resource": "memory", "threshold": "80"})
# {"resource": ResourceType.MEMORY, "threshold": 80}
```

## What the package does not do

`oomtools` provides only the helpers described above. It does not include:

- a monitoring daemon or tick loop;
- plugins, detectors or kill policies;
- a configuration format;
- a command-line program.

Nothing in it kills processes on its own. `write_kill_at` writes
`cgroup.kill` only when you call it.

## Running the tests

```
pytest
```