"""Declarative parsing of plugin arguments given as a string-to-string map."""

from __future__ import annotations

import enum
import errno
import logging
import re
from datetime import timedelta
from typing import Any, Callable, Dict, Mapping, Set

from oomtools.errors import OomdError, system_error

_log = logging.getLogger(__name__)

_INT_RE = re.compile(r"\s*([+-]?\d+)")
_FLOAT_RE = re.compile(
    r"\s*([+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan))",
    re.IGNORECASE,
)

_INT32_MIN, _INT32_MAX = -(1 << 31), (1 << 31) - 1
_INT64_MIN, _INT64_MAX = -(1 << 63), (1 << 63) - 1


class ResourceType(enum.Enum):
    """Resource a pressure reading refers to."""

    IO = "io"
    MEMORY = "memory"


def _leading_int(text: str, low: int, high: int) -> int:
    match = _INT_RE.match(text)
    if match is None:
        raise ValueError(f"invalid integer: {text!r}")
    value = int(match.group(1))
    if not low <= value <= high:
        raise ValueError(f"integer out of range: {text!r}")
    return value


def _leading_float(text: str) -> float:
    match = _FLOAT_RE.match(text)
    if match is None:
        raise ValueError(f"invalid number: {text!r}")
    return float(match.group(1))


def parse_unsigned_int(text: str) -> int:
    """Parse a non-negative 32-bit integer."""
    value = _leading_int(text, _INT32_MIN, _INT32_MAX)
    if value < 0:
        raise ValueError("must be non-negative")
    return value


def _parse_bool(text: str) -> bool:
    if text in ("true", "True", "1"):
        return True
    if text in ("false", "False", "0"):
        return False
    raise ValueError("Invalid resource value, must be true/false, True/False, 1/0.")


def _parse_resource_type(text: str) -> ResourceType:
    if text == "io":
        return ResourceType.IO
    if text == "memory":
        return ResourceType.MEMORY
    raise ValueError("Invalid resource value, must be either 'io' or 'memory'.")


_PARSERS: Dict[type, Callable[[str], Any]] = {
    int: lambda text: _leading_int(text, _INT64_MIN, _INT64_MAX),
    float: _leading_float,
    bool: _parse_bool,
    str: lambda text: text,
    timedelta: lambda text: timedelta(
        milliseconds=_leading_int(text, _INT64_MIN, _INT64_MAX)
    ),
    ResourceType: _parse_resource_type,
}


def parse_value(kind: type, text: str) -> Any:
    """Parse text as a value of kind: int, float, bool, str, timedelta or ResourceType.

    timedelta values are read as a count of milliseconds.
    """
    try:
        parser = _PARSERS[kind]
    except KeyError:
        raise TypeError(f"unsupported argument type: {kind!r}") from None
    return parser(text)


class PluginArgParser:
    """Collects argument declarations for a plugin and parses arg maps."""

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._parsers: Dict[str, Callable[[str], Any]] = {}
        self._required: Set[str] = set()

    def add_argument(self, name: str, kind: type, required: bool = False) -> None:
        """Declare an argument parsed with parse_value for kind."""
        if kind not in _PARSERS:
            raise TypeError(f"unsupported argument type: {kind!r}")
        self.add_argument_custom(name, _PARSERS[kind], required)

    def add_argument_custom(
        self, name: str, func: Callable[[str], Any], required: bool = False
    ) -> None:
        """Declare an argument whose value string is converted by func."""
        if required:
            self._required.add(name)
        self._parsers[name] = func

    def _convert(self, name: str, text: str) -> Any:
        try:
            return self._parsers[name](text)
        except Exception as exc:
            raise system_error(
                errno.EINVAL, f'Failed to parse argument "{name}", error: {exc}'
            ) from exc

    def parse(self, args: Mapping[str, str]) -> Dict[str, Any]:
        """Parse args and return the converted values keyed by argument name.

        Raises OomdError (EINVAL) on a missing required arg, an unknown arg
        or a value that fails to parse.
        """
        for name in self._required:
            if name not in args:
                _log.warning(
                    'Required arg "%s" missing in plugin "%s"', name, self.name
                )
                raise system_error(
                    errno.EINVAL,
                    f'Required arg "{name}" missing in plugin "{self.name}"',
                )

        values: Dict[str, Any] = {}
        for name, text in args.items():
            if name not in self._parsers:
                _log.warning('Unknown arg "%s" in plugin "%s"', name, self.name)
                raise system_error(
                    errno.EINVAL, f'Unknown arg "{name}" in plugin "{self.name}"'
                )
            try:
                values[name] = self._convert(name, text)
            except OomdError as err:
                raise system_error(
                    errno.EINVAL,
                    f'Failed parsing arg for plugin "{self.name}", error: {err.what}',
                ) from err
        return values

    def valid_arg_names(self) -> Set[str]:
        """Return the names of all declared arguments."""
        return set(self._parsers)