"""Small parsing, string and raw-I/O helpers shared across the package."""

from __future__ import annotations

import os
import random
import re

_WHITESPACE = " \t\n\r"

_UNITS = {
    "": 1,
    "k": 1 << 10,
    "m": 1 << 20,
    "g": 1 << 30,
    "t": 1 << 40,
}

_DECIMAL_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_HEX_RE = re.compile(
    r"[+-]?0[xX](?:[0-9a-fA-F]+(?:\.[0-9a-fA-F]*)?|\.[0-9a-fA-F]+)(?:[pP][+-]?\d+)?"
)
_INT_PREFIX_RE = re.compile(r"\s*([+-]?\d+)")

_INT32_MIN, _INT32_MAX = -(1 << 31), (1 << 31) - 1
_INT64_MIN, _INT64_MAX = -(1 << 63), (1 << 63) - 1

_uuid_rng = random.Random()


def _parse_number(text: str) -> float:
    """Parse a whole string as a floating point number, decimal or hex."""
    if _DECIMAL_RE.fullmatch(text):
        value = float(text)
    elif _HEX_RE.fullmatch(text):
        value = float.fromhex(text)
    else:
        raise ValueError(f"not a number: {text!r}")
    if value != value or value in (float("inf"), float("-inf")):
        raise ValueError(f"not a finite number: {text!r}")
    return value


def _int_prefix(text: str, low: int, high: int) -> tuple[int, int]:
    """Parse a leading integer the way strtol does.

    Returns the value and the index just past the digits consumed.
    """
    match = _INT_PREFIX_RE.match(text)
    if match is None:
        raise ValueError(f"no integer at start of {text!r}")
    value = int(match.group(1))
    if not low <= value <= high:
        raise ValueError(f"integer out of range: {match.group(1)}")
    return value, match.end()


def parse_size(text: str) -> int:
    """Parse a size such as "1.5G", "1G 128M" or "4K 2048" into bytes.

    Supports k/m/g/t suffixes (case-insensitive); components are summed.
    Raises ValueError if the text is not a valid size.
    """
    istr = "".join(ch for ch in text.lower() if not ch.isspace())

    negative = False
    pos = 0
    if istr[:1] == "+":
        pos = 1
    elif istr[:1] == "-":
        negative = True
        pos = 1

    size = 0
    while pos < len(istr):
        unit_pos = next(
            (i for i in range(pos, len(istr)) if istr[i] in "kmgt"), len(istr)
        )
        if unit_pos == pos:
            raise ValueError(f"invalid size: {text!r}")

        value = _parse_number(istr[pos:unit_pos])
        if value < 0:
            raise ValueError(f"invalid size: {text!r}")

        value *= _UNITS[istr[unit_pos : unit_pos + 1]]
        size = int(size + value)
        pos = unit_pos + 1

    return -size if negative else size


def parse_size_or_percent(text: str, total: int) -> int:
    """Parse "<n>%" of total, a bare number of megabytes, or a suffixed size.

    Raises ValueError if none of these forms applies.
    """
    if text.endswith("%"):
        pct, _ = _int_prefix(text[:-1], _INT32_MIN, _INT32_MAX)
        if pct < 0 or pct > 100:
            raise ValueError(f"percentage out of range: {text!r}")
        product = total * pct
        quotient = abs(product) // 100
        return -quotient if product < 0 else quotient

    value, end = _int_prefix(text, _INT64_MIN, _INT64_MAX)
    if end == len(text):
        # A bare number is interpreted as megabytes.
        return value << 20
    return parse_size(text)


def split(line: str, delim: str) -> list[str]:
    """Split a string on delim, dropping empty tokens."""
    return [token for token in line.split(delim) if token]


def starts_with(prefix: str, to_search: str) -> bool:
    """Return True if to_search begins with prefix."""
    return to_search.startswith(prefix)


def trim(text: str) -> str:
    """Strip spaces, tabs and line breaks from both ends."""
    return text.strip(_WHITESPACE)


def read_full(fd: int, count: int) -> bytes:
    """Read up to count bytes from fd, stopping early only at end of file."""
    chunks: list[bytes] = []
    remaining = count
    while remaining > 0:
        chunk = os.read(fd, remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def write_full(fd: int, data: bytes) -> int:
    """Write all of data to fd and return the number of bytes written."""
    view = memoryview(data)
    total = 0
    while total < len(view):
        written = os.write(fd, view[total:])
        if written == 0:
            break
        total += written
    return total


def generate_uuid() -> str:
    """Return a random hex string built from two 64-bit random numbers."""
    return f"{_uuid_rng.getrandbits(64):x}{_uuid_rng.getrandbits(64):x}"