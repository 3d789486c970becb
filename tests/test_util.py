import os
import string

import pytest

from oomtools import util


def test_parse_size_plain_and_suffixed():
    assert util.parse_size("8192") == 8192
    assert util.parse_size("8K") == 8192


def test_parse_size_multiple_components():
    assert util.parse_size("1.5M 32K 512") == (1 << 20) * 3 // 2 + (1 << 10) * 32 + 512


@pytest.mark.parametrize("text", ["1.5MK", "??", "+-123M", "K5", "1.2.3"])
def test_parse_size_rejects_invalid(text):
    with pytest.raises(ValueError):
        util.parse_size(text)


def test_parse_size_is_case_and_space_insensitive():
    assert util.parse_size("2g") == util.parse_size("2G")
    assert util.parse_size(" 4 k ") == util.parse_size("4k")


def test_parse_size_sign():
    assert util.parse_size("-1K") == -util.parse_size("1K")
    assert util.parse_size("+3M") == util.parse_size("3M")


def test_parse_size_or_percent_cases():
    assert util.parse_size_or_percent("1%", 100) == 1
    assert util.parse_size_or_percent("5M", 100) == 5 << 20
    assert util.parse_size_or_percent("5", 100) == 5 << 20
    assert util.parse_size_or_percent("5K", 100) == 5 << 10


def test_parse_size_or_percent_bounds():
    total = 123456789
    assert util.parse_size_or_percent("100%", total) == total
    assert util.parse_size_or_percent("0%", total) == 0


@pytest.mark.parametrize("text", ["5%z", "101%", "-1%", "abc", ""])
def test_parse_size_or_percent_rejects_invalid(text):
    with pytest.raises(ValueError):
        util.parse_size_or_percent(text, 100)


def test_split():
    assert util.split("one by two", " ") == ["one", "by", "two"]
    assert util.split(" by two", " ") == ["by", "two"]
    assert util.split("     by        two", " ") == ["by", "two"]
    assert util.split("one two three", ",") == ["one two three"]
    assert util.split("", ",") == []
    assert util.split("     ", " ") == []
    assert util.split("one two three   ", " ") == ["one", "two", "three"]


def test_starts_with():
    assert util.starts_with("prefix", "prefixThis!")
    assert util.starts_with("x", "xx")
    assert util.starts_with("", "xx")
    assert util.starts_with("", "")
    assert not util.starts_with("prefix", "prefiyThat!")
    assert not util.starts_with("xx", "x")
    assert not util.starts_with("x", "")


@pytest.mark.parametrize(
    "text, expected",
    [
        ("  sdf  ", "sdf"),
        ("  as df  ", "as df"),
        ("  asdf", "asdf"),
        ("asdf ", "asdf"),
        ("asdf", "asdf"),
        ("", ""),
        (" \t   \n", ""),
    ],
)
def test_trim(text, expected):
    assert util.trim(text) == expected


def test_read_write_full_round_trip(tmp_path):
    path = tmp_path / "data.bin"
    fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o600)
    try:
        data = b"z" * 1234567
        assert util.write_full(fd, data) == len(data)
        os.lseek(fd, 0, os.SEEK_SET)
        # Ask for more than is there: the read stops at end of file.
        back = util.read_full(fd, len(data) + 8)
        assert back == data
    finally:
        os.close(fd)


def test_read_full_zero_count(tmp_path):
    path = tmp_path / "empty.bin"
    path.write_bytes(b"abc")
    fd = os.open(path, os.O_RDONLY)
    try:
        assert util.read_full(fd, 0) == b""
    finally:
        os.close(fd)


def test_generate_uuid_is_hex_and_random():
    first = util.generate_uuid()
    second = util.generate_uuid()
    assert set(first) <= set(string.hexdigits.lower())
    assert 2 <= len(first) <= 32
    assert first != second