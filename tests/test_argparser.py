import errno
from datetime import timedelta

import pytest

from oomtools.argparser import (
    PluginArgParser,
    ResourceType,
    parse_unsigned_int,
    parse_value,
)
from oomtools.errors import OomdError


def test_unsigned_int_parsing():
    assert parse_unsigned_int("123") == 123
    with pytest.raises(ValueError):
        parse_unsigned_int("-123")


def test_unsigned_int_rejects_garbage():
    with pytest.raises(ValueError):
        parse_unsigned_int("abc")


def test_plugin_name():
    p = PluginArgParser("test_plugin")
    assert p.name == "test_plugin"
    p.name = "new_plugin_name"
    assert p.name == "new_plugin_name"


def test_arg_parsing_success():
    p = PluginArgParser("test_plugin")
    p.add_argument("arg_long_int", int)
    p.add_argument("arg_int", int)
    p.add_argument("arg_double", float)
    p.add_argument("arg_float", float)
    p.add_argument("arg_bool", bool)
    p.add_argument("arg_string", str)
    p.add_argument("arg_milli_second", timedelta)
    p.add_argument("arg_resource_type", ResourceType)
    p.add_argument_custom("arg_strs", lambda s: [s + "-1", s + "-2"])

    assert p.valid_arg_names() == {
        "arg_long_int",
        "arg_int",
        "arg_double",
        "arg_float",
        "arg_bool",
        "arg_string",
        "arg_milli_second",
        "arg_resource_type",
        "arg_strs",
    }

    values = p.parse(
        {
            "arg_long_int": "1234",
            "arg_int": "4321",
            "arg_double": "1.234",
            "arg_float": "4.321",
            "arg_bool": "true",
            "arg_string": "foo",
            "arg_milli_second": "456",
            "arg_resource_type": "io",
            "arg_strs": "some_str",
        }
    )

    assert values["arg_long_int"] == 1234
    assert values["arg_int"] == 4321
    assert values["arg_double"] == 1.234
    assert values["arg_float"] == pytest.approx(4.321)
    assert values["arg_bool"] is True
    assert values["arg_string"] == "foo"
    assert values["arg_milli_second"] == timedelta(milliseconds=456)
    assert values["arg_resource_type"] is ResourceType.IO
    assert values["arg_strs"] == ["some_str-1", "some_str-2"]


def test_arg_parsing_success_on_resource_type():
    p = PluginArgParser("test_plugin")
    p.add_argument("arg_resource_type_io", ResourceType)
    p.add_argument("arg_resource_type_mem", ResourceType)
    assert p.valid_arg_names() == {"arg_resource_type_io", "arg_resource_type_mem"}

    values = p.parse(
        {"arg_resource_type_io": "io", "arg_resource_type_mem": "memory"}
    )
    assert values["arg_resource_type_io"] is ResourceType.IO
    assert values["arg_resource_type_mem"] is ResourceType.MEMORY


def test_arg_parsing_failed_on_invalid_resource_type():
    p = PluginArgParser("test_plugin")
    p.add_argument("arg_resource_type_io", ResourceType)
    with pytest.raises(OomdError) as info:
        p.parse({"arg_resource_type_io": "kidding"})
    assert 'Failed to parse argument "arg_resource_type_io", error' in str(info.value)
    assert info.value.code == errno.EINVAL


@pytest.mark.parametrize(
    "text,expected",
    [
        ("true", True),
        ("True", True),
        ("1", True),
        ("false", False),
        ("False", False),
        ("0", False),
    ],
)
def test_arg_parsing_success_on_bool(text, expected):
    p = PluginArgParser("test_plugin")
    p.add_argument("arg", bool)
    assert p.parse({"arg": text})["arg"] is expected


def test_arg_parsing_failed_on_invalid_bool():
    p = PluginArgParser("test_plugin")
    p.add_argument("arg_bool", bool)
    with pytest.raises(OomdError) as info:
        p.parse({"arg_bool": "kidding"})
    assert 'Failed to parse argument "arg_bool", error' in str(info.value)


def test_arg_parsing_failed_with_unknown_arg():
    p = PluginArgParser("test_plugin")
    p.add_argument("arg", int)
    assert p.valid_arg_names() == {"arg"}
    with pytest.raises(OomdError) as info:
        p.parse({"arg": "1234", "unknown_arg": "4321"})
    assert (
        'Unknown arg "unknown_arg" in plugin "test_plugin": Invalid argument'
        in str(info.value)
    )


def test_arg_parsing_failed_with_missing_required():
    p = PluginArgParser("test_plugin")
    p.add_argument("arg1", int)
    p.add_argument("arg2", int, True)
    assert p.valid_arg_names() == {"arg1", "arg2"}
    with pytest.raises(OomdError) as info:
        p.parse({"arg1": "1234"})
    assert (
        'Required arg "arg2" missing in plugin "test_plugin": Invalid argument'
        in str(info.value)
    )


def test_arg_parsing_failed_with_invalid_value_str():
    p = PluginArgParser("test_plugin")
    p.add_argument("bad_arg", int)
    assert p.valid_arg_names() == {"bad_arg"}
    with pytest.raises(OomdError) as info:
        p.parse({"bad_arg": "abcdefg"})
    assert 'Failed to parse argument "bad_arg", error' in str(info.value)


def test_optional_args_may_be_omitted():
    p = PluginArgParser("test_plugin")
    p.add_argument("debug", bool)
    p.add_argument("duration", int, required=True)
    assert p.parse({"duration": "10"}) == {"duration": 10}


def test_parse_value_unknown_kind():
    with pytest.raises(TypeError):
        parse_value(list, "x")
    p = PluginArgParser("test_plugin")
    with pytest.raises(TypeError):
        p.add_argument("x", dict)


def test_parse_value_kinds():
    assert parse_value(int, "42") == 42
    assert parse_value(str, "hello") == "hello"
    assert parse_value(ResourceType, "memory") is ResourceType.MEMORY
    assert parse_value(timedelta, "456") == timedelta(milliseconds=456)
    with pytest.raises(ValueError):
        parse_value(float, "nope")