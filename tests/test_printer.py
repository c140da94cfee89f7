import pytest

from tgscript.tgscript_printer import Printer


@pytest.fixture
def printer():
    return Printer()


@pytest.mark.parametrize("value,expected", [
    ("text", "text"),
    ("", ""),
    (None, ""),
    (True, "true"),
    (False, "false"),
    (42, "42"),
    (-3, "-3"),
    (2.0, "2"),
    (0.25, "0.25"),
    (b"bytes", "bytes"),
    ({"a": None, "b": True}, '{"a":null,"b":true}'),
    ([1, "x"], '[1,"x"]'),
    ((1, 2), "[1,2]"),
    ({3, 1, 2}, "[1,2,3]"),
])
def test_pformat(printer, value, expected):
    assert printer.pformat(value) == expected


def test_unknown_objects_use_str(printer):
    class Thing:
        def __str__(self):
            return "a thing"

    assert printer.pformat(Thing()) == "a thing"
