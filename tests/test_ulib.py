import io

import pytest

from xvtools.ulib import atoi, gets, strcmp


@pytest.mark.parametrize(
    "text, expected",
    [("123", 123), ("42abc", 42), ("", 0), ("-5", 0), (" 7", 0), (b"99", 99)],
)
def test_atoi(text, expected):
    assert atoi(text) == expected


def test_strcmp_equal():
    assert strcmp("same", "same") == 0


def test_strcmp_ordering():
    assert strcmp("a", "b") < 0
    assert strcmp("b", "a") > 0
    assert strcmp("abc", "ab") == ord("c")
    assert strcmp("ab", "abc") == -ord("c")


def test_strcmp_stops_at_nul():
    assert strcmp("ab\0x", "ab\0y") == 0


def test_gets_reads_lines():
    stream = io.BytesIO(b"hello\nworld")
    assert gets(stream, 100) == b"hello\n"
    assert gets(stream, 100) == b"world"
    assert gets(stream, 100) == b""


def test_gets_limit_and_carriage_return():
    assert gets(io.BytesIO(b"abcdef"), 4) == b"abc"
    assert gets(io.BytesIO(b"ab\rcd"), 100) == b"ab\r"