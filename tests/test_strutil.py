import pytest

from chatlog import strutil


@pytest.mark.parametrize(
    "data, expected",
    [
        (b"hello world", True),
        ("中文字符".encode("utf-8"), True),
        (b"\xff\xfe", False),
        (b"a\x00b", False),
        (b"line\n", False),
        (b"\t", False),
    ],
)
def test_is_normal_string(data, expected):
    assert strutil.is_normal_string(data) is expected


def test_is_normal_string_empty_is_true():
    assert strutil.is_normal_string(b"") is True


@pytest.mark.parametrize(
    "value, expected",
    [
        ("42", 42),
        (42, 42),
        ("-7", -7),
        ("+8", 8),
        (3.0, 3),
        ("4x", 0),
        (" 5", 0),
        ("1_000", 0),
        (None, 0),
        (True, 0),
        (2.5, 0),
        ("99999999999999999999", 0),
    ],
)
def test_must_any_to_int(value, expected):
    assert strutil.must_any_to_int(value) == expected


@pytest.mark.parametrize(
    "text, expected",
    [("12345", True), ("", False), ("12a", False), ("-1", False), ("١٢٣", True)],
)
def test_is_numeric(text, expected):
    assert strutil.is_numeric(text) is expected


def test_split_int64_round_trip():
    low, high = strutil.split_int64_to_two_int32((5 << 32) | 7)
    assert (low, high) == (7, 5)
    assert (high << 32) | low == (5 << 32) | 7


def test_split_int64_negative():
    low, high = strutil.split_int64_to_two_int32(-1)
    assert low == 0xFFFFFFFF
    assert high == -1


def test_str2list_dedup_and_trim():
    assert strutil.str2list("a, b,,a , c", ",") == ["a", "b", "c"]


def test_str2list_empty():
    assert strutil.str2list("", ",") == []


def test_str2list_empty_separator_splits_characters():
    assert strutil.str2list("abca", "") == ["a", "b", "c"]