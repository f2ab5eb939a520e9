"""Small string and number helpers."""

from __future__ import annotations

import re
from typing import Any

_INT_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1


def is_normal_string(data: bytes) -> bool:
    """Tell whether ``data`` is valid UTF-8 made only of printable characters."""
    try:
        text = bytes(data).decode("utf-8")
    except UnicodeDecodeError:
        return False
    return text.isprintable()


def _display(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if value.is_integer() and abs(value) < 1e6:
            return str(int(value))
        return repr(value)
    return str(value)


def must_any_to_int(value: Any) -> int:
    """Convert the textual form of ``value`` to an int, or return 0."""
    text = _display(value)
    if not _INT_RE.fullmatch(text):
        return 0
    number = int(text)
    if not _INT64_MIN <= number <= _INT64_MAX:
        return 0
    return number


def is_numeric(text: str) -> bool:
    """Tell whether ``text`` is non-empty and made only of decimal digits."""
    return text.isdecimal()


def split_int64_to_two_int32(value: int) -> tuple[int, int]:
    """Split a 64-bit value into its low 32 bits and its high part."""
    return value & 0xFFFFFFFF, value >> 32


def str2list(text: str, sep: str) -> list[str]:
    """Split ``text`` on ``sep``, trimming items and dropping blanks and repeats."""
    if text == "":
        return []
    pieces = list(text) if sep == "" else text.split(sep)
    seen: set[str] = set()
    items: list[str] = []
    for piece in pieces:
        item = piece.strip()
        if item and item not in seen:
            seen.add(item)
            items.append(item)
    return items