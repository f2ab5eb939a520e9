"""Filling unset dataclass fields from default values kept in field metadata.

A field declares its default as a string under the metadata key given by
:func:`set_default_tag` (``"default"`` unless changed). Simple types parse
the string directly; dataclasses, lists, dicts and optional values parse it
as JSON. Only fields still holding their zero value are filled.

Field types are read from the dataclass field declarations. Annotations
kept as strings are understood for the simple builtin names; any other
string annotation falls back to the type of the field's current value.
"""

from __future__ import annotations

import dataclasses
import json
import re
import types
import typing
from typing import Any, Union

_default_tag = "default"

_INT_RE = re.compile(r"[+-]?[0-9]+")
_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}

_NAMED_TYPES = {
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "list": list,
    "dict": dict,
    "Any": Any,
    "typing.Any": Any,
}


def set_default_tag(tag: str) -> None:
    """Change the metadata key that holds field defaults."""
    global _default_tag
    _default_tag = tag


def set_default(value: Any) -> None:
    """Fill the zero-valued fields of ``value`` in place from their defaults."""
    if value is None:
        return
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        _fill(value)
    elif isinstance(value, list):
        value[:] = [_apply(item, type(item), "") for item in value]
    elif isinstance(value, dict):
        for key, item in value.items():
            value[key] = _apply(item, type(item), "")


def _field_type(field: dataclasses.Field, current: Any) -> Any:
    tp = field.type
    if isinstance(tp, str):
        named = _NAMED_TYPES.get(tp.strip())
        if named is not None:
            return named
        return type(current) if current is not None else Any
    return tp


def _optional_inner(tp: Any) -> Any:
    origin = typing.get_origin(tp)
    if origin is Union or origin is getattr(types, "UnionType", None):
        args = [arg for arg in typing.get_args(tp) if arg is not type(None)]
        if len(args) == 1 and len(typing.get_args(tp)) == 2:
            return args[0]
    return None


def _is_frozen(obj: Any) -> bool:
    params = getattr(type(obj), "__dataclass_params__", None)
    return bool(params and params.frozen)


def _is_zero(value: Any) -> bool:
    if value is None:
        return True
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return all(_is_zero(getattr(value, f.name)) for f in dataclasses.fields(value))
    if isinstance(value, (str, int, float, list, dict, tuple)):
        return not value
    return False


def _zero(tp: Any) -> Any:
    if _optional_inner(tp) is not None:
        return None
    if isinstance(tp, type) and dataclasses.is_dataclass(tp):
        kwargs = {
            f.name: _zero(_field_type(f, None))
            for f in dataclasses.fields(tp)
            if f.init
            and f.default is dataclasses.MISSING
            and f.default_factory is dataclasses.MISSING
        }
        return tp(**kwargs)
    origin = typing.get_origin(tp) or tp
    zeros = {list: list, dict: dict, str: str, int: int, float: float, bool: bool}
    factory = zeros.get(origin)
    return factory() if factory else None


def _convert(tp: Any, obj: Any) -> Any:
    """Turn decoded JSON into a value of type ``tp``; raise ValueError on mismatch."""
    inner = _optional_inner(tp)
    if inner is not None:
        return None if obj is None else _convert(inner, obj)
    if tp is Any:
        return obj
    if isinstance(tp, type) and dataclasses.is_dataclass(tp):
        if not isinstance(obj, dict):
            raise ValueError("expected an object")
        instance = _zero(tp)
        for f in dataclasses.fields(tp):
            if f.name in obj:
                field_tp = _field_type(f, getattr(instance, f.name, None))
                setattr(instance, f.name, _convert(field_tp, obj[f.name]))
        return instance
    origin = typing.get_origin(tp)
    args = typing.get_args(tp)
    if origin is list or tp is list:
        if not isinstance(obj, list):
            raise ValueError("expected an array")
        elem = args[0] if args else Any
        return [_convert(elem, item) for item in obj]
    if origin is dict or tp is dict:
        if not isinstance(obj, dict):
            raise ValueError("expected an object")
        key_tp, val_tp = args if len(args) == 2 else (Any, Any)
        return {
            (int(k) if key_tp is int else k): _convert(val_tp, v) for k, v in obj.items()
        }
    if tp is bool:
        if not isinstance(obj, bool):
            raise ValueError("expected a boolean")
        return obj
    if tp is int:
        if isinstance(obj, bool) or not isinstance(obj, (int, float)) or obj != int(obj):
            raise ValueError("expected an integer")
        return int(obj)
    if tp is float:
        if isinstance(obj, bool) or not isinstance(obj, (int, float)):
            raise ValueError("expected a number")
        return float(obj)
    if tp is str:
        if not isinstance(obj, str):
            raise ValueError("expected a string")
        return obj
    return obj


def _decode(tp: Any, tag: str) -> Any:
    try:
        return _convert(tp, json.loads(tag))
    except (ValueError, TypeError):
        return _NOTHING


_NOTHING = object()


def _simple(value: Any, tp: Any, tag: str) -> Any:
    if not tag or not _is_zero(value):
        return value
    if tp is str:
        return tag
    if tp is bool:
        if tag in _TRUE:
            return True
        if tag in _FALSE:
            return False
        return value
    if tp is int:
        return int(tag) if _INT_RE.fullmatch(tag) else value
    if tp is float:
        try:
            return float(tag)
        except ValueError:
            return value
    return value


def _apply(value: Any, tp: Any, tag: str) -> Any:
    inner = _optional_inner(tp)
    if inner is not None:
        if value is not None or not tag:
            return value
        decoded = _decode(inner, tag)
        if decoded is _NOTHING:
            return value
        return _apply(decoded, inner, "")

    if isinstance(tp, type) and dataclasses.is_dataclass(tp):
        if value is None:
            return value
        if _is_frozen(value):
            return value
        if not _is_zero(value) or not tag:
            _fill(value)
            return value
        decoded = _decode(tp, tag)
        if decoded is _NOTHING:
            return value
        _fill(decoded)
        return decoded

    origin = typing.get_origin(tp)
    args = typing.get_args(tp)
    if origin is list or tp is list:
        elem = args[0] if args else Any
        if value is None:
            value = []
        if value or not tag:
            value[:] = [_apply(item, elem, "") for item in value]
            return value
        decoded = _decode(tp, tag)
        if decoded is not _NOTHING:
            value.extend(_apply(item, elem, "") for item in decoded)
        return value

    if origin is dict or tp is dict:
        val_tp = args[1] if len(args) == 2 else Any
        if value or not tag:
            if value:
                for key, item in value.items():
                    value[key] = _apply(item, val_tp, "")
            return value
        decoded = _decode(tp, tag)
        if decoded is _NOTHING:
            return value
        return {key: _apply(item, val_tp, "") for key, item in decoded.items()}

    if tp in (str, int, float, bool):
        return _simple(value, tp, tag)

    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _apply(value, type(value), tag)
    return value


def _fill(obj: Any) -> None:
    if _is_frozen(obj):
        return
    for f in dataclasses.fields(obj):
        tag = f.metadata.get(_default_tag, "")
        current = getattr(obj, f.name)
        setattr(obj, f.name, _apply(current, _field_type(f, current), tag))