"""Value conventions of the restricted interpreter: conversion and display."""

from __future__ import annotations

import math
import numbers
from collections.abc import Sequence
from decimal import Decimal
from typing import Any

from stepagents.errors import InterpreterRuntimeError

_I64_MIN = -(2**63)
_I64_MAX = 2**63 - 1


def format_float(value: float) -> str:
    """Shortest decimal form of a float, without exponent or trailing ``.0``."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def render(value: Any) -> str:
    """Text the interpreter shows for a value (used by ``print`` and f-strings)."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return format_float(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(render(item) for item in value) + "]"
    if isinstance(value, dict):
        body = ", ".join(f"'{render(key)}': {render(item)}" for key, item in value.items())
        return "{" + body + "}"
    if value is None:
        return "None"
    return str(value)


def _is_i64(item: Any) -> bool:
    return isinstance(item, int) and _I64_MIN <= item <= _I64_MAX


def normalize(obj: Any) -> Any:
    """Convert a result of native evaluation into an interpreter value.

    Real numbers become floats, sequences of uniform strings or numbers
    become lists, dictionaries must have string keys; anything else is
    kept as an opaque object.
    """
    if isinstance(obj, bool):
        return obj
    if isinstance(obj, numbers.Real):
        try:
            return float(obj)
        except OverflowError:
            return obj
    if isinstance(obj, str):
        return obj
    if isinstance(obj, dict):
        result = {}
        for key, item in obj.items():
            if not isinstance(key, str):
                raise InterpreterRuntimeError(
                    f"TypeError: dictionary key {key!r} is not a string"
                )
            result[key] = normalize(item)
        return result
    if isinstance(obj, Sequence):
        items = list(obj)
        if all(isinstance(item, str) for item in items):
            return items
        if all(_is_i64(item) for item in items):
            return [int(item) for item in items]
        if all(isinstance(item, numbers.Real) for item in items):
            try:
                return [float(item) for item in items]
            except OverflowError:
                return obj
        return obj
    return obj


def as_sequence(value: Any) -> list | None:
    """Items of a list or tuple value, or ``None`` for anything else."""
    if isinstance(value, (list, tuple)):
        return list(value)
    return None