"""Structural equality over JSON-shaped values."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def deep_equal(a: Any, b: Any) -> bool:
    """Return True when ``a`` and ``b`` hold the same nested structure.

    Mappings compare by key set and value, sequences element-wise (a list equals
    a tuple with the same items), scalars by value. Booleans never equal
    numbers, so ``{"minimum": 1}`` and ``{"minimum": True}`` differ.
    """
    if a is b:
        return True
    if isinstance(a, Mapping) or isinstance(b, Mapping):
        if not (isinstance(a, Mapping) and isinstance(b, Mapping)):
            return False
        if len(a) != len(b):
            return False
        for key, value in a.items():
            if key not in b:
                return False
            if not deep_equal(value, b[key]):
                return False
        return True
    if _is_sequence(a) or _is_sequence(b):
        if not (_is_sequence(a) and _is_sequence(b)):
            return False
        if len(a) != len(b):
            return False
        return all(deep_equal(x, y) for x, y in zip(a, b))
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    return bool(a == b)
