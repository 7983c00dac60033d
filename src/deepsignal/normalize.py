"""Value normalizer — strips wrappers and rebuilds plain containers.

Every value stored as raw signal state passes through normalize() first, so
raw state never holds a wrapper at any depth and never aliases a container
owned by the caller.

Rebuilding uses a functools.singledispatch registry, so container types can be
taught to the normalizer the same way the interception module teaches it
about wrappers:

    @rebuild.register(MyContainer)
    def _rebuild_my_container(value, memo, depth):
        ...
"""

from __future__ import annotations

import copy
import datetime
import decimal
import enum
import fractions
import functools
import pathlib
import re
import types
import uuid
from collections.abc import MutableMapping, MutableSequence
from typing import TypeVar

from deepsignal.exceptions import NormalizationDepthError

__all__ = ["DEFAULT_MAX_DEPTH", "is_leaf", "is_record", "normalize", "rebuild", "register_opaque_type", "set_max_depth"]

T = TypeVar("T")

# Values of these types are never copied, wrapped or looked into.
_LEAF_TYPES: tuple[type, ...] = (
    str,
    bytes,
    bytearray,
    memoryview,
    int,
    float,
    complex,
    decimal.Decimal,
    fractions.Fraction,
    datetime.date,
    datetime.time,
    datetime.timedelta,
    datetime.tzinfo,
    re.Pattern,
    uuid.UUID,
    pathlib.PurePath,
    enum.Enum,
    range,
    type,
    types.ModuleType,
)

DEFAULT_MAX_DEPTH = 128

_max_depth: int = DEFAULT_MAX_DEPTH


def register_opaque_type(cls: type) -> None:
    """Treat instances of `cls` as opaque leaves: passed through, never wrapped."""
    global _LEAF_TYPES
    if not isinstance(cls, type):
        raise TypeError(f"expected a class, got {cls!r}")
    if cls not in _LEAF_TYPES:
        _LEAF_TYPES = _LEAF_TYPES + (cls,)


def set_max_depth(depth: int) -> None:
    """Set how many container levels normalize() descends before giving up."""
    global _max_depth
    if depth < 1:
        raise ValueError(f"max depth must be positive, got {depth}")
    _max_depth = depth


def is_leaf(value: object) -> bool:
    return isinstance(value, _LEAF_TYPES) or callable(value)


def is_record(value: object) -> bool:
    """Is `value` a plain attribute object (dataclass, SimpleNamespace, ...)?"""
    return hasattr(value, "__dict__") and not is_leaf(value)


def normalize(value: T) -> T:
    """Return a wrapper-free copy of `value`.

    Containers are rebuilt at every depth; scalars and opaque leaves are
    returned as is. Shared references and cycles are preserved.

    Raises:
        NormalizationDepthError: if `value` nests deeper than the configured limit.
    """
    return visit(value, {}, 0)


def visit(value, memo: dict[int, object], depth: int):
    """Rebuild one node, consulting the memo of already rebuilt sources."""
    if is_leaf(value):
        return value
    found = memo.get(id(value), memo)
    if found is not memo:
        return found
    if depth > _max_depth:
        raise NormalizationDepthError(_max_depth)
    # Dispatch on the real type; an ObjectWrapper reports its target's __class__.
    return rebuild.dispatch(type(value))(value, memo, depth)


@functools.singledispatch
def rebuild(value, memo: dict[int, object], depth: int):
    if not is_record(value):
        return value
    clone = copy.copy(value)
    # Registered before the children so cycles resolve to the copy.
    memo[id(value)] = clone
    attributes = vars(clone)
    for name, item in vars(value).items():
        attributes[name] = visit(item, memo, depth + 1)
    return clone


@rebuild.register(MutableMapping)
def _rebuild_mapping(value, memo, depth):
    result = copy.copy(value)
    result.clear()
    memo[id(value)] = result
    for key, item in value.items():
        result[key] = visit(item, memo, depth + 1)
    return result


@rebuild.register(MutableSequence)
def _rebuild_sequence(value, memo, depth):
    result = copy.copy(value)
    result.clear()
    memo[id(value)] = result
    result.extend(visit(item, memo, depth + 1) for item in value)
    return result


@rebuild.register(tuple)
def _rebuild_tuple(value, memo, depth):
    items = [visit(item, memo, depth + 1) for item in value]
    if hasattr(value, "_fields"):
        result = type(value)(*items)
    else:
        result = type(value)(items)
    memo[id(value)] = result
    return result


@rebuild.register(set)
@rebuild.register(frozenset)
def _rebuild_set(value, memo, depth):
    result = type(value)(visit(item, memo, depth + 1) for item in value)
    memo[id(value)] = result
    return result
