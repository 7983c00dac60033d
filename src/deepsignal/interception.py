"""Interception wrappers — transparent stand-ins that observe reads and writes.

wrap() turns a mutable mapping, sequence, set, tuple or attribute object into
a wrapper that forwards every access to the underlying object while firing
Hooks around it. Children are wrapped lazily, on access, so the cost is
proportional to the depth actually visited. Tuples are wrapped read-only, so
that mutable values held inside them are still observed.

Each wrapper remembers the chain of raw ancestors that led to it. A write or
delete anywhere below a node evicts that node and all of its ancestors from
the IdentityCache, so the next read hands out fresh wrappers for everything
that changed and the very same wrappers for everything that did not.

    hooks = Hooks(after_set=lambda: print("changed"))
    state = wrap({"a": {"b": 1}}, hooks, IdentityCache())
    state["a"] is state["a"]   # True
    state["a"]["b"] = 2        # prints "changed"

A wrapper keeps all of its own state in one name-mangled slot and all of its
machinery in module-level functions, so an ObjectWrapper forwards every
attribute name except dunders.
"""

from __future__ import annotations

import copy
import logging
import operator
import types
import weakref
from collections.abc import MutableMapping, MutableSequence, MutableSet, Sequence
from dataclasses import dataclass
from typing import Callable, NamedTuple, TypeVar

from deepsignal.exceptions import DeepSignalError
from deepsignal.normalize import is_leaf, is_record, normalize, rebuild, visit

__all__ = [
    "Hooks",
    "IdentityCache",
    "MappingWrapper",
    "ObjectWrapper",
    "SequenceWrapper",
    "SetWrapper",
    "TupleWrapper",
    "Wrapper",
    "assign",
    "delete",
    "is_wrapper",
    "unwrap",
    "wrap",
]

logger = logging.getLogger("deepsignal.interception")

T = TypeVar("T")

Hook = Callable[[], None]

# Failures of the underlying write that mean "did not apply" rather than a bug.
_REJECTED = (LookupError, AttributeError, TypeError, DeepSignalError)


@dataclass(frozen=True)
class Hooks:
    """Optional callbacks fired around every intercepted access."""

    before_get: Hook | None = None
    after_get: Hook | None = None
    before_set: Hook | None = None
    after_set: Hook | None = None
    before_delete: Hook | None = None
    after_delete: Hook | None = None


def _fire(hook: Hook | None) -> None:
    if hook is not None:
        hook()


class IdentityCache:
    """Maps an underlying object to the one live wrapper standing in for it.

    Entries hold the wrapper weakly; the wrapper holds its target strongly, so
    an id() key can never be reused while its entry exists.
    """

    __slots__ = ("_wrappers",)

    def __init__(self) -> None:
        self._wrappers: weakref.WeakValueDictionary[int, Wrapper] = weakref.WeakValueDictionary()

    def get(self, target: object) -> Wrapper | None:
        wrapper = self._wrappers.get(id(target))
        if wrapper is not None and unwrap(wrapper) is target:
            return wrapper
        return None

    def put(self, target: object, wrapper: Wrapper) -> None:
        self._wrappers[id(target)] = wrapper

    def invalidate(self, target: object) -> None:
        self._wrappers.pop(id(target), None)

    def clear(self) -> None:
        self._wrappers.clear()

    def __contains__(self, target: object) -> bool:
        return self.get(target) is not None

    def __len__(self) -> int:
        return len(self._wrappers)


class _Node(NamedTuple):
    target: object
    hooks: Hooks
    cache: IdentityCache
    ancestors: tuple


class _Access(NamedTuple):
    """How one wrapper kind reads, writes, deletes and probes its target."""

    fetch: Callable | None
    store: Callable | None
    remove: Callable | None
    has: Callable


class Wrapper:
    """Base of every wrapper kind. Use wrap() rather than instantiating directly."""

    __slots__ = ("__node", "__weakref__")

    def __init__(self, target, hooks: Hooks, cache: IdentityCache, ancestors: tuple = ()) -> None:
        object.__setattr__(self, "_Wrapper__node", _Node(target, hooks, cache, ancestors))

    def __eq__(self, other) -> bool:
        return _node(self).target == unwrap(other)

    def __hash__(self) -> int:
        return hash(_node(self).target)

    def __copy__(self):
        return normalize(self)

    def __deepcopy__(self, memo):
        return copy.deepcopy(_node(self).target, memo)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({_node(self).target!r})"


# --- Traps ---


def _node(wrapper: Wrapper) -> _Node:
    return object.__getattribute__(wrapper, "_Wrapper__node")


def _child(wrapper: Wrapper, value):
    node = _node(wrapper)
    return wrap(value, node.hooks, node.cache, node.ancestors + (node.target,))


def _target_class(wrapper: Wrapper) -> type:
    return type(_node(wrapper).target)


def _bind(value, target, wrapper: Wrapper):
    # Methods of the target run against the wrapper, so writes to self are seen.
    if isinstance(value, types.MethodType) and value.__self__ is target:
        return types.MethodType(value.__func__, wrapper)
    return value


def _read(wrapper: Wrapper, key):
    node = _node(wrapper)
    _fire(node.hooks.before_get)
    value = _ACCESS[type(wrapper)].fetch(node.target, key)
    _fire(node.hooks.after_get)
    return _bind(value, node.target, wrapper)


def _trap_get(wrapper: Wrapper, key):
    return _child(wrapper, _read(wrapper, key))


def _invalidate(node: _Node) -> None:
    for ancestor in node.ancestors:
        node.cache.invalidate(ancestor)
    node.cache.invalidate(node.target)


def _mutate(wrapper: Wrapper, key, operation: Callable[[], None]) -> bool:
    """Run a write between the set hooks. Returns whether it applied."""
    node = _node(wrapper)
    _invalidate(node)
    _fire(node.hooks.before_set)
    try:
        operation()
    except _REJECTED as exc:
        logger.debug("Write to %r on %s rejected: %s", key, type(node.target).__name__, exc)
        return False
    _fire(node.hooks.after_set)
    return True


def _trap_set(wrapper: Wrapper, key, value) -> bool:
    if type(wrapper) is ObjectWrapper and key in _RESERVED:
        return False
    target = _node(wrapper).target
    store = _ACCESS[type(wrapper)].store
    return _mutate(wrapper, key, lambda: store(target, key, normalize(value)))


def _trap_delete(wrapper: Wrapper, key) -> bool:
    node = _node(wrapper)
    access = _ACCESS[type(wrapper)]
    if not access.has(node.target, key):
        return False
    _invalidate(node)
    _fire(node.hooks.before_delete)
    try:
        access.remove(node.target, key)
    except _REJECTED as exc:
        logger.debug("Delete of %r on %s rejected: %s", key, type(node.target).__name__, exc)
        return False
    _fire(node.hooks.after_delete)
    return True


# --- Wrapper kinds ---


class _Concatenation:
    """`+` and `*` on sequence wrappers, producing plain copies."""

    __slots__ = ()

    def __add__(self, other):
        return normalize(self) + normalize(other)

    def __radd__(self, other):
        return normalize(other) + normalize(self)

    def __mul__(self, count):
        return normalize(self) * count

    __rmul__ = __mul__


class MappingWrapper(Wrapper, MutableMapping):
    """Wrapper for dicts and other mutable mappings."""

    __slots__ = ()
    __hash__ = None

    def __getitem__(self, key):
        return _trap_get(self, key)

    def __setitem__(self, key, value) -> None:
        _trap_set(self, key, value)

    def __delitem__(self, key) -> None:
        _trap_delete(self, key)

    def __contains__(self, key) -> bool:
        return key in _node(self).target

    def __iter__(self):
        return iter(_node(self).target)

    def __len__(self) -> int:
        return len(_node(self).target)

    def copy(self):
        return normalize(self)

    def __or__(self, other):
        return normalize(self) | normalize(other)

    def __ror__(self, other):
        return normalize(other) | normalize(self)

    def __ior__(self, other):
        self.update(other)
        return self


class SequenceWrapper(_Concatenation, Wrapper, MutableSequence):
    """Wrapper for lists and other mutable sequences."""

    __slots__ = ()
    __hash__ = None

    def __getitem__(self, index):
        if isinstance(index, slice):
            return [_child(self, item) for item in _read(self, index)]
        return _trap_get(self, index)

    def __setitem__(self, index, value) -> None:
        if isinstance(index, slice):
            value = list(value)
        _trap_set(self, index, value)

    def __delitem__(self, index) -> None:
        _trap_delete(self, index)

    def __len__(self) -> int:
        return len(_node(self).target)

    def insert(self, index, value) -> None:
        target = _node(self).target
        _mutate(self, index, lambda: target.insert(index, normalize(value)))

    def reverse(self) -> None:
        _mutate(self, "reverse", _node(self).target.reverse)

    def sort(self, *, key=None, reverse: bool = False) -> None:
        target = _node(self).target
        _mutate(self, "sort", lambda: target.sort(key=key, reverse=reverse))

    def clear(self) -> None:
        _trap_delete(self, slice(None))

    def copy(self):
        return normalize(self)


class TupleWrapper(_Concatenation, Wrapper, Sequence):
    """Read-only wrapper for tuples, so that mutable items inside them are observed.

    Named tuple fields and methods resolve through the wrapper as well.
    """

    __slots__ = ()

    def __getitem__(self, index):
        if isinstance(index, slice):
            return tuple(_child(self, item) for item in _read(self, index))
        return _trap_get(self, index)

    def __len__(self) -> int:
        return len(_node(self).target)

    def __getattr__(self, name):
        target = _node(self).target
        return _child(self, _bind(getattr(target, name), target, self))


class SetWrapper(Wrapper, MutableSet):
    """Wrapper for sets. Members are hashable, so only records among them get wrapped."""

    __slots__ = ()
    __hash__ = None

    @classmethod
    def _from_iterable(cls, items):
        return normalize(set(items))

    def __contains__(self, item) -> bool:
        return unwrap(item) in _node(self).target

    def __iter__(self):
        for item in _node(self).target:
            yield _child(self, item)

    def __len__(self) -> int:
        return len(_node(self).target)

    def add(self, item) -> None:
        target = _node(self).target
        _mutate(self, item, lambda: target.add(normalize(item)))

    def discard(self, item) -> None:
        _trap_delete(self, unwrap(item))

    def update(self, *others) -> None:
        target = _node(self).target
        _mutate(self, "update", lambda: target.update(*[normalize(other) for other in others]))

    def copy(self):
        return normalize(self)


class ObjectWrapper(Wrapper):
    """Wrapper for attribute objects: dataclass instances, SimpleNamespace and the like.

    Every attribute name is forwarded to the target except dunders, which
    resolve on the wrapper and can neither be assigned nor deleted through it.
    `__class__` reports the target's class, so isinstance() sees through it.
    """

    __slots__ = ()

    __class__ = property(_target_class)

    def __getattribute__(self, name):
        if name in _RESERVED:
            return object.__getattribute__(self, name)
        return _trap_get(self, name)

    def __setattr__(self, name, value) -> None:
        _trap_set(self, name, value)

    def __delattr__(self, name) -> None:
        _trap_delete(self, name)


_RESERVED = frozenset(
    name for cls in ObjectWrapper.__mro__ for name in vars(cls) if name.startswith("__")
) | {"_Wrapper__node"}


def _fetch_item(target, key):
    return target[key]


def _store_item(target, key, value) -> None:
    target[key] = value


def _remove_item(target, key) -> None:
    del target[key]


def _has_key(target, key) -> bool:
    return key in target


def _has_index(target, index) -> bool:
    if isinstance(index, slice):
        return bool(target[index])
    try:
        index = operator.index(index)
    except TypeError:
        return False
    return -len(target) <= index < len(target)


def _has_attribute(target, name) -> bool:
    return name not in _RESERVED and hasattr(target, name)


_ACCESS: dict[type, _Access] = {
    MappingWrapper: _Access(_fetch_item, _store_item, _remove_item, _has_key),
    SequenceWrapper: _Access(_fetch_item, _store_item, _remove_item, _has_index),
    TupleWrapper: _Access(_fetch_item, None, None, _has_index),
    SetWrapper: _Access(None, None, lambda target, item: target.remove(item), _has_key),
    ObjectWrapper: _Access(getattr, setattr, delattr, _has_attribute),
}


def wrap(target: T, hooks: Hooks, cache: IdentityCache, ancestors: tuple = ()) -> T:
    """Return the wrapper standing in for `target`, or `target` itself if it is not wrappable.

    Scalars, opaque leaves (see register_opaque_type), frozensets and values
    that already are wrappers are returned unchanged.
    """
    if isinstance(target, (Wrapper, frozenset)) or is_leaf(target):
        return target
    if isinstance(target, MutableMapping):
        kind = MappingWrapper
    elif isinstance(target, MutableSequence):
        kind = SequenceWrapper
    elif isinstance(target, MutableSet):
        kind = SetWrapper
    elif isinstance(target, tuple):
        kind = TupleWrapper
    elif is_record(target):
        kind = ObjectWrapper
    else:
        return target

    wrapper = cache.get(target)
    if wrapper is None:
        wrapper = kind(target, hooks, cache, ancestors)
        cache.put(target, wrapper)
    return wrapper


def is_wrapper(value: object) -> bool:
    return isinstance(value, Wrapper)


def unwrap(value: T) -> T:
    """Return the object behind a wrapper, without firing any hook."""
    if isinstance(value, Wrapper):
        return _node(value).target
    return value


def assign(wrapper: Wrapper, key, value) -> bool:
    """Write `key` through `wrapper`. Returns False if the write did not apply."""
    return _trap_set(wrapper, key, value)


def delete(wrapper: Wrapper, key) -> bool:
    """Delete `key` through `wrapper`. Returns False if there was nothing to delete."""
    return _trap_delete(wrapper, key)


@rebuild.register(Wrapper)
def _rebuild_wrapper(value, memo, depth):
    return visit(unwrap(value), memo, depth)
