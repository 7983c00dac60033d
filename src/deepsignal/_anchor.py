"""Data anchor — the plain record behind every Signal handle.

Signals are thin handles holding a reference to a SignalState. Several handles
(see Signal.clone) may share one state; the state itself carries no behavior.
"""

from __future__ import annotations

import itertools

from deepsignal.interception import Hooks, IdentityCache

# ID generation — itertools.count is thread-safe (C-level GIL atomic)
_id_counter = itertools.count(1)


def new_id() -> int:
    return next(_id_counter)


class SignalState:
    """Raw value, subscribers, suppressed callbacks and identity cache of one signal."""

    __slots__ = ("id", "value", "subscribers", "suppressed", "cache", "hooks", "__weakref__")

    def __init__(self, value: object) -> None:
        self.id = new_id()
        self.value = value
        self.subscribers: dict = {}  # insertion-ordered set of callbacks
        self.suppressed: set = set()  # skipped by the next flush only
        self.cache = IdentityCache()
        self.hooks = Hooks()

    def __repr__(self) -> str:
        return f"SignalState(#{self.id}, subscribers={len(self.subscribers)})"
