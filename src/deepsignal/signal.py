"""Signals — values that notify their subscribers when anything inside them changes.

Reading `signal.value` inside an effect subscribes the effect. The value comes
back wrapped (see interception), so mutating any nested field of it is seen by
the signal exactly like assigning a new value.

Writes never call subscribers synchronously: each write schedules one flush of
the signal, further writes are absorbed until that flush runs, and the
callback that caused a write is left out of the flush it triggered.

All state lives in a SignalState. Instances are thin handles, and clone()
hands out another handle onto the same state.
"""

from __future__ import annotations

import functools
import logging
from typing import Callable, Generic, TypeVar

from deepsignal import _anchor
from deepsignal._tracking import current_effect, current_subscriber, notifying, schedule
from deepsignal.interception import Hooks, wrap
from deepsignal.normalize import normalize

logger = logging.getLogger("deepsignal.signal")

T = TypeVar("T")

Unsubscribe = Callable[[], None]


class Signal(Generic[T]):
    """A reactive container for one value, observed at any depth."""

    __slots__ = ("_state",)

    def __init__(self, initial: T) -> None:
        state = _anchor.SignalState(normalize(initial))
        changed = functools.partial(_changed, state)
        state.hooks = Hooks(after_set=changed, after_delete=changed)
        self._state = state

    @property
    def value(self) -> T:
        """The wrapped current value. Inside an effect, subscribes the effect."""
        state = self._state
        effect = current_effect.get()
        if effect is not None:
            state.subscribers.setdefault(effect, None)
            effect._dependencies.add(state)
        return wrap(state.value, state.hooks, state.cache)

    @value.setter
    def value(self, value: T) -> None:
        state = self._state
        plain = normalize(value)
        state.value = plain
        state.cache.clear()
        _changed(state)

    def peek(self) -> T:
        """Read the raw value without subscribing and without wrapping."""
        return self._state.value

    def subscribe(self, callback: Callable[[T], None]) -> Unsubscribe:
        """Call `callback(value)` on every flush. Returns a function that removes it.

        Subscribing the same callback twice has no additional effect. Removal
        is effective immediately, also for a flush already pending.
        """
        subscribers = self._state.subscribers
        subscribers.setdefault(callback, None)

        def _unsubscribe() -> None:
            subscribers.pop(callback, None)

        return _unsubscribe

    def clone(self) -> Signal[T]:
        """Another handle onto the same value, subscribers and cache."""
        view = object.__new__(type(self))
        view._state = self._state
        return view

    def __str__(self) -> str:
        return str(self._state.value)

    def __repr__(self) -> str:
        return f"Signal({self._state.value!r})"


def create_signal(initial: T) -> Signal[T]:
    """Create a Signal holding `initial`.

    Usage:
        user = create_signal({"name": "Ada", "address": {"city": "London"}})
        user.subscribe(lambda u: print(u["address"]["city"]))
        user.value["address"]["city"] = "Paris"   # prints "Paris" on flush
    """
    return Signal(initial)


def _changed(state: _anchor.SignalState) -> None:
    """Exclude the running callback from the next flush and schedule it."""
    for callback in (current_effect.get(), current_subscriber.get()):
        if callback is not None:
            state.suppressed.add(callback)
    schedule(state, functools.partial(_flush, state))


def _flush(state: _anchor.SignalState) -> None:
    suppressed, state.suppressed = state.suppressed, set()
    for callback in list(state.subscribers):
        # Unsubscribed since the snapshot, or the author of this update.
        if callback in suppressed or callback not in state.subscribers:
            continue
        value = wrap(state.value, state.hooks, state.cache)
        with notifying(callback):
            try:
                callback(value)
            except Exception:
                logger.exception("Subscriber %r of signal #%d failed", callback, state.id)
