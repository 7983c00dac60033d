"""Effects — callbacks that re-run whenever a signal they read changes.

run_effect(body) runs body once, right away. Every signal whose `.value` is
read during that run subscribes the effect, and each later flush of such a
signal runs body again. Subscriptions only accumulate; an effect stops
re-running when it is disposed.

A failure inside body is logged and swallowed: the tracking slots are always
released, and the signal that triggered the run carries on with its flush.
"""

from __future__ import annotations

import logging
from typing import Callable

from deepsignal._tracking import tracking

logger = logging.getLogger("deepsignal.effect")


class Effect:
    """A tracked callback. Call it (or let a signal flush call it) to re-run the body."""

    __slots__ = ("_fn", "_dependencies", "_disposed", "__weakref__")

    def __init__(self, fn: Callable[[], None]) -> None:
        self._fn = fn
        self._dependencies: set = set()  # SignalStates this effect subscribed to
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def __call__(self, value: object = None) -> None:
        self._run()

    def _run(self) -> None:
        if self._disposed:
            return
        with tracking(self):
            try:
                self._fn()
            except Exception:
                logger.exception("Effect %s raised", _name(self._fn))

    def dispose(self) -> None:
        """Stop this effect. Unsubscribes it from every signal it read."""
        self._disposed = True
        for state in self._dependencies:
            state.subscribers.pop(self, None)
        self._dependencies.clear()

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        return f"Effect({_name(self._fn)}, {state})"


def _name(fn: Callable) -> str:
    return getattr(fn, "__qualname__", None) or repr(fn)


def run_effect(body: Callable[[], None]) -> Effect:
    """Run body now, then again whenever any signal it read flushes.

    Returns the Effect (call .dispose() to stop). Works as a decorator too.

    Usage:
        counter = create_signal(0)
        log = []

        effect = run_effect(lambda: log.append(counter.value))
        # log == [0] — ran immediately

        counter.value = 1
        # log == [0, 1] — once the flush has run

        effect.dispose()
        counter.value = 2
        # log == [0, 1] — stopped
    """
    effect = Effect(body)
    effect._run()
    return effect
