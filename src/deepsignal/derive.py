"""Derived signals — a signal whose value is computed from other signals.

derive(compute) evaluates compute once, tracking the signals it reads, and
seeds a new Derived signal with the result. From then on compute runs as an
effect: whenever one of those signals flushes it is re-evaluated, and the
derived signal is written only if the result actually changed. That write
notifies the derived signal's own subscribers in turn, so chains compose, but
there is no glitch deduplication across several levels.

Derived.dispose() detaches it from its sources; it keeps its last value.
"""

from __future__ import annotations

from typing import Callable, TypeVar

from deepsignal._tracking import tracking
from deepsignal.effect import Effect
from deepsignal.signal import Signal

T = TypeVar("T")


class Derived(Signal[T]):
    """A Signal kept up to date by an Effect over its sources."""

    __slots__ = ("_effect",)

    def __init__(self, initial: T, effect: Effect) -> None:
        super().__init__(initial)
        self._effect = effect

    @property
    def effect(self) -> Effect:
        """The effect that recomputes this signal."""
        return self._effect

    def dispose(self) -> None:
        """Stop following the sources. The current value and subscribers stay."""
        self._effect.dispose()

    def clone(self) -> Derived[T]:
        view = super().clone()
        view._effect = self._effect
        return view


def derive(compute: Callable[[], T]) -> Derived[T]:
    """Create a signal that follows compute().

    Usage:
        counter = create_signal(1)

        @derive
        def doubled():
            return counter.value * 2

        doubled.value  # 2
        counter.value = 3
        doubled.value  # 6, once the flush has run
        doubled.dispose()
    """
    derived: Derived[T]

    def _recompute() -> None:
        value = compute()
        current = derived.peek()
        if value is current or value == current:
            return
        derived.value = value

    effect = Effect(_recompute)
    # The seeding run subscribes the effect; a failure here has no value to fall back on.
    with tracking(effect):
        initial = compute()
    derived = Derived(initial, effect)
    return derived
