"""Actions — functions whose signal writes land as one update.

An action runs its body inside transaction(), so every signal it writes
notifies once, after the outermost action returns or raises, no matter how
many fields of it the body touched.
"""

from __future__ import annotations

import functools
from typing import Callable, ParamSpec, TypeVar

from deepsignal._tracking import transaction

__all__ = ["action", "transaction"]

P = ParamSpec("P")
R = TypeVar("R")


def action(fn: Callable[P, R]) -> Callable[P, R]:
    """Decorator: run fn as one batched update and return its result.

    Usage:
        cart = create_signal({"items": [], "total": 0})

        @action
        def add_item(name, price):
            cart.value["items"].append(name)
            cart.value["total"] += price

        add_item("tea", 3)  # subscribers of cart run once, after both writes
    """

    @functools.wraps(fn)
    def batched(*args: P.args, **kwargs: P.kwargs) -> R:
        with transaction():
            return fn(*args, **kwargs)

    return batched
