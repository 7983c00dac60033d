"""Effect tracking and notification scheduling — the heart of deepsignal.

Uses contextvars to record which effect is currently running, so that reading
a signal inside it subscribes the effect automatically, and which callback is
currently being notified, so that its own writes do not re-trigger it.

Scheduling: a write never calls subscribers synchronously. It queues the
signal once (later writes are absorbed) and arms a single drain, which runs:

- when the outermost @action / transaction() exits, if batching;
- through the callable installed with set_scheduler(), if any;
- via loop.call_soon() when an asyncio loop is running in this thread;
- immediately otherwise (a plain synchronous program has no later tick).
"""

from __future__ import annotations

import asyncio
import contextvars
from contextlib import contextmanager
from typing import TYPE_CHECKING, Callable, Hashable, Iterator

if TYPE_CHECKING:
    from deepsignal.effect import Effect

# The effect whose body is running. Signal reads subscribe it.
current_effect: contextvars.ContextVar[Effect | None] = contextvars.ContextVar(
    "current_effect", default=None
)

# The callback currently running on behalf of a signal (effect or subscriber).
# Signal writes exclude it from the next flush.
current_subscriber: contextvars.ContextVar[Callable | None] = contextvars.ContextVar(
    "current_subscriber", default=None
)


@contextmanager
def tracking(effect: Effect) -> Iterator[None]:
    """Run a block with `effect` as both the tracked effect and active subscriber."""
    effect_token = current_effect.set(effect)
    subscriber_token = current_subscriber.set(effect)
    try:
        yield
    finally:
        current_subscriber.reset(subscriber_token)
        current_effect.reset(effect_token)


@contextmanager
def notifying(callback: Callable) -> Iterator[None]:
    """Run a block on behalf of a plain subscriber. Reads inside it are not tracked."""
    effect_token = current_effect.set(None)
    subscriber_token = current_subscriber.set(callback)
    try:
        yield
    finally:
        current_subscriber.reset(subscriber_token)
        current_effect.reset(effect_token)


# ─── Scheduler ──────────────────────────────────────────────────────────────

# Batch depth counter. When > 0, draining is deferred to end_batch().
_batch_depth: int = 0

# Keys awaiting a flush, in scheduling order, mapped to their flush callable.
_pending: dict[Hashable, Callable[[], None]] = {}

# True while drain() runs; guards against re-entrant draining.
_draining: bool = False

# The loop or scheduler a drain is already queued on, or None.
_armed_on: object | None = None

_scheduler: Callable[[Callable[[], None]], object] | None = None


def set_scheduler(scheduler: Callable[[Callable[[], None]], object] | None) -> None:
    """Install the callable used to defer flushes, or None to restore the default.

    The scheduler receives the drain function and must call it once the current
    synchronous span of work has finished:

        deepsignal.set_scheduler(loop.call_soon)
        deepsignal.set_scheduler(lambda fn: app.call_later(fn))
    """
    global _scheduler, _armed_on
    _scheduler = scheduler
    _armed_on = None


def schedule(key: Hashable, flush: Callable[[], None]) -> None:
    """Queue `flush` for `key` unless a flush for `key` is already pending."""
    if key in _pending:
        return
    _pending[key] = flush
    _arm()


def _arm() -> None:
    global _armed_on
    if _batch_depth > 0 or _draining:
        return

    if _scheduler is not None:
        if _armed_on is not _scheduler:
            _armed_on = _scheduler
            _scheduler(drain)
        return

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        drain()
        return

    if _armed_on is not loop:
        _armed_on = loop
        loop.call_soon(drain, context=contextvars.Context())


def drain() -> None:
    """Run every pending flush. Flushes scheduled meanwhile run in the same pass."""
    global _draining, _armed_on
    _armed_on = None
    if _draining:
        return
    _draining = True
    try:
        while _pending:
            # Snapshot and clear — flushes may schedule new ones during run.
            batch = list(_pending.values())
            _pending.clear()
            for flush in batch:
                flush()
    finally:
        _draining = False


def begin_batch() -> None:
    """Enter a batching scope. Nested batches are supported."""
    global _batch_depth
    _batch_depth += 1


def end_batch() -> None:
    """Exit a batching scope. When the outermost scope exits, drain pending flushes."""
    global _batch_depth
    _batch_depth -= 1
    if _batch_depth == 0 and not _draining:
        drain()


@contextmanager
def transaction() -> Iterator[None]:
    """Batch every signal write made inside the block.

    Each signal written in the block flushes once, with its final value, when
    the outermost transaction exits. That happens even if the block raised.

    Usage:
        with transaction():
            user.value["name"] = "Grace"
            user.value["address"]["city"] = "Arlington"
            # subscribers of user run here, once
    """
    begin_batch()
    try:
        yield
    finally:
        end_batch()


def get_pending_count() -> int:
    """Number of signals waiting to flush. Useful for testing."""
    return len(_pending)


def _reset() -> None:
    global _batch_depth, _draining, _armed_on, _scheduler
    _batch_depth = 0
    _draining = False
    _armed_on = None
    _scheduler = None
    _pending.clear()
