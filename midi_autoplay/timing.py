"""Timer source, cancellable countdown and remaining-time ticker.

Everything here runs on one event loop. The timer source has the same
after/after_cancel shape as a tkinter root, plus a thread-safe call_soon used
by backend threads to hand results back to the loop.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import math
from typing import Any, Callable, Protocol

log = logging.getLogger('midi_autoplay.timing')

COUNTDOWN_TICKS = 3
COUNTDOWN_INTERVAL_MS = 1000
TICKER_INTERVAL_MS = 1000


class TimerSource(Protocol):
    def after(self, ms: int, func: Callable[[], None]) -> Any: ...

    def after_cancel(self, timer_id: Any) -> None: ...

    def call_soon(self, func: Callable[[], None]) -> None: ...

    def time(self) -> float: ...


class AsyncioTimers:
    """TimerSource backed by an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop

    def after(self, ms: int, func: Callable[[], None]) -> asyncio.TimerHandle:
        return self._loop.call_later(ms / 1000.0, func)

    def after_cancel(self, timer_id: asyncio.TimerHandle) -> None:
        timer_id.cancel()

    def call_soon(self, func: Callable[[], None]) -> None:
        self._loop.call_soon_threadsafe(func)

    def time(self) -> float:
        return self._loop.time()


class CancellationToken:
    def __init__(self) -> None:
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class CountdownOutcome(enum.Enum):
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


class Countdown:
    """Counts `ticks` down at `interval_ms`, then reports COMPLETED once.

    on_tick(n) is called with ticks, ticks-1, ..., 1. cancel() stops the
    pending timer and reports CANCELLED instead; on_done is called exactly once.
    The token is checked right before COMPLETED is reported, so a cancel that
    lands before the final interval can never be reported as a completion.
    """

    def __init__(
        self,
        timers: TimerSource,
        on_done: Callable[[CountdownOutcome], None],
        on_tick: Callable[[int], None] | None = None,
        ticks: int = COUNTDOWN_TICKS,
        interval_ms: int = COUNTDOWN_INTERVAL_MS,
        token: CancellationToken | None = None,
    ):
        self._timers = timers
        self._on_done = on_done
        self._on_tick = on_tick
        self._interval_ms = interval_ms
        self.token = token or CancellationToken()
        self.remaining = ticks
        self._timer_id = None
        self._finished = False

    def start(self) -> None:
        if self._on_tick:
            self._on_tick(self.remaining)
        self._timer_id = self._timers.after(self._interval_ms, self._tick)

    def cancel(self) -> None:
        if self._finished:
            return
        self.token.cancel()
        if self._timer_id is not None:
            self._timers.after_cancel(self._timer_id)
            self._timer_id = None
        self._finish(CountdownOutcome.CANCELLED)

    def _tick(self) -> None:
        self._timer_id = None
        if self.token.cancelled or self._finished:
            return
        self.remaining -= 1
        if self.remaining > 0:
            if self._on_tick:
                self._on_tick(self.remaining)
            self._timer_id = self._timers.after(self._interval_ms, self._tick)
            return
        self._finish(CountdownOutcome.COMPLETED)

    def _finish(self, outcome: CountdownOutcome) -> None:
        self._finished = True
        self._on_done(outcome)


class RemainingTimeTicker:
    """Counts whole seconds down to zero, then calls on_expired once."""

    def __init__(
        self,
        timers: TimerSource,
        span_seconds: float,
        on_expired: Callable[[], None],
        on_tick: Callable[[int], None] | None = None,
        interval_ms: int = TICKER_INTERVAL_MS,
    ):
        self._timers = timers
        self._on_expired = on_expired
        self._on_tick = on_tick
        self._interval_ms = interval_ms
        self.remaining = max(0, math.ceil(span_seconds))
        self._timer_id = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        self._running = True
        if self._on_tick:
            self._on_tick(self.remaining)
        if self.remaining <= 0:
            self._expire()
            return
        self._timer_id = self._timers.after(self._interval_ms, self._tick)

    def cancel(self) -> None:
        self._running = False
        if self._timer_id is not None:
            self._timers.after_cancel(self._timer_id)
            self._timer_id = None

    def _tick(self) -> None:
        self._timer_id = None
        if not self._running:
            return
        self.remaining -= 1
        if self._on_tick:
            self._on_tick(self.remaining)
        if self.remaining <= 0:
            self._expire()
            return
        self._timer_id = self._timers.after(self._interval_ms, self._tick)

    def _expire(self) -> None:
        self._running = False
        log.debug('Remaining time reached zero')
        self._on_expired()
