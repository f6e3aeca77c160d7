"""
DONTCLOSETHIS — Scheduler & Timer Registry

Single-threaded cooperative event loop for the game. Every timeout, interval
and animation-frame callback goes through one Scheduler, ordered by
(due time, creation order), so timer callbacks, input events and reporter
work interleave on one logical thread.

Ownership:
    TimerRegistry.active      — handles owned by the current level. Cancelled
                                 in one sweep by clear_active() on every
                                 level transition.
    TimerRegistry.persistent  — handles owned by the Session (the elapsed-time
                                 ticker). Survive level transitions.

Challenges never touch the Scheduler directly. They receive a LevelTimers
view that registers every handle it creates, and that refuses to create live
handles once the level has been torn down.

Usage:
    from engine.timers import ManualClock, Scheduler, TimerRegistry, LevelTimers

    clock = ManualClock()
    scheduler = Scheduler(clock)
    registry = TimerRegistry()
    timers = LevelTimers(scheduler, registry)
    timers.call_later(3.0, on_timeout)
    scheduler.advance(3.0)       # fires on_timeout at t=3.0
    registry.clear_active()      # cancels anything still pending
"""

from __future__ import annotations

import heapq
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

logger = logging.getLogger("dontclosethis.timers")

FRAME_RATE = 60
FRAME_INTERVAL = 1.0 / FRAME_RATE


# ═══════════════════════════════════════════════════════════════
# Clocks
# ═══════════════════════════════════════════════════════════════

class Clock:
    """Source of monotonic time in seconds."""

    def now(self) -> float:
        raise NotImplementedError


class MonotonicClock(Clock):
    """Wall-clock time for real play."""

    def now(self) -> float:
        return time.monotonic()


class ManualClock(Clock):
    """Clock that only moves when told to. Used by tests and replays."""

    def __init__(self, start: float = 0.0):
        self._now = float(start)

    def now(self) -> float:
        return self._now

    def set(self, value: float):
        if value < self._now:
            raise ValueError(f"ManualClock cannot go backwards ({value} < {self._now})")
        self._now = float(value)

    def advance(self, seconds: float):
        self.set(self._now + seconds)


# ═══════════════════════════════════════════════════════════════
# Handles
# ═══════════════════════════════════════════════════════════════

@dataclass(eq=False)
class TimerHandle:
    """Opaque handle to a scheduled callback.

    kind is "timeout" (one-shot), "interval" (repeating) or "frame"
    (one-shot at the next animation frame).
    """
    callback: Callable[[], None]
    due: float
    kind: str = "timeout"
    interval: Optional[float] = None
    label: str = ""
    cancelled: bool = False
    fire_count: int = 0
    _seq: int = field(default=0, repr=False)

    def cancel(self):
        self.cancelled = True

    @property
    def active(self) -> bool:
        """True while the handle can still fire."""
        if self.cancelled:
            return False
        if self.kind == "interval":
            return True
        return self.fire_count == 0


# ═══════════════════════════════════════════════════════════════
# Scheduler
# ═══════════════════════════════════════════════════════════════

class Scheduler:
    """Cooperative timer queue over a Clock.

    Nothing fires on its own: callers drive the loop with run_due() (real
    clock), advance() (ManualClock) or run_forever().
    """

    def __init__(self, clock: Clock = None):
        self.clock = clock or MonotonicClock()
        self._queue: list[tuple[float, int, TimerHandle]] = []
        self._counter = itertools.count()

    # ── Scheduling ────────────────────────────────────────────

    def _push(self, handle: TimerHandle) -> TimerHandle:
        handle._seq = next(self._counter)
        heapq.heappush(self._queue, (handle.due, handle._seq, handle))
        return handle

    def call_later(self, delay: float, callback: Callable[[], None],
                   label: str = "") -> TimerHandle:
        """One-shot callback after `delay` seconds (setTimeout)."""
        delay = max(0.0, float(delay))
        return self._push(TimerHandle(callback, self.clock.now() + delay,
                                      kind="timeout", label=label))

    def call_soon(self, callback: Callable[[], None], label: str = "") -> TimerHandle:
        """Run on the next tick, after the current callback returns."""
        return self.call_later(0.0, callback, label=label)

    def call_every(self, interval: float, callback: Callable[[], None],
                   label: str = "") -> TimerHandle:
        """Repeating callback every `interval` seconds (setInterval)."""
        if interval <= 0:
            raise ValueError(f"Interval must be positive, got {interval}")
        return self._push(TimerHandle(callback, self.clock.now() + interval,
                                      kind="interval", interval=float(interval),
                                      label=label))

    def request_frame(self, callback: Callable[[], None], label: str = "") -> TimerHandle:
        """One-shot callback at the next animation frame (requestAnimationFrame)."""
        return self._push(TimerHandle(callback, self.clock.now() + FRAME_INTERVAL,
                                      kind="frame", label=label))

    # ── Introspection ─────────────────────────────────────────

    def pending(self) -> int:
        """Number of handles that can still fire."""
        return sum(1 for _, _, h in self._queue if h.active)

    def next_due(self) -> Optional[float]:
        self._drop_dead()
        return self._queue[0][0] if self._queue else None

    def _drop_dead(self):
        while self._queue and not self._queue[0][2].active:
            heapq.heappop(self._queue)

    # ── Dispatch ──────────────────────────────────────────────

    def _fire(self, handle: TimerHandle):
        handle.fire_count += 1
        if handle.kind == "interval" and not handle.cancelled:
            handle.due += handle.interval
            heapq.heappush(self._queue, (handle.due, handle._seq, handle))
        try:
            handle.callback()
        except Exception:
            logger.exception(f"Timer callback failed ({handle.kind} {handle.label or '?'})")

    def run_due(self, now: float = None) -> int:
        """Fire every live handle due at or before `now`. Returns fired count."""
        if now is None:
            now = self.clock.now()
        fired = 0
        while True:
            self._drop_dead()
            if not self._queue or self._queue[0][0] > now:
                return fired
            _, _, handle = heapq.heappop(self._queue)
            self._fire(handle)
            fired += 1

    def advance(self, seconds: float) -> int:
        """Move a ManualClock forward, firing handles at their own due times.

        Each callback observes clock.now() equal to its due time, so timing
        challenges measure exactly what a real clock would have reported.
        """
        if not isinstance(self.clock, ManualClock):
            raise TypeError("advance() requires a ManualClock")
        target = self.clock.now() + seconds
        fired = 0
        while True:
            self._drop_dead()
            if not self._queue or self._queue[0][0] > target:
                break
            due, _, handle = heapq.heappop(self._queue)
            if due > self.clock.now():
                self.clock.set(due)
            self._fire(handle)
            fired += 1
        self.clock.set(target)
        return fired

    def run_frames(self, count: int) -> int:
        """Advance a ManualClock by `count` animation frames."""
        return self.advance(count * FRAME_INTERVAL)

    def run_forever(self, until: Callable[[], bool] = None, poll: float = 0.005):
        """Drive the loop in real time until `until()` returns True."""
        while until is None or not until():
            self.run_due()
            nxt = self.next_due()
            if nxt is None:
                if until is None:
                    return
                time.sleep(poll)
                continue
            time.sleep(max(0.0, min(poll, nxt - self.clock.now())))


# ═══════════════════════════════════════════════════════════════
# Registry
# ═══════════════════════════════════════════════════════════════

class TimerRegistry:
    """Cancellation sets for the active level and for the session."""

    def __init__(self):
        self._active: list[TimerHandle] = []
        self._persistent: list[TimerHandle] = []

    def register(self, handle: TimerHandle) -> TimerHandle:
        self._active.append(handle)
        return handle

    def register_persistent(self, handle: TimerHandle) -> TimerHandle:
        self._persistent.append(handle)
        return handle

    @property
    def active_handles(self) -> tuple:
        return tuple(self._active)

    @property
    def persistent_handles(self) -> tuple:
        return tuple(self._persistent)

    def clear_active(self) -> int:
        """Cancel every level-owned handle, then empty the set."""
        count = 0
        for handle in self._active:
            if handle.active:
                count += 1
            handle.cancel()
        self._active = []
        if count:
            logger.debug(f"Cancelled {count} level timer(s)")
        return count

    def clear_all(self) -> int:
        """Cancel level and session handles (session end)."""
        count = self.clear_active()
        for handle in self._persistent:
            if handle.active:
                count += 1
            handle.cancel()
        self._persistent = []
        return count


class LevelTimers:
    """The timer API a challenge sees.

    Every handle created here lands in the registry's active set. After
    close() (level teardown) new requests return an already-cancelled handle,
    so a late callback cannot resurrect a loop for a finished level.
    """

    def __init__(self, scheduler: Scheduler, registry: TimerRegistry):
        self._scheduler = scheduler
        self._registry = registry
        self.closed = False

    def _dead(self, callback, kind, label) -> TimerHandle:
        return TimerHandle(callback, self._scheduler.clock.now(), kind=kind,
                           label=label, cancelled=True)

    def call_later(self, delay: float, callback: Callable[[], None],
                   label: str = "") -> TimerHandle:
        if self.closed:
            return self._dead(callback, "timeout", label)
        return self._registry.register(self._scheduler.call_later(delay, callback, label))

    def call_every(self, interval: float, callback: Callable[[], None],
                   label: str = "") -> TimerHandle:
        if self.closed:
            return self._dead(callback, "interval", label)
        return self._registry.register(self._scheduler.call_every(interval, callback, label))

    def request_frame(self, callback: Callable[[], None], label: str = "") -> TimerHandle:
        if self.closed:
            return self._dead(callback, "frame", label)
        return self._registry.register(self._scheduler.request_frame(callback, label))

    def close(self):
        self.closed = True
