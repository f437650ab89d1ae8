from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, Optional

from vicompass.core.timeline import EventKind, Timeline, timeline
from vicompass.core.timers import TimerFactory, TimerHandle, thread_timer
from vicompass.feedback.cadence import FeedbackCadence, FeedbackEvent

logger = logging.getLogger("vicompass.feedback")

Player = Callable[[FeedbackEvent], None]


@dataclass
class SchedulerState:
    pending_fire_time: Optional[float] = None
    last_fire_time: Optional[float] = None
    active_interval: Optional[float] = None


class FeedbackScheduler:
    """Turns a stream of cadences into discrete, evenly paced feedback fires.

    Two triggers drive it: ``reevaluate`` (the periodic correction check) and
    the single-shot timer it arms for itself. Both run the same re-arm/fire
    protocol inside one lock, so cancelling the old timer, updating the state
    and arming the new timer happen as a unit. Every armed timer carries a
    generation number; a callback that lost the race to a cancel or re-arm
    finds its generation stale and returns without firing.

    The player is called outside the lock. A failing player is logged and
    otherwise ignored.
    """

    def __init__(
        self,
        player: Player,
        *,
        clock: Callable[[], float] = time.monotonic,
        timer_factory: TimerFactory = thread_timer,
        events: Optional[Timeline] = None,
    ) -> None:
        self._player = player
        self._clock = clock
        self._timer_factory = timer_factory
        self._events = events if events is not None else timeline
        self._lock = threading.Lock()
        self._state = SchedulerState()
        self._cadence: Optional[FeedbackCadence] = None
        self._timer: Optional[TimerHandle] = None
        self._generation = 0
        self._fire_count = 0

    # Public API -----------------------------------------------------------
    def reevaluate(self, cadence: Optional[FeedbackCadence]) -> Optional[FeedbackEvent]:
        """Apply a freshly derived cadence; returns the event if one fired now."""
        with self._lock:
            event = self._apply(cadence)
        if event is not None:
            self._play(event)
        return event

    def cancel(self) -> None:
        """Drop any pending fire and return to idle."""
        with self._lock:
            was_armed = self._cadence is not None
            self._reset()
        if was_armed:
            logger.debug("feedback cancelled")

    def state(self) -> SchedulerState:
        with self._lock:
            return replace(self._state)

    @property
    def cadence(self) -> Optional[FeedbackCadence]:
        with self._lock:
            return self._cadence

    @property
    def is_idle(self) -> bool:
        with self._lock:
            return self._cadence is None and self._timer is None

    @property
    def fire_count(self) -> int:
        with self._lock:
            return self._fire_count

    # Protocol (caller holds the lock) ---------------------------------------
    def _apply(self, cadence: Optional[FeedbackCadence]) -> Optional[FeedbackEvent]:
        if cadence is None:
            self._reset()
            return None
        self._cadence = cadence
        interval = cadence.interval_s
        self._state.active_interval = interval
        now = self._clock()
        last = self._state.last_fire_time
        if self._timer is None or last is None:
            return self._fire(now, cadence)
        elapsed = now - last
        if interval <= elapsed:
            # the new cadence is due already; the old wait is obsolete
            return self._fire(now, cadence)
        # keep the existing anchor: next fire lands at last + interval
        self._arm(interval - elapsed, now)
        return None

    def _fire(self, now: float, cadence: FeedbackCadence) -> FeedbackEvent:
        self._state.last_fire_time = now
        self._fire_count += 1
        self._arm(cadence.interval_s, now)
        event = FeedbackEvent(
            sound=cadence.sound,
            phrase=cadence.phrase,
            interval_s=cadence.interval_s,
            fired_at=now,
        )
        self._events.add(
            EventKind.FIRE,
            cadence.sound.value,
            interval_s=round(cadence.interval_s, 3),
            phrase=cadence.phrase,
        )
        return event

    def _arm(self, delay: float, now: float) -> None:
        self._cancel_timer()
        generation = self._generation
        timer = self._timer_factory(delay, lambda: self._on_timer(generation))
        self._timer = timer
        self._state.pending_fire_time = now + delay
        timer.start()
        logger.debug("feedback armed | delay=%.3f gen=%d", delay, generation)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        # invalidates callbacks already blocked on the lock
        self._generation += 1
        self._state.pending_fire_time = None

    def _reset(self) -> None:
        had_cadence = self._cadence is not None
        self._cancel_timer()
        self._cadence = None
        self._state = SchedulerState()
        if had_cadence:
            self._events.add(EventKind.CANCEL, "feedback")

    # Timer callback -------------------------------------------------------
    def _on_timer(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._timer = None
            self._state.pending_fire_time = None
            try:
                event = self._apply(self._cadence)
            except Exception:
                logger.exception("feedback timer failed")
                self._reset()
                return
        if event is not None:
            self._play(event)

    def _play(self, event: FeedbackEvent) -> None:
        try:
            self._player(event)
        except Exception:
            logger.exception("playback failed | sound=%s phrase=%s", event.sound.value, event.phrase)
