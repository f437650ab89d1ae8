from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from vicompass.core.timeline import EventKind, Timeline, timeline
from vicompass.core.timers import TimerFactory, TimerHandle, thread_timer
from vicompass.navigation.heading import normalize_heading

logger = logging.getLogger("vicompass.target")


class TargetController:
    """Owns the target heading and every way the user can move it.

    Steps and tacks only act while a target exists. A sustained press is an
    explicit ``start_continuous_step``/``stop_continuous_step`` pair: the first
    step happens immediately, then it repeats on chained single-shot timers
    until stopped.
    """

    def __init__(
        self,
        *,
        step_degrees: float = 1.0,
        tack_degrees: float = 100.0,
        repeat_interval_s: float = 0.2,
        heading_sink: Optional[Callable[[Optional[float]], object]] = None,
        on_change: Optional[Callable[[Optional[float]], None]] = None,
        timer_factory: TimerFactory = thread_timer,
        events: Optional[Timeline] = None,
    ) -> None:
        self.step_degrees = float(step_degrees)
        self.tack_degrees = float(tack_degrees)
        self.repeat_interval_s = float(repeat_interval_s)
        self._heading_sink = heading_sink
        self._on_change = on_change
        self._timer_factory = timer_factory
        self._events = events if events is not None else timeline
        self._lock = threading.Lock()
        self._target: Optional[float] = None
        self._tracking = False
        self._repeat_timer: Optional[TimerHandle] = None
        self._repeat_delta = 0.0
        self._repeat_generation = 0

    @property
    def target(self) -> Optional[float]:
        with self._lock:
            return self._target

    @property
    def tracking(self) -> bool:
        with self._lock:
            return self._tracking

    @property
    def repeating(self) -> bool:
        with self._lock:
            return self._repeat_timer is not None

    # Tracking -------------------------------------------------------------
    def set_tracking_on(self, current_estimate: Optional[float]) -> Optional[float]:
        """Start tracking, capturing the current heading as target if none is set."""
        with self._lock:
            self._tracking = True
            changed = self._target is None and current_estimate is not None
            if changed:
                self._target = normalize_heading(current_estimate)
            target = self._target
        logger.info("tracking on | target=%s", _fmt(target))
        if changed:
            self._changed("tracking_on", target)
        return target

    def set_tracking_off(self) -> None:
        with self._lock:
            self._tracking = False
            had_target = self._target is not None
            self._target = None
            self._stop_repeat_locked()
        logger.info("tracking off")
        if had_target:
            self._changed("tracking_off", None)

    def ensure_target(self, current_estimate: Optional[float]) -> Optional[float]:
        """Capture a target that tracking-on could not take for lack of heading."""
        with self._lock:
            if not self._tracking or self._target is not None or current_estimate is None:
                return self._target
            self._target = normalize_heading(current_estimate)
            target = self._target
        logger.info("target captured | target=%s", _fmt(target))
        # called from the evaluation path itself, so no change callback
        self._changed("captured", target, notify=False)
        return target

    # Discrete adjustments -------------------------------------------------
    def step(self, delta: float) -> Optional[float]:
        return self._adjust(delta, "step")

    def tack(self, delta: float) -> Optional[float]:
        return self._adjust(delta, "tack")

    def step_port(self) -> Optional[float]:
        return self.step(-self.step_degrees)

    def step_stbd(self) -> Optional[float]:
        return self.step(self.step_degrees)

    def tack_port(self) -> Optional[float]:
        return self.tack(-self.tack_degrees)

    def tack_stbd(self) -> Optional[float]:
        return self.tack(self.tack_degrees)

    def set_override_heading(self, degrees: float) -> float:
        """Manual heading input for when no physical compass is available."""
        heading = normalize_heading(round(float(degrees)))
        if self._heading_sink is not None:
            self._heading_sink(heading)
        return heading

    # Sustained press ------------------------------------------------------
    def start_continuous_step(self, delta: float) -> bool:
        with self._lock:
            if self._target is None:
                return False
            self._stop_repeat_locked()
            self._repeat_delta = float(delta)
            self._arm_repeat_locked()
            target = self._shift_locked(delta)
        logger.debug("continuous step started | delta=%.1f", delta)
        self._changed("step", target, delta=delta)
        return True

    def stop_continuous_step(self) -> None:
        with self._lock:
            was_running = self._repeat_timer is not None
            self._stop_repeat_locked()
        if was_running:
            logger.debug("continuous step stopped")

    # Internals ------------------------------------------------------------
    def _adjust(self, delta: float, kind: str) -> Optional[float]:
        with self._lock:
            if self._target is None:
                return None
            target = self._shift_locked(delta)
        logger.debug("%s | delta=%.1f target=%.1f", kind, delta, target)
        self._changed(kind, target, delta=delta)
        return target

    def _shift_locked(self, delta: float) -> float:
        self._target = normalize_heading(self._target + float(delta))
        return self._target

    def _arm_repeat_locked(self) -> None:
        generation = self._repeat_generation
        timer = self._timer_factory(self.repeat_interval_s, lambda: self._on_repeat(generation))
        self._repeat_timer = timer
        timer.start()

    def _stop_repeat_locked(self) -> None:
        if self._repeat_timer is not None:
            self._repeat_timer.cancel()
            self._repeat_timer = None
        self._repeat_generation += 1

    def _on_repeat(self, generation: int) -> None:
        with self._lock:
            if generation != self._repeat_generation:
                return
            if self._target is None:
                self._repeat_timer = None
                return
            delta = self._repeat_delta
            self._arm_repeat_locked()
            target = self._shift_locked(delta)
        self._changed("step", target, delta=delta)

    def _changed(self, label: str, target: Optional[float], *, notify: bool = True, **data: float) -> None:
        self._events.add(EventKind.TARGET, label, target=target, **data)
        if notify and self._on_change is not None:
            try:
                self._on_change(target)
            except Exception:
                logger.exception("target change callback failed")


def _fmt(value: Optional[float]) -> str:
    return "none" if value is None else f"{value:.1f}"
