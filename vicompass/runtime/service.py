from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from vicompass.core.config import CompassSettings, load_settings
from vicompass.core.timeline import EventKind, Timeline, timeline
from vicompass.core.timers import TimerFactory, thread_timer
from vicompass.feedback import (
    FeedbackCadence,
    FeedbackEvent,
    FeedbackMode,
    FeedbackScheduler,
    SchedulerState,
    derive_cadence,
)
from vicompass.navigation import (
    Correction,
    CorrectionDisplay,
    HeadingSmoother,
    Responsiveness,
    TargetController,
    compute_correction,
    describe_correction,
)
from vicompass.navigation.correction import NO_DATA_TEXT, format_heading, validate_tolerance

logger = logging.getLogger("vicompass.runtime")


def log_player(event: FeedbackEvent) -> None:
    """Stand-in playback: records the cue that would be played."""
    logger.info(
        "play | sound=%s phrase=%s interval=%.3f",
        event.sound.value,
        event.phrase,
        event.interval_s,
    )


@dataclass
class CompassStatus:
    running: bool = False
    heading: Optional[float] = None
    target: Optional[float] = None
    heading_text: str = NO_DATA_TEXT
    target_text: str = NO_DATA_TEXT
    tracking: bool = False
    correction: Optional[Correction] = None
    display: Optional[CorrectionDisplay] = None
    cadence: Optional[FeedbackCadence] = None
    scheduler: SchedulerState = field(default_factory=SchedulerState)
    diff_tolerance: float = 10.0
    responsiveness: str = Responsiveness.MEDIUM.value
    feedback_mode: str = FeedbackMode.RHYTHMIC.value
    events: List[Dict[str, Any]] = field(default_factory=list)


class CompassRuntime:
    """Wires smoother, correction, target and feedback together.

    A background thread reevaluates the correction every ``tick_interval_s``;
    user commands that change the target or the tolerance reevaluate at once.

    Evaluation (target read, cadence derivation, hand-off to the scheduler) and
    the silencing paths (tracking off, ``stop``) share one reentrant lock, so a
    cancel can never be overwritten by a cadence computed before it. A stopped
    runtime stays silent until ``start`` is called again.
    """

    def __init__(
        self,
        settings: Optional[CompassSettings] = None,
        *,
        player: Optional[Callable[[FeedbackEvent], None]] = None,
        clock: Callable[[], float] = time.monotonic,
        timer_factory: TimerFactory = thread_timer,
        events: Optional[Timeline] = None,
    ) -> None:
        self._settings = settings or load_settings()
        self._events = events if events is not None else timeline
        self._lock = threading.Lock()
        # reentrant: target commands tick from inside set_tracking
        self._eval_lock = threading.RLock()
        self._halted = False
        self._thread: Optional[threading.Thread] = None
        self._stop_evt = threading.Event()
        self._running = False
        self._last_correction: Optional[Correction] = None

        s = self._settings
        self.smoother = HeadingSmoother(s.responsiveness, mode=s.smoothing_mode)
        self.target = TargetController(
            step_degrees=s.step_degrees,
            tack_degrees=s.tack_degrees,
            repeat_interval_s=s.touch_repeat_interval_s,
            heading_sink=self.push_heading,
            on_change=self._on_target_changed,
            timer_factory=timer_factory,
            events=self._events,
        )
        self.scheduler = FeedbackScheduler(
            player or log_player,
            clock=clock,
            timer_factory=timer_factory,
            events=self._events,
        )

    @property
    def settings(self) -> CompassSettings:
        with self._lock:
            return self._settings

    # Lifecycle ------------------------------------------------------------
    def start(self) -> None:
        with self._lock:
            if self._running:
                return
            self._running = True
            self._halted = False
            self._stop_evt.clear()
            self._thread = threading.Thread(target=self._run_loop, name="compass-tick", daemon=True)
            self._thread.start()
        logger.info(
            "Runtime started | tolerance=%s responsiveness=%s mode=%s",
            self.settings.diff_tolerance,
            self.settings.responsiveness.value,
            self.settings.feedback_mode.value,
        )

    def stop(self) -> None:
        with self._lock:
            self._stop_evt.set()
            self._running = False
            thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)
        with self._eval_lock:
            self._halted = True
            self.target.stop_continuous_step()
            self.scheduler.cancel()
        logger.info("Runtime stopped")

    def _run_loop(self) -> None:
        while not self._stop_evt.wait(self.settings.tick_interval_s):
            try:
                self.tick()
            except Exception:
                logger.exception("runtime error")

    # Evaluation -----------------------------------------------------------
    def tick(self) -> Optional[Correction]:
        """Recompute the correction and hand the derived cadence to the scheduler."""
        with self._eval_lock:
            settings = self.settings
            heading = self.smoother.current_estimate()
            target = self.target.ensure_target(heading)
            correction = compute_correction(heading, target, settings.diff_tolerance)
            cadence = derive_cadence(correction, settings.diff_tolerance, settings.feedback_mode, settings)
            if self._halted:
                cadence = None
            self.scheduler.reevaluate(cadence)
            with self._lock:
                self._last_correction = correction
            return correction

    def _on_target_changed(self, _target: Optional[float]) -> None:
        self.tick()

    # Heading input --------------------------------------------------------
    def push_heading(self, raw: Optional[float]) -> Optional[float]:
        return self.smoother.update(raw)

    def set_override_heading(self, degrees: float) -> float:
        return self.target.set_override_heading(degrees)

    # Commands -------------------------------------------------------------
    def set_tracking(self, on: bool) -> Optional[float]:
        if on:
            with self._eval_lock:
                target = self.target.set_tracking_on(self.smoother.current_estimate())
                self.tick()
            return target
        with self._eval_lock:
            self.target.set_tracking_off()
            # synchronous: no fire may follow tracking-off
            self.scheduler.cancel()
            with self._lock:
                self._last_correction = None
        return None

    def set_tolerance(self, tolerance: float) -> float:
        value = validate_tolerance(tolerance)
        self._update_settings(diff_tolerance=value)
        logger.debug("tolerance changed | tolerance=%s", value)
        self.tick()
        return value

    def set_responsiveness(self, value: "Responsiveness | str | int") -> Responsiveness:
        level = Responsiveness.parse(value)
        self.smoother.set_responsiveness(level)
        self._update_settings(responsiveness=level)
        logger.debug("responsiveness changed | level=%s", level.value)
        self.tick()
        return level

    def set_feedback_mode(self, value: "FeedbackMode | str") -> FeedbackMode:
        mode = FeedbackMode.parse(value)
        self._update_settings(feedback_mode=mode)
        logger.debug("feedback mode changed | mode=%s", mode.value)
        self.tick()
        return mode

    def step_port(self) -> Optional[float]:
        return self.target.step_port()

    def step_stbd(self) -> Optional[float]:
        return self.target.step_stbd()

    def tack_port(self) -> Optional[float]:
        return self.target.tack_port()

    def tack_stbd(self) -> Optional[float]:
        return self.target.tack_stbd()

    def start_continuous_step(self, direction: int) -> bool:
        delta = self.settings.step_degrees if direction > 0 else -self.settings.step_degrees
        return self.target.start_continuous_step(delta)

    def stop_continuous_step(self) -> None:
        self.target.stop_continuous_step()

    def _update_settings(self, **changes: Any) -> None:
        with self._lock:
            self._settings = self._settings.with_changes(**changes)
        self._events.add(EventKind.CONFIG, "settings", **{k: getattr(v, "value", v) for k, v in changes.items()})

    # Status ---------------------------------------------------------------
    def snapshot(self, n_events: int = 20) -> CompassStatus:
        settings = self.settings
        with self._lock:
            running = self._running
            correction = self._last_correction
        heading = self.smoother.current_estimate()
        target = self.target.target
        return CompassStatus(
            running=running,
            heading=heading,
            target=target,
            heading_text=format_heading(heading),
            target_text=format_heading(target),
            tracking=self.target.tracking,
            correction=correction,
            display=describe_correction(correction),
            cadence=self.scheduler.cadence,
            scheduler=self.scheduler.state(),
            diff_tolerance=settings.diff_tolerance,
            responsiveness=settings.responsiveness.value,
            feedback_mode=settings.feedback_mode.value,
            events=self._events.last(n_events),
        )
