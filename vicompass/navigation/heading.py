from __future__ import annotations

import math
import threading
from collections import deque
from enum import Enum
from typing import Deque, Optional

import numpy as np

from vicompass.core.errors import InvalidConfiguration

SMOOTHING_MODES = ("ema", "window")


def normalize_heading(degrees: float) -> float:
    """Wrap any angle into [0, 360)."""
    wrapped = float(degrees) % 360.0
    # -1e-15 % 360 rounds up to 360.0
    if wrapped >= 360.0:
        return 0.0
    return wrapped


def shortest_arc(current: float, target: float) -> float:
    """Signed turn from ``current`` to ``target`` in (-180, 180].

    Positive means turning clockwise (to starboard) is shorter.
    """
    diff = (float(target) - float(current)) % 360.0
    if diff > 180.0:
        diff -= 360.0
    return diff


class Responsiveness(Enum):
    SLOW = "slow"
    MEDIUM = "medium"
    FAST = "fast"

    @classmethod
    def parse(cls, value: "Responsiveness | str | int") -> "Responsiveness":
        """Accept an enum, its name/value, or a slow→fast index."""
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            members = list(cls)
            if 0 <= value < len(members):
                return members[value]
            raise InvalidConfiguration(f"responsiveness index out of range: {value}")
        if isinstance(value, str):
            key = value.strip().lower()
            for member in cls:
                if member.value == key:
                    return member
        raise InvalidConfiguration(f"unknown responsiveness: {value!r}")


# EMA weight given to each new raw sample
EMA_ALPHA = {
    Responsiveness.SLOW: 0.1,
    Responsiveness.MEDIUM: 0.25,
    Responsiveness.FAST: 0.5,
}

# samples averaged in window mode
WINDOW_SIZE = {
    Responsiveness.SLOW: 20,
    Responsiveness.MEDIUM: 8,
    Responsiveness.FAST: 3,
}


class HeadingSmoother:
    """Rolling estimate of the current heading from noisy raw samples.

    In ``ema`` mode each sample pulls the estimate along the shortest arc by
    the responsiveness weight. In ``window`` mode the estimate is the circular
    mean of the most recent samples. Either way a sample on the other side of
    north is treated as a small turn, never as a 359 degree swing.
    """

    def __init__(
        self,
        responsiveness: Responsiveness = Responsiveness.MEDIUM,
        *,
        mode: str = "ema",
    ) -> None:
        if mode not in SMOOTHING_MODES:
            raise InvalidConfiguration(f"smoothing mode must be one of {SMOOTHING_MODES}, got {mode!r}")
        self.mode = mode
        self._responsiveness = Responsiveness.parse(responsiveness)
        self._estimate: Optional[float] = None
        self._window: Deque[float] = deque(maxlen=max(WINDOW_SIZE.values()))
        self._count = 0
        self._lock = threading.Lock()

    @property
    def responsiveness(self) -> Responsiveness:
        return self._responsiveness

    @property
    def sample_count(self) -> int:
        return self._count

    def set_responsiveness(self, value: "Responsiveness | str | int") -> Responsiveness:
        level = Responsiveness.parse(value)
        with self._lock:
            self._responsiveness = level
            if self.mode == "window" and self._window:
                self._estimate = self._window_mean()
        return level

    def update(self, raw: Optional[float]) -> Optional[float]:
        """Ingest a raw sample; ``None`` (no data) leaves the estimate alone."""
        with self._lock:
            if raw is None or not math.isfinite(raw):
                return self._estimate
            sample = normalize_heading(raw)
            self._count += 1
            if self.mode == "window":
                self._window.append(sample)
                self._estimate = self._window_mean()
            elif self._estimate is None:
                self._estimate = sample
            else:
                alpha = EMA_ALPHA[self._responsiveness]
                self._estimate = normalize_heading(self._estimate + alpha * shortest_arc(self._estimate, sample))
            return self._estimate

    def current_estimate(self) -> Optional[float]:
        with self._lock:
            return self._estimate

    def reset(self) -> None:
        with self._lock:
            self._estimate = None
            self._window.clear()
            self._count = 0

    def _window_mean(self) -> Optional[float]:
        n = WINDOW_SIZE[self._responsiveness]
        recent = list(self._window)[-n:]
        if not recent:
            return None
        rad = np.radians(np.asarray(recent, dtype=float))
        s = float(np.sin(rad).sum())
        c = float(np.cos(rad).sum())
        if abs(s) < 1e-12 and abs(c) < 1e-12:
            # opposing samples cancel out; keep the newest reading
            return recent[-1]
        return normalize_heading(math.degrees(math.atan2(s, c)))
