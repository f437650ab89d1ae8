from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, TYPE_CHECKING

from vicompass.core.errors import InvalidConfiguration
from vicompass.navigation.correction import Correction, Turn

if TYPE_CHECKING:  # pragma: no cover
    from vicompass.core.config import CompassSettings

# nothing ever repeats faster than this, whatever the configuration says
MIN_INTERVAL_S = 0.05


class FeedbackMode(Enum):
    RHYTHMIC = "rhythmic"
    SPOKEN = "spoken"
    OFF = "off"

    @classmethod
    def parse(cls, value: "FeedbackMode | str") -> "FeedbackMode":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            for member in cls:
                if member.value == key:
                    return member
        raise InvalidConfiguration(f"unknown feedback mode: {value!r}")


class SoundKind(Enum):
    # values are the resource names handed to the playback capability
    STBD_CHIRP = "4k_to_2k_in_20ms"
    PORT_CHIRP = "1k_to_2k_in_20ms"
    ON_COURSE = "on_course"
    SPEECH = "speech"


@dataclass(frozen=True)
class FeedbackCadence:
    interval_s: float
    sound: SoundKind
    phrase: Optional[str] = None


@dataclass(frozen=True)
class FeedbackEvent:
    sound: SoundKind
    phrase: Optional[str]
    interval_s: float
    fired_at: float


def steering_interval(amount: float, tolerance: float, *, slowest: float = 2.0, fastest: float = 0.1) -> float:
    """Seconds between steering cues for a correction of ``amount`` degrees.

    Scales inversely with the deviation: at the edge of the tolerance band the
    cue repeats every ``slowest`` seconds, and it speeds up toward ``fastest``
    as the boat falls further off course.
    """
    degrees = abs(amount)
    if degrees <= 0:
        return slowest
    interval = max(fastest, tolerance * slowest / degrees)
    interval = min(slowest, interval)
    return max(MIN_INTERVAL_S, interval)


def derive_cadence(
    correction: Optional[Correction],
    tolerance: float,
    mode: FeedbackMode,
    settings: "CompassSettings",
) -> Optional[FeedbackCadence]:
    if correction is None or mode is FeedbackMode.OFF:
        return None

    if not correction.required:
        if not settings.on_course_cue:
            return None
        interval = settings.on_course_interval(mode)
        if mode is FeedbackMode.SPOKEN:
            return FeedbackCadence(interval_s=interval, sound=SoundKind.SPEECH, phrase="on course")
        return FeedbackCadence(interval_s=interval, sound=SoundKind.ON_COURSE)

    interval = steering_interval(
        correction.amount,
        tolerance,
        slowest=settings.slowest_interval_s,
        fastest=settings.fastest_interval_s,
    )
    if mode is FeedbackMode.SPOKEN:
        side = "starboard" if correction.direction is Turn.STBD else "port"
        phrase = f"{side} {abs(int(round(correction.amount)))}"
        return FeedbackCadence(
            interval_s=max(interval, settings.spoken_min_interval_s),
            sound=SoundKind.SPEECH,
            phrase=phrase,
        )
    # high chirp means steer to starboard, low chirp means steer to port
    sound = SoundKind.STBD_CHIRP if correction.direction is Turn.STBD else SoundKind.PORT_CHIRP
    return FeedbackCadence(interval_s=interval, sound=sound)
