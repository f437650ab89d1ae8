"""Audio feedback cadence and scheduling."""

from .cadence import FeedbackCadence, FeedbackEvent, FeedbackMode, SoundKind, derive_cadence, steering_interval
from .scheduler import FeedbackScheduler, SchedulerState

__all__ = [
    "FeedbackCadence",
    "FeedbackEvent",
    "FeedbackMode",
    "FeedbackScheduler",
    "SchedulerState",
    "SoundKind",
    "derive_cadence",
    "steering_interval",
]
