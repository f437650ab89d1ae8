"""Navigation helpers (heading smoothing, correction, target control)."""

from .correction import Correction, CorrectionDisplay, Turn, compute_correction, describe_correction
from .heading import HeadingSmoother, Responsiveness, normalize_heading, shortest_arc
from .target import TargetController

__all__ = [
    "Correction",
    "CorrectionDisplay",
    "HeadingSmoother",
    "Responsiveness",
    "TargetController",
    "Turn",
    "compute_correction",
    "describe_correction",
    "normalize_heading",
    "shortest_arc",
]
