from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from vicompass.core.errors import InvalidConfiguration
from vicompass.navigation.heading import shortest_arc

TOLERANCE_CHOICES = (5.0, 10.0, 15.0, 20.0)
NO_DATA_TEXT = "---"


class Turn(Enum):
    PORT = "port"
    STBD = "starboard"
    NONE = "none"


@dataclass(frozen=True)
class Correction:
    amount: float  # target - current along the shortest arc, (-180, 180]
    direction: Turn
    required: bool


def validate_tolerance(tolerance: float) -> float:
    try:
        value = float(tolerance)
    except (TypeError, ValueError) as exc:
        raise InvalidConfiguration(f"tolerance must be numeric, got {tolerance!r}") from exc
    if value not in TOLERANCE_CHOICES:
        raise InvalidConfiguration(f"tolerance must be one of {TOLERANCE_CHOICES}, got {tolerance!r}")
    return value


def compute_correction(
    current: Optional[float],
    target: Optional[float],
    tolerance: float,
) -> Optional[Correction]:
    """Signed correction from ``current`` to ``target``.

    Returns None when either heading is unavailable. Anything strictly inside
    the tolerance band is reported with ``Turn.NONE`` and ``required=False``.
    """
    tol = validate_tolerance(tolerance)
    if current is None or target is None:
        return None
    amount = shortest_arc(current, target)
    if abs(amount) < tol:
        direction = Turn.NONE
    elif amount > 0:
        direction = Turn.STBD
    else:
        direction = Turn.PORT
    return Correction(amount=amount, direction=direction, required=direction is not Turn.NONE)


@dataclass(frozen=True)
class CorrectionDisplay:
    text: str
    show_port: bool
    show_stbd: bool
    colour: str  # green|red|white


def describe_correction(correction: Optional[Correction]) -> CorrectionDisplay:
    """Visual state for a correction: magnitude text, arrow and colour."""
    if correction is None:
        return CorrectionDisplay(text=NO_DATA_TEXT, show_port=False, show_stbd=False, colour="white")
    text = str(abs(int(correction.amount)))
    if abs(correction.amount) < 1.0:
        show_port = show_stbd = False
    else:
        show_port = correction.amount < 0
        show_stbd = correction.amount > 0
    if correction.direction is Turn.STBD:
        colour = "green"
    elif correction.direction is Turn.PORT:
        colour = "red"
    else:
        colour = "white"
    return CorrectionDisplay(text=text, show_port=show_port, show_stbd=show_stbd, colour=colour)


def format_heading(heading: Optional[float]) -> str:
    if heading is None:
        return NO_DATA_TEXT
    return str(int(heading))
