"""Single-shot timer plumbing shared by the feedback scheduler and target repeat."""

from __future__ import annotations

import threading
from typing import Callable, Protocol


class TimerHandle(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], TimerHandle]


def thread_timer(interval: float, callback: Callable[[], None]) -> TimerHandle:
    """Default factory: a daemon ``threading.Timer`` that is not yet started."""
    timer = threading.Timer(max(0.0, interval), callback)
    timer.daemon = True
    return timer
