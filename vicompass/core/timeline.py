from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Deque, Dict, List, Optional


class EventKind(str, Enum):
    FIRE = "fire"  # a cue was handed to the player
    CANCEL = "cancel"  # scheduler went idle
    TARGET = "target"  # target heading captured, moved or cleared
    CONFIG = "config"  # runtime setting changed


@dataclass(frozen=True)
class Event:
    ts: str
    kind: EventKind
    label: str
    data: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {"ts": self.ts, "kind": self.kind.value, "label": self.label, "data": dict(self.data)}


def _utc_stamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class Timeline:
    """Bounded record of what the compass did, newest last.

    Written from the tick thread, timer threads and command callers, read by
    ``CompassRuntime.snapshot``.
    """

    def __init__(self, maxlen: int = 200) -> None:
        self._buf: Deque[Event] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def add(self, kind: EventKind, label: str, **data: Any) -> Event:
        evt = Event(ts=_utc_stamp(), kind=EventKind(kind), label=label, data=data)
        with self._lock:
            self._buf.append(evt)
        return evt

    def last(self, n: int = 50, kind: Optional[EventKind] = None) -> List[Dict[str, Any]]:
        with self._lock:
            items = list(self._buf)
        if kind is not None:
            items = [e for e in items if e.kind is EventKind(kind)]
        return [e.as_dict() for e in items[-n:]] if n > 0 else []

    def clear(self) -> None:
        with self._lock:
            self._buf.clear()


# Shared by runtime, target controller and scheduler unless one is injected
timeline = Timeline()
