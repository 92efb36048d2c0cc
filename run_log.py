from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import List, Optional


@dataclass
class RunEvent:
    text: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def as_dict(self) -> dict:
        return {"time": self.timestamp.isoformat(), "text": self.text}


#console lines for one run. everything printed is also kept so the summary
#can replay it in the report timeline.
class RunLog:
    def __init__(self, capacity: int = 500, echo: bool = True):
        self.capacity = capacity
        self.echo = echo
        self._events: List[RunEvent] = []

    def record(self, text: str, timestamp: Optional[datetime] = None) -> RunEvent:
        if self.echo:
            print(text)
        event = RunEvent(text=" ".join(str(text).split()), timestamp=timestamp or datetime.now(UTC))
        self._events.append(event)
        if len(self._events) > self.capacity:
            self._events.pop(0)
        return event

    def events(self) -> List[RunEvent]:
        return list(self._events)

    def as_dicts(self) -> List[dict]:
        return [event.as_dict() for event in self._events]

    def clear(self) -> None:
        self._events.clear()


def emit(log: Optional[RunLog], text: str) -> None:
    """Record ``text`` on ``log`` when one is attached, otherwise just print it."""

    if log is None:
        print(text)
    else:
        log.record(text)
