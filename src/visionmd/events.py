# src/visionmd/events.py
from __future__ import annotations

import queue
from typing import Iterator, List, Optional, Union

from .models import CompleteEvent, ErrorEvent, ProgressEvent

Event = Union[ProgressEvent, CompleteEvent, ErrorEvent]


class EventStream:
    """
    Ordered channel of job events.

    The orchestrator publishes, the caller consumes, possibly from another
    thread. Iteration ends after the terminal (complete or error) event.
    """

    def __init__(self, maxsize: int = 0):
        self._q: "queue.Queue[Event]" = queue.Queue(maxsize)

    def publish(self, event: Event) -> None:
        self._q.put(event)

    def get(self, timeout: Optional[float] = None) -> Event:
        return self._q.get(timeout=timeout)

    def __iter__(self) -> Iterator[Event]:
        while True:
            event = self._q.get()
            yield event
            if event.terminal:
                return

    def drain(self) -> List[Event]:
        """Return every event currently queued without blocking."""
        events: List[Event] = []
        while True:
            try:
                events.append(self._q.get_nowait())
            except queue.Empty:
                return events
