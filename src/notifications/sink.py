"""
Notification sinks for tracker events.

Sinks are called from the inference worker thread, so every implementation
here is safe to call from any thread.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Iterable, List, Protocol


class NotificationSink(Protocol):
    def publish(self, message: str, is_alert: bool) -> None:
        ...


@dataclass(frozen=True)
class LogEntry:
    message: str
    is_alert: bool
    timestamp: float

    def to_dict(self) -> dict:
        return {"message": self.message, "is_alert": self.is_alert, "timestamp": self.timestamp}


class EventLog:
    """Bounded, thread-safe log of the most recent notifications."""

    def __init__(self, max_entries: int = 10):
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._entries: Deque[LogEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    @property
    def max_entries(self) -> int:
        return self._entries.maxlen

    def publish(self, message: str, is_alert: bool) -> None:
        entry = LogEntry(message=message, is_alert=is_alert, timestamp=time.time())
        with self._lock:
            self._entries.append(entry)

    def entries(self) -> List[LogEntry]:
        """Snapshot, oldest first."""
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class LoggingSink:
    """Writes notifications to the application log."""

    def publish(self, message: str, is_alert: bool) -> None:
        if is_alert:
            logging.warning(f"[ALERT] {message}")
        else:
            logging.info(message)


class CompositeSink:
    """Fans a notification out to several sinks; one failing sink does not stop the others."""

    def __init__(self, sinks: Iterable[NotificationSink]):
        self._sinks = list(sinks)

    def publish(self, message: str, is_alert: bool) -> None:
        for sink in self._sinks:
            try:
                sink.publish(message, is_alert)
            except Exception as e:
                logging.warning(f"Notification sink error: {e}")
