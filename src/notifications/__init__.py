"""
Notification sinks for detection events.
"""

from .sink import CompositeSink, EventLog, LogEntry, LoggingSink, NotificationSink

__all__ = [
    "NotificationSink",
    "EventLog",
    "LogEntry",
    "LoggingSink",
    "CompositeSink",
]
