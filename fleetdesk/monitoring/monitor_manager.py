"""Monitor Manager Module for FleetDesk.

This module collects the structured events emitted by the collection engines
and the device enrollment pipeline, keeps them for the run summary and
mirrors them to the application log.
"""

import logging
from typing import Callable, Dict, List, Optional
from datetime import datetime
from enum import Enum
from dataclasses import dataclass


class MonitoringLevel(Enum):
    """Enum for different monitoring levels."""
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    DEBUG = "DEBUG"


_LOG_LEVELS = {
    MonitoringLevel.DEBUG: logging.DEBUG,
    MonitoringLevel.INFO: logging.INFO,
    MonitoringLevel.WARNING: logging.WARNING,
    MonitoringLevel.ERROR: logging.ERROR,
}


@dataclass(frozen=True)
class MonitoringEvent:
    """Class representing a monitoring event."""
    timestamp: datetime
    level: MonitoringLevel
    source: str
    message: str
    details: Optional[Dict] = None


class MonitorManager:
    """Class for collecting run events."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        """Initialize the monitor manager.

        Args:
            logger: Logger the events are mirrored to. Defaults to ``fleetdesk.events``.
        """
        self.event_history: List[MonitoringEvent] = []
        self.logger = logger or logging.getLogger("fleetdesk.events")
        self._subscribers: List[Callable[[MonitoringEvent], None]] = []

    def subscribe(self, callback: Callable[[MonitoringEvent], None]) -> None:
        """Subscribe to monitoring updates.

        Args:
            callback: Function to call with every new event
        """
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[MonitoringEvent], None]) -> None:
        """Unsubscribe from monitoring updates.

        Args:
            callback: Function to remove from subscribers
        """
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def record_event(self, level: MonitoringLevel, source: str,
                     message: str, details: Optional[Dict] = None) -> MonitoringEvent:
        """Add a new monitoring event.

        Args:
            level: Severity level of the event
            source: Event kind, e.g. ``collection_created`` or ``device_unreachable``
            message: Event description
            details: Additional event details

        Returns:
            The recorded event
        """
        event = MonitoringEvent(
            timestamp=datetime.now(),
            level=level,
            source=source,
            message=message,
            details=details
        )
        self.event_history.append(event)
        self.logger.log(_LOG_LEVELS[level], "[%s] %s", source, message)
        for subscriber in self._subscribers:
            subscriber(event)
        return event

    def get_events(self, source: Optional[str] = None,
                   level: Optional[MonitoringLevel] = None) -> List[MonitoringEvent]:
        """Get event history with optional filtering.

        Args:
            source: Only return events of this kind
            level: Only return events at this level

        Returns:
            List of matching events in emission order
        """
        events = self.event_history
        if source:
            events = [e for e in events if e.source == source]
        if level:
            events = [e for e in events if e.level == level]
        return list(events)

    def count_by_source(self) -> Dict[str, int]:
        """Returns how many events of each kind were recorded."""
        summary: Dict[str, int] = {}
        for event in self.event_history:
            summary[event.source] = summary.get(event.source, 0) + 1
        return summary
