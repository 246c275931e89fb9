"""Error Manager Module for FleetDesk.

This module classifies the errors captured during a run, reports them to the
monitoring system and builds the failure part of the run summary. Nothing is
retried here: per-item failures are terminal for that item.
"""

from typing import Dict, List, Optional, Any
from enum import Enum
from dataclasses import dataclass
from datetime import datetime

from ..monitoring.monitor_manager import MonitorManager, MonitoringLevel
from .exceptions import (
    ChannelUnhealthyError,
    CollectionCreationError,
    EnvironmentFatalError,
    InvalidInputError,
    NotFoundError,
    UnreachableError,
    UnresolvedError,
)


class ErrorSeverity(Enum):
    """Enum for different error severity levels."""
    LOW = 1      # Diagnostic only, the item still completed
    MEDIUM = 2   # The item failed, the run continues
    HIGH = 3     # Input rejected, needs operator action
    CRITICAL = 4 # The run was aborted


class ErrorCategory(Enum):
    """Enum for different categories of errors."""
    DIRECTORY = "directory"
    NETWORK = "network"
    REGISTRY = "registry"
    INPUT = "input"
    SESSION = "session"
    ENVIRONMENT = "environment"


@dataclass
class ErrorEvent:
    """Class representing an error event."""
    timestamp: datetime
    category: ErrorCategory
    severity: ErrorSeverity
    message: str
    details: Optional[Dict] = None
    operation_id: Optional[str] = None


# Most specific classes first.
_CLASSIFICATION = [
    (EnvironmentFatalError, ErrorCategory.ENVIRONMENT, ErrorSeverity.CRITICAL),
    (ChannelUnhealthyError, ErrorCategory.NETWORK, ErrorSeverity.LOW),
    (UnreachableError, ErrorCategory.NETWORK, ErrorSeverity.MEDIUM),
    (UnresolvedError, ErrorCategory.DIRECTORY, ErrorSeverity.MEDIUM),
    (NotFoundError, ErrorCategory.DIRECTORY, ErrorSeverity.MEDIUM),
    (CollectionCreationError, ErrorCategory.DIRECTORY, ErrorSeverity.MEDIUM),
    (InvalidInputError, ErrorCategory.INPUT, ErrorSeverity.HIGH),
]


def classify_exception(exc: BaseException) -> tuple:
    """Map an exception to its (category, severity) pair."""
    for exc_type, category, severity in _CLASSIFICATION:
        if isinstance(exc, exc_type):
            return category, severity
    if isinstance(exc, PermissionError):
        return ErrorCategory.ENVIRONMENT, ErrorSeverity.CRITICAL
    return ErrorCategory.DIRECTORY, ErrorSeverity.MEDIUM


class ErrorManager:
    """Class for collecting errors raised while processing a run."""

    def __init__(self, monitor_manager: MonitorManager):
        """Initialize the error manager.

        Args:
            monitor_manager: Instance of MonitorManager for event reporting
        """
        self.monitor_manager = monitor_manager
        self.error_history: List[ErrorEvent] = []

    def handle_error(self, category: ErrorCategory, severity: ErrorSeverity,
                     message: str, details: Optional[Dict] = None,
                     operation_id: Optional[str] = None) -> ErrorEvent:
        """Record a new error event.

        Args:
            category: Category of the error
            severity: Severity level of the error
            message: Error description
            details: Additional error details
            operation_id: Device name or collection id the error belongs to

        Returns:
            ErrorEvent: The recorded event
        """
        error_event = ErrorEvent(
            timestamp=datetime.now(),
            category=category,
            severity=severity,
            message=message,
            details=details,
            operation_id=operation_id
        )
        self.error_history.append(error_event)

        level = MonitoringLevel.WARNING if severity == ErrorSeverity.LOW else MonitoringLevel.ERROR
        self.monitor_manager.record_event(
            level,
            f'error_{category.value}',
            message,
            {
                'severity': severity.value,
                'operation_id': operation_id,
                **(details or {})
            }
        )
        return error_event

    def handle_exception(self, exc: BaseException, operation_id: Optional[str] = None,
                         details: Optional[Dict] = None) -> ErrorEvent:
        """Classify and record an exception.

        Args:
            exc: The captured exception
            operation_id: Device name or collection id the error belongs to
            details: Additional error details

        Returns:
            ErrorEvent: The recorded event
        """
        category, severity = classify_exception(exc)
        return self.handle_error(
            category,
            severity,
            str(exc) or exc.__class__.__name__,
            {'error_type': exc.__class__.__name__, **(details or {})},
            operation_id
        )

    @property
    def has_failures(self) -> bool:
        """True when at least one item failed (warnings excluded)."""
        return any(e.severity != ErrorSeverity.LOW for e in self.error_history)

    def get_error_history(self, category: Optional[ErrorCategory] = None,
                          severity: Optional[ErrorSeverity] = None) -> List[Dict[str, Any]]:
        """Get error history with optional filtering.

        Args:
            category: Filter by error category
            severity: Filter by error severity

        Returns:
            List of historical errors matching the filters
        """
        filtered_history = self.error_history
        if category:
            filtered_history = [e for e in filtered_history if e.category == category]
        if severity:
            filtered_history = [e for e in filtered_history if e.severity == severity]

        return [{
            'timestamp': error.timestamp.isoformat(),
            'category': error.category.value,
            'severity': error.severity.value,
            'message': error.message,
            'operation_id': error.operation_id,
            'details': error.details
        } for error in filtered_history]

    def summary_lines(self) -> List[str]:
        """Human readable lines for the end-of-run summary."""
        lines = []
        for error in self.error_history:
            label = error.severity.name.lower()
            target = f"{error.operation_id}: " if error.operation_id else ""
            lines.append(f"[{label}] {error.category.value} - {target}{error.message}")
        return lines
