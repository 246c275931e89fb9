"""Error Handling Module for FleetDesk.

This module provides the exception taxonomy used across the collection and
device workflows, plus error classification and aggregation for the run
summary.
"""

from .exceptions import (
    FleetDeskError,
    EnvironmentFatalError,
    NotFoundError,
    InvalidInputError,
    UnresolvedError,
    UnreachableError,
    ChannelUnhealthyError,
    CollectionCreationError
)
from .error_manager import (
    ErrorManager,
    ErrorCategory,
    ErrorSeverity,
    ErrorEvent
)

__all__ = [
    'FleetDeskError',
    'EnvironmentFatalError',
    'NotFoundError',
    'InvalidInputError',
    'UnresolvedError',
    'UnreachableError',
    'ChannelUnhealthyError',
    'CollectionCreationError',
    'ErrorManager',
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorEvent'
]
