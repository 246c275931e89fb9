"""Utility helpers for FleetDesk."""

from .logging_config import LoggingManager, configure_logging, log_audit_event, parse_level

__all__ = ['LoggingManager', 'configure_logging', 'log_audit_event', 'parse_level']
