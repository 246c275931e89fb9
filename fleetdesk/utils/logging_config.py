"""Logging configuration for FleetDesk.

Console output plus rotating file handlers for the application log and the
audit trail. Registry writes and collection creations are audit events.
"""

import os
import sys
import json
import logging
from datetime import datetime
from typing import Dict, Any, Optional

from concurrent_log_handler import ConcurrentRotatingFileHandler

DEFAULT_CONSOLE_LEVEL = logging.INFO
DEFAULT_FILE_LEVEL = logging.DEBUG

AUDIT_LOGGER_NAME = "fleetdesk.audit"


class AuditFilter(logging.Filter):
    """Filter that only allows audit records to pass through."""

    def filter(self, record):
        """Check if record has audit attribute."""
        return getattr(record, 'audit', False)


class LoggingManager:
    """Manages logging configuration for the application."""

    def __init__(self):
        """Initialize the logging manager."""
        self._configured = False
        self.log_dir = os.path.expanduser("~/.fleetdesk/logs")
        self.audit_dir = os.path.join(self.log_dir, "audit")
        self.max_file_size = 10 * 1024 * 1024  # 10 MB
        self.backup_count = 5
        self.console_level = DEFAULT_CONSOLE_LEVEL
        self.file_level = DEFAULT_FILE_LEVEL
        self.handlers = []

    def configure(self, settings: Optional[Dict[str, Any]] = None):
        """Configure logging with the specified settings.

        Args:
            settings: Dictionary containing logging settings. If None, default settings are used.
        """
        if self._configured:
            return

        if settings:
            self._apply_settings(settings)

        os.makedirs(self.log_dir, exist_ok=True)
        os.makedirs(self.audit_dir, exist_ok=True)

        app_logger = logging.getLogger("fleetdesk")
        app_logger.setLevel(logging.DEBUG)  # Capture all logs, let handlers filter

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(self.console_level)
        console_handler.setFormatter(logging.Formatter('%(levelname)s - %(message)s'))
        console_handler.addFilter(lambda record: not getattr(record, 'audit', False))
        self._add_handler(app_logger, console_handler)

        file_handler = ConcurrentRotatingFileHandler(
            filename=os.path.join(self.log_dir, "fleetdesk.log"),
            maxBytes=self.max_file_size,
            backupCount=self.backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(self.file_level)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
        ))
        self._add_handler(app_logger, file_handler)

        audit_handler = ConcurrentRotatingFileHandler(
            filename=os.path.join(self.audit_dir, "audit.log"),
            maxBytes=self.max_file_size,
            backupCount=self.backup_count,
            encoding='utf-8'
        )
        audit_handler.setLevel(logging.INFO)
        audit_handler.setFormatter(logging.Formatter('%(asctime)s - AUDIT - %(message)s'))
        audit_handler.addFilter(AuditFilter())
        self._add_handler(app_logger, audit_handler)

        self._configured = True
        app_logger.debug("Logging system initialized in %s", self.log_dir)

    def _add_handler(self, logger: logging.Logger, handler: logging.Handler) -> None:
        logger.addHandler(handler)
        self.handlers.append((logger, handler))

    def _apply_settings(self, settings: Dict[str, Any]):
        """Apply settings from the provided dictionary.

        Args:
            settings: Dictionary containing logging settings
        """
        if 'log_dir' in settings:
            self.log_dir = os.path.expanduser(settings['log_dir'])
            self.audit_dir = os.path.join(self.log_dir, "audit")

        if 'max_file_size' in settings:
            self.max_file_size = settings['max_file_size']

        if 'backup_count' in settings:
            self.backup_count = settings['backup_count']

        if 'console_level' in settings:
            self.console_level = parse_level(settings['console_level'])

        if 'file_level' in settings:
            self.file_level = parse_level(settings['file_level'])

    def shutdown(self):
        """Detach and close every handler this manager installed."""
        for logger, handler in self.handlers:
            logger.removeHandler(handler)
            handler.close()
        self.handlers = []
        self._configured = False


def parse_level(level) -> int:
    """Parse a log level string to its integer value.

    Args:
        level: String or integer log level

    Returns:
        int: Logging level
    """
    if isinstance(level, int):
        return level

    level_map = {
        'debug': logging.DEBUG,
        'info': logging.INFO,
        'warning': logging.WARNING,
        'error': logging.ERROR,
        'critical': logging.CRITICAL
    }

    return level_map.get(str(level).lower(), logging.INFO)


def log_audit_event(event_type: str, details: Dict[str, Any], username: Optional[str] = None):
    """Log an audit event.

    Args:
        event_type: Type of event (e.g., "registry_append", "collection_created")
        details: Dictionary with event details
        username: Username associated with the event
    """
    audit_record = {
        "timestamp": datetime.now().isoformat(),
        "event_type": event_type,
        "username": username or os.environ.get("USERNAME") or os.environ.get("USER", "system"),
        "details": details
    }
    logging.getLogger(AUDIT_LOGGER_NAME).info(json.dumps(audit_record), extra={'audit': True})


# Create a singleton instance
logging_manager = LoggingManager()


def configure_logging(settings: Optional[Dict[str, Any]] = None):
    """Configure the logging system with the specified settings.

    Args:
        settings: Dictionary containing logging settings. If None, default settings are used.
    """
    logging_manager.configure(settings)
