"""Settings for FleetDesk.

Settings live in ``~/.fleetdesk/settings.json``. Every key is optional; the
model below supplies the defaults and validates whatever the file overrides.
"""

import json
import os
import sys
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..error_handling.exceptions import InvalidInputError

DEFAULT_DATA_DIR = os.path.expanduser("~/.fleetdesk")
DEFAULT_SETTINGS_FILE = os.path.join(DEFAULT_DATA_DIR, "settings.json")


def default_hosts_file() -> str:
    """Return the platform hosts file path."""
    if sys.platform.startswith("win"):
        system_root = os.environ.get("SystemRoot", r"C:\Windows")
        return os.path.join(system_root, "System32", "drivers", "etc", "hosts")
    return "/etc/hosts"


class LoggingSettings(BaseModel):
    """Logging options passed to ``LoggingManager.configure``."""
    log_dir: str = os.path.join(DEFAULT_DATA_DIR, "logs")
    console_level: str = "info"
    file_level: str = "debug"
    max_file_size: int = 10 * 1024 * 1024  # 10 MB
    backup_count: int = 5

    @field_validator("console_level", "file_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        if value.lower() not in ("debug", "info", "warning", "error", "critical"):
            raise ValueError(f"unknown log level: {value}")
        return value.lower()


class FleetSettings(BaseModel):
    """Model representing the application settings."""
    inventory_file: str = os.path.join(DEFAULT_DATA_DIR, "inventory.json")
    hosts_file: str = Field(default_factory=default_hosts_file)
    export_dir: str = os.path.join(DEFAULT_DATA_DIR, "exports")

    pilot_name_template: str = "{parent}_PILOT"
    child_name_template: str = "{parent}_CHILD_{index}"
    pilot_comment: str = "Pilot Collection"
    child_comment_template: str = "Child Collection {index} of {parent}"

    probe_timeout: float = Field(default=3.0, gt=0, le=60)
    channel_timeout: float = Field(default=5.0, gt=0, le=60)
    channel_scheme: str = "http"
    channel_port: int = Field(default=5985, ge=1, le=65535)
    channel_path: str = "/wsman"

    pool_size: int = Field(default=4, ge=1, le=64)
    session_command: str = "pwsh -NoExit -Command Enter-PSSession -ComputerName {fqdn}"

    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("channel_scheme")
    @classmethod
    def _scheme(cls, value: str) -> str:
        if value.lower() not in ("http", "https"):
            raise ValueError("channel scheme must be http or https")
        return value.lower()

    @field_validator("channel_path")
    @classmethod
    def _absolute_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("channel path must start with /")
        return value

    @field_validator("pilot_name_template", "child_name_template")
    @classmethod
    def _has_parent_placeholder(cls, value: str) -> str:
        if "{parent}" not in value:
            raise ValueError("name template must contain {parent}")
        return value

    @field_validator("child_name_template")
    @classmethod
    def _has_index_placeholder(cls, value: str) -> str:
        if "{index}" not in value:
            raise ValueError("child name template must contain {index}")
        return value


def load_settings(settings_file: Optional[str] = None,
                  overrides: Optional[Dict[str, Any]] = None) -> FleetSettings:
    """Load settings from disk.

    Args:
        settings_file: Path of the JSON settings file. Defaults to ``~/.fleetdesk/settings.json``.
        overrides: Values that take precedence over the file (e.g. from the command line).

    Returns:
        FleetSettings: Validated settings

    Raises:
        InvalidInputError: If the file is not valid JSON or holds invalid values.
    """
    settings_file = settings_file or DEFAULT_SETTINGS_FILE
    data: Dict[str, Any] = {}
    if os.path.exists(settings_file):
        try:
            with open(settings_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidInputError(f"Invalid JSON in settings file {settings_file}: {e}") from e
        if not isinstance(data, dict):
            raise InvalidInputError(f"Settings file {settings_file} must hold a JSON object")

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return FleetSettings(**data)
    except ValidationError as e:
        raise InvalidInputError(f"Invalid settings: {e}") from e


def save_settings(settings: FleetSettings, settings_file: Optional[str] = None) -> None:
    """Save settings to file."""
    settings_file = settings_file or DEFAULT_SETTINGS_FILE
    os.makedirs(os.path.dirname(settings_file) or ".", exist_ok=True)
    with open(settings_file, 'w', encoding='utf-8') as f:
        json.dump(settings.model_dump(), f, indent=4)
