"""Configuration Module for FleetDesk."""

from .settings import FleetSettings, LoggingSettings, load_settings, save_settings, default_hosts_file

__all__ = ['FleetSettings', 'LoggingSettings', 'load_settings', 'save_settings', 'default_hosts_file']
