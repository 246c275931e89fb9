"""Monitoring Module for FleetDesk.

This module receives the structured events emitted while collections are
created and devices are enrolled.
"""

from .monitor_manager import MonitorManager, MonitoringEvent, MonitoringLevel

__all__ = ['MonitorManager', 'MonitoringEvent', 'MonitoringLevel']
