"""Device Management Module for FleetDesk.

This module resolves devices to fully-qualified names, checks their
reachability, keeps the local host registry up to date and opens remote
management sessions.
"""

from .device import (
    DeviceEnrollmentResult, EnrollmentStage, HostRegistryEntry, ProbeResult,
    RegistryOutcome, ResolvedDevice
)
from .network_resolver import NetworkResolver
from .reachability_probe import ReachabilityProbe
from .host_registry import HostRegistry
from .session_launcher import SessionLauncher
from .enrollment_orchestrator import DeviceEnrollmentOrchestrator

__all__ = [
    'DeviceEnrollmentResult', 'EnrollmentStage', 'HostRegistryEntry', 'ProbeResult',
    'RegistryOutcome', 'ResolvedDevice', 'NetworkResolver', 'ReachabilityProbe',
    'HostRegistry', 'SessionLauncher', 'DeviceEnrollmentOrchestrator'
]
