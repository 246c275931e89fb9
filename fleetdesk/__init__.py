"""FleetDesk - Device Collection and Enrollment Automation.

Builds device collection hierarchies in an endpoint-management directory,
detects devices that belong to several collections, and enrolls devices by
short name into the local host registry after checking their reachability.
"""

from .collection_management import CollectionHierarchyEngine, MembershipDedupEngine
from .device_management import (
    DeviceEnrollmentOrchestrator, HostRegistry, NetworkResolver, ReachabilityProbe, SessionLauncher
)
from .directory import DirectoryService, InMemoryDirectoryService, JsonDirectoryService
from .config import FleetSettings, load_settings
from .monitoring import MonitorManager
from .error_handling import ErrorManager
from .utils.logging_config import LoggingManager

__version__ = '1.0.0'
__license__ = 'Apache License 2.0'

__all__ = [
    'CollectionHierarchyEngine', 'MembershipDedupEngine',
    'DeviceEnrollmentOrchestrator', 'HostRegistry', 'NetworkResolver', 'ReachabilityProbe', 'SessionLauncher',
    'DirectoryService', 'InMemoryDirectoryService', 'JsonDirectoryService',
    'FleetSettings', 'load_settings', 'MonitorManager', 'ErrorManager', 'LoggingManager'
]
