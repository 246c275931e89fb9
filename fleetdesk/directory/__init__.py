"""Directory Module for FleetDesk.

This module exposes the directory service the collection engines and the
device resolver talk to, together with its data models and validators.
"""

from .models import Collection, DeviceRecord, validate_collection_id, validate_device_name, validate_child_count
from .directory_service import DirectoryService, InMemoryDirectoryService, JsonDirectoryService

__all__ = [
    'Collection', 'DeviceRecord', 'validate_collection_id', 'validate_device_name',
    'validate_child_count', 'DirectoryService', 'InMemoryDirectoryService', 'JsonDirectoryService'
]
