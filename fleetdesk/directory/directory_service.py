"""Directory Service Interface and Implementations for FleetDesk.

The directory service is the endpoint-management console seen from the
outside: it looks up collections and devices, reports membership and creates
collections. FleetDesk ships an in-memory directory and one backed by a JSON
inventory file.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Set
import asyncio
import json
import logging
import os

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..error_handling.exceptions import CollectionCreationError, EnvironmentFatalError, InvalidInputError
from .models import Collection, DeviceRecord, validate_site_code

logger = logging.getLogger(__name__)

# Ids carry five hex digits after the site code.
MAX_COUNTER = 0xFFFFF


class DirectoryService(ABC):
    """Abstract base class defining the interface for directory services."""

    @abstractmethod
    async def get_collection(self, collection_id: str) -> Optional[Collection]:
        """Return a collection, or None if the id is unknown."""
        pass

    @abstractmethod
    async def get_device_count(self, collection_id: str) -> int:
        """Return how many devices are currently members of a collection."""
        pass

    @abstractmethod
    async def create_collection(self, name: str, limiting_collection_id: str, comment: str) -> str:
        """Create a collection and return its new id.

        Raises:
            CollectionCreationError: If the directory refuses the collection.
            EnvironmentFatalError: If the directory cannot be reached.
        """
        pass

    @abstractmethod
    async def get_membership(self, collection_id: str) -> Set[str]:
        """Return the names of the devices that are members of a collection."""
        pass

    @abstractmethod
    async def get_device_record(self, name: str) -> Optional[DeviceRecord]:
        """Return the management record of a device, or None if unknown."""
        pass


class InMemoryDirectoryService(DirectoryService):
    """Dictionary backed directory.

    Collection ids are the site code followed by a zero padded counter,
    e.g. ``FD100001``. Collection names are unique, compared case-insensitively.
    """

    def __init__(self, site_code: str = "FD1"):
        self.site_code = validate_site_code(site_code)
        self.collections: Dict[str, Collection] = {}
        self.members: Dict[str, List[str]] = {}
        self.devices: Dict[str, DeviceRecord] = {}
        self._next_id = 1
        self._lock: Optional[asyncio.Lock] = None

    def _creation_lock(self) -> asyncio.Lock:
        # Created on first use so the lock belongs to the running loop.
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    def _allocate_id(self) -> str:
        while True:
            if self._next_id > MAX_COUNTER:
                raise CollectionCreationError(f"No collection ids left for site {self.site_code}")
            collection_id = f"{self.site_code}{self._next_id:05X}"
            self._next_id += 1
            if collection_id not in self.collections:
                return collection_id

    def add_collection(self, collection: Collection, members: Optional[List[str]] = None) -> Collection:
        """Register an existing collection (seeding and loading)."""
        self.collections[collection.id.upper()] = collection
        self.members[collection.id.upper()] = list(members or [])
        return collection

    def add_device(self, record: DeviceRecord) -> DeviceRecord:
        """Register a device record."""
        self.devices[record.name.upper()] = record
        return record

    def add_member(self, collection_id: str, device_name: str) -> None:
        """Adds a device to a collection's membership."""
        members = self.members.setdefault(collection_id.upper(), [])
        if device_name.upper() not in (m.upper() for m in members):
            members.append(device_name)

    async def get_collection(self, collection_id: str) -> Optional[Collection]:
        return self.collections.get(collection_id.upper())

    async def get_device_count(self, collection_id: str) -> int:
        return len(self.members.get(collection_id.upper(), []))

    async def create_collection(self, name: str, limiting_collection_id: str, comment: str) -> str:
        async with self._creation_lock():
            if limiting_collection_id.upper() not in self.collections:
                raise CollectionCreationError(f"Limiting collection {limiting_collection_id} does not exist")
            if any(c.name.lower() == name.lower() for c in self.collections.values()):
                raise CollectionCreationError(f"A collection named {name} already exists")

            collection = Collection(
                id=self._allocate_id(),
                name=name,
                limiting_collection_id=limiting_collection_id.upper(),
                comment=comment
            )
            self.add_collection(collection)
            await self._persist()
            logger.debug("Created collection %s (%s)", collection.name, collection.id)
            return collection.id

    async def get_membership(self, collection_id: str) -> Set[str]:
        return set(self.members.get(collection_id.upper(), []))

    async def get_device_record(self, name: str) -> Optional[DeviceRecord]:
        return self.devices.get(name.upper())

    async def _persist(self) -> None:
        """Hook for subclasses that persist the directory."""


class CollectionEntryModel(BaseModel):
    """Model representing one collection in the inventory file."""
    name: str
    limiting_collection_id: Optional[str] = None
    comment: str = ""
    members: List[str] = Field(default_factory=list)


class DeviceEntryModel(BaseModel):
    """Model representing one device in the inventory file."""
    resource_id: str
    domain_suffix: Optional[str] = None


class InventoryModel(BaseModel):
    """Model representing the whole inventory file."""
    site_code: str = "FD1"
    next_id: int = Field(default=1, ge=1, le=MAX_COUNTER + 1)
    collections: Dict[str, CollectionEntryModel] = Field(default_factory=dict)
    devices: Dict[str, DeviceEntryModel] = Field(default_factory=dict)

    @field_validator("site_code")
    @classmethod
    def _site_code_format(cls, value: str) -> str:
        try:
            return validate_site_code(value)
        except InvalidInputError as e:
            raise ValueError(str(e)) from e


class JsonDirectoryService(InMemoryDirectoryService):
    """Directory backed by a JSON inventory file.

    The file is read once when the service is created and rewritten
    atomically after every collection creation.
    """

    def __init__(self, inventory_file: str):
        self.inventory_file = os.path.expanduser(inventory_file)
        inventory = self._read_inventory()
        super().__init__(site_code=inventory.site_code)
        self._next_id = inventory.next_id

        for collection_id, entry in inventory.collections.items():
            self.add_collection(
                Collection(
                    id=collection_id.upper(),
                    name=entry.name,
                    limiting_collection_id=entry.limiting_collection_id,
                    comment=entry.comment
                ),
                entry.members
            )
        for name, entry in inventory.devices.items():
            self.add_device(DeviceRecord(name=name, resource_id=entry.resource_id,
                                         domain_suffix=entry.domain_suffix))

        logger.info("Loaded %d collections and %d devices from %s",
                    len(self.collections), len(self.devices), self.inventory_file)

    def _read_inventory(self) -> InventoryModel:
        if not os.path.exists(self.inventory_file):
            raise EnvironmentFatalError(f"Directory service unavailable: inventory file {self.inventory_file} not found")
        try:
            with open(self.inventory_file, 'r', encoding='utf-8') as f:
                return InventoryModel(**json.load(f))
        except PermissionError as e:
            raise EnvironmentFatalError(f"Directory service unavailable: {e}") from e
        except (json.JSONDecodeError, ValidationError, TypeError) as e:
            raise EnvironmentFatalError(f"Directory service unavailable: invalid inventory file {self.inventory_file}: {e}") from e

    def to_inventory(self) -> InventoryModel:
        """Build the serializable inventory from the current state."""
        return InventoryModel(
            site_code=self.site_code,
            next_id=self._next_id,
            collections={
                cid: CollectionEntryModel(
                    name=c.name,
                    limiting_collection_id=c.limiting_collection_id,
                    comment=c.comment,
                    members=self.members.get(cid, [])
                ) for cid, c in self.collections.items()
            },
            devices={
                d.name: DeviceEntryModel(resource_id=d.resource_id, domain_suffix=d.domain_suffix)
                for d in self.devices.values()
            }
        )

    async def _persist(self) -> None:
        data = self.to_inventory().model_dump()
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._write_inventory, data)

    def _write_inventory(self, data: dict) -> None:
        """Atomically replace the inventory file."""
        tmp_file = f"{self.inventory_file}.tmp"
        try:
            with open(tmp_file, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=4)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_file, self.inventory_file)
        except OSError as e:
            raise EnvironmentFatalError(f"Directory service unavailable: cannot write {self.inventory_file}: {e}") from e
