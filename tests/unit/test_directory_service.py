"""Unit tests for the directory services."""

import asyncio
import json
import threading

import pytest

from fleetdesk.directory.directory_service import InMemoryDirectoryService, JsonDirectoryService
from fleetdesk.directory.models import validate_collection_id
from fleetdesk.error_handling.exceptions import CollectionCreationError, EnvironmentFatalError, InvalidInputError


@pytest.fixture
def inventory_file(tmp_path):
    path = tmp_path / "inventory.json"
    path.write_text(json.dumps({
        "site_code": "LAB",
        "next_id": 16,
        "collections": {
            "SMS00001": {"name": "All Systems"},
            "LAB00002": {
                "name": "Servers",
                "limiting_collection_id": "SMS00001",
                "members": ["srv01", "srv02"]
            }
        },
        "devices": {
            "srv01": {"resource_id": "16777300", "domain_suffix": "lab.example.com"}
        }
    }), encoding='utf-8')
    return path


@pytest.mark.asyncio
async def test_in_memory_lookups(directory):
    assert (await directory.get_collection("fd100100")).name == "Workstations"
    assert await directory.get_collection("NOPE0000") is None
    assert await directory.get_device_count("FD100100") == 2
    assert await directory.get_membership("FD100100") == {"ws001", "ws002"}
    assert (await directory.get_device_record("WS001")).resource_id == "16777220"


@pytest.mark.asyncio
async def test_create_collection_allocates_ids(directory):
    first = await directory.create_collection("Pilot", "FD100100", "Pilot Collection")
    second = await directory.create_collection("Child", "FD100100", "")

    assert first == "FD100001"
    assert second == "FD100002"
    created = await directory.get_collection(first)
    assert created.limiting_collection_id == "FD100100"
    assert created.comment == "Pilot Collection"


@pytest.mark.asyncio
async def test_create_collection_rejects_duplicates_and_unknown_parent(directory):
    with pytest.raises(CollectionCreationError):
        await directory.create_collection("workstations", "SMS00001", "")
    with pytest.raises(CollectionCreationError):
        await directory.create_collection("Orphan", "MISSING1", "")


def test_add_member_ignores_case_duplicates():
    service = InMemoryDirectoryService()
    service.add_member("COLL0001", "ws001")
    service.add_member("coll0001", "WS001")

    assert service.members["COLL0001"] == ["ws001"]


@pytest.mark.asyncio
async def test_json_directory_loads_inventory(inventory_file):
    service = JsonDirectoryService(str(inventory_file))

    assert service.site_code == "LAB"
    assert (await service.get_collection("LAB00002")).limiting_collection_id == "SMS00001"
    assert await service.get_membership("LAB00002") == {"srv01", "srv02"}
    assert (await service.get_device_record("srv01")).domain_suffix == "lab.example.com"


@pytest.mark.asyncio
async def test_json_directory_persists_creations(inventory_file):
    service = JsonDirectoryService(str(inventory_file))

    collection_id = await service.create_collection("Servers_PILOT", "LAB00002", "Pilot Collection")

    assert collection_id == "LAB00010"
    reloaded = JsonDirectoryService(str(inventory_file))
    created = await reloaded.get_collection(collection_id)
    assert created.name == "Servers_PILOT"
    assert reloaded._next_id == 17


def test_missing_inventory_is_fatal(tmp_path):
    with pytest.raises(EnvironmentFatalError):
        JsonDirectoryService(str(tmp_path / "absent.json"))


def test_invalid_inventory_is_fatal(tmp_path):
    path = tmp_path / "inventory.json"
    path.write_text("{not json", encoding='utf-8')

    with pytest.raises(EnvironmentFatalError):
        JsonDirectoryService(str(path))


def test_inventory_site_code_must_fit_collection_ids(tmp_path):
    path = tmp_path / "inventory.json"
    path.write_text(json.dumps({"site_code": "LABS"}), encoding='utf-8')

    with pytest.raises(EnvironmentFatalError):
        JsonDirectoryService(str(path))


@pytest.mark.parametrize("site_code", ["LABS", "L1", "L-1"])
def test_in_memory_site_code_is_validated(site_code):
    with pytest.raises(InvalidInputError):
        InMemoryDirectoryService(site_code=site_code)


@pytest.mark.asyncio
async def test_generated_ids_are_valid_collection_ids(inventory_file):
    service = JsonDirectoryService(str(inventory_file))

    collection_id = await service.create_collection("Servers_CHILD_1", "LAB00002", "")

    assert validate_collection_id(collection_id) == collection_id


@pytest.mark.asyncio
async def test_inventory_is_written_off_the_event_loop(inventory_file):
    threads = []

    class TrackingDirectory(JsonDirectoryService):
        def _write_inventory(self, data):
            threads.append(threading.current_thread())
            super()._write_inventory(data)

    service = TrackingDirectory(str(inventory_file))
    await service.create_collection("Servers_PILOT", "LAB00002", "")

    assert threads and threads[0] is not threading.main_thread()


def test_service_can_be_used_from_successive_event_loops(directory):
    first = asyncio.run(directory.create_collection("Loop one", "FD100100", ""))
    second = asyncio.run(directory.create_collection("Loop two", "FD100100", ""))

    assert first != second
