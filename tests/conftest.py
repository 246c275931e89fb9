import os
import sys

import pytest

# Ensure proper path setup
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from fleetdesk.config.settings import FleetSettings, LoggingSettings
from fleetdesk.device_management.device import ProbeResult
from fleetdesk.directory.directory_service import InMemoryDirectoryService
from fleetdesk.directory.models import Collection, DeviceRecord
from fleetdesk.error_handling.error_manager import ErrorManager
from fleetdesk.monitoring.monitor_manager import MonitorManager


class FakeProbe:
    """Reachability probe answering from fixed tables."""

    def __init__(self, addresses=None, healthy=None):
        self.addresses = {k.lower(): v for k, v in (addresses or {}).items()}
        self.healthy = {name.lower() for name in (healthy or [])}
        self.probed = []
        self.channel_checks = []

    async def probe(self, fqdn):
        self.probed.append(fqdn)
        ip_address = self.addresses.get(fqdn.lower())
        if ip_address is None:
            return ProbeResult(reachable=False)
        return ProbeResult(reachable=True, ip_address=ip_address)

    async def check_management_channel(self, short_name):
        self.channel_checks.append(short_name)
        return short_name.lower() in self.healthy


@pytest.fixture
def settings(tmp_path):
    """Settings pointing every file into the test directory."""
    return FleetSettings(
        inventory_file=str(tmp_path / "inventory.json"),
        hosts_file=str(tmp_path / "hosts"),
        export_dir=str(tmp_path / "exports"),
        logging=LoggingSettings(log_dir=str(tmp_path / "logs"))
    )


@pytest.fixture
def directory():
    """Directory with a root, a parent collection and three devices."""
    service = InMemoryDirectoryService(site_code="FD1")
    service.add_collection(Collection(id="SMS00001", name="All Systems"))
    service.add_collection(
        Collection(id="FD100100", name="Workstations", limiting_collection_id="SMS00001"),
        ["ws001", "ws002"]
    )
    service.add_device(DeviceRecord(name="ws001", resource_id="16777220", domain_suffix="corp.example.com"))
    service.add_device(DeviceRecord(name="ws002", resource_id="16777221", domain_suffix="corp.example.com"))
    service.add_device(DeviceRecord(name="kiosk01", resource_id="16777222", domain_suffix=None))
    return service


@pytest.fixture
def monitor():
    return MonitorManager()


@pytest.fixture
def error_manager(monitor):
    return ErrorManager(monitor)


@pytest.fixture
def fake_probe():
    return FakeProbe(
        addresses={
            "ws001.corp.example.com": "10.0.0.11",
            "ws002.corp.example.com": "10.0.0.12",
        },
        healthy=["ws001"]
    )
