"""Device types used by the FleetDesk enrollment pipeline.

A device starts as a short name, is resolved to a fully-qualified name,
probed, written to the host registry and finally checked for a working
remote-management endpoint.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class EnrollmentStage(Enum):
    """Stages of the per-device enrollment pipeline."""
    RESOLVING = "resolving"
    PROBING = "probing"
    REGISTERING = "registering"
    VERIFYING_CHANNEL = "verifying_channel"
    SESSIONING = "sessioning"
    DONE = "done"
    FAILED = "failed"


class RegistryOutcome(Enum):
    """Result of a host registry append."""
    ADDED = "added"
    ALREADY_PRESENT = "already_present"


@dataclass(frozen=True)
class ResolvedDevice:
    """A device short name mapped to its fully-qualified name."""
    short_name: str
    fqdn: str
    ip_address: Optional[str] = None
    resource_id: Optional[str] = None


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of a single reachability probe."""
    reachable: bool
    ip_address: Optional[str] = None


@dataclass(frozen=True)
class HostRegistryEntry:
    """One (ip, short name) pair of the host registry."""
    ip: str
    short_name: str

    def matches(self, ip: str, short_name: str) -> bool:
        """Exact IP match, case-insensitive name match."""
        return self.ip == ip and self.short_name.lower() == short_name.lower()


@dataclass(frozen=True)
class DeviceEnrollmentResult:
    """Final state of one device after the enrollment pipeline.

    ``management_channel_healthy`` stays None when the pipeline stopped
    before the channel check.
    """
    short_name: str
    fqdn: Optional[str] = None
    reachable: bool = False
    management_channel_healthy: Optional[bool] = None
    registered: bool = False
    ip_address: Optional[str] = None
    stage: EnrollmentStage = EnrollmentStage.DONE
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.stage == EnrollmentStage.DONE

    def to_dict(self) -> Dict:
        """Converts the result to a dictionary for serialization."""
        return {
            "short_name": self.short_name,
            "fqdn": self.fqdn,
            "reachable": self.reachable,
            "management_channel_healthy": self.management_channel_healthy,
            "registered": self.registered,
            "ip_address": self.ip_address,
            "stage": self.stage.value,
            "error": self.error
        }
