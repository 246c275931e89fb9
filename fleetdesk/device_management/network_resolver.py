"""Resolves device short names to fully-qualified names."""

import logging

from ..directory.directory_service import DirectoryService
from ..directory.models import validate_device_name
from ..error_handling.exceptions import UnresolvedError
from .device import ResolvedDevice

logger = logging.getLogger(__name__)


class NetworkResolver:
    """Builds a device FQDN from its management record.

    Only the directory is consulted here; name-to-address lookup is left to
    the reachability probe.
    """

    def __init__(self, directory: DirectoryService):
        self.directory = directory

    async def resolve(self, short_name: str) -> ResolvedDevice:
        """Resolve a short name to ``<short_name>.<domain suffix>``.

        Raises:
            InvalidInputError: If the short name is malformed.
            UnresolvedError: If the device has no record or no DNS suffix.
        """
        short_name = validate_device_name(short_name)

        record = await self.directory.get_device_record(short_name)
        if record is None:
            raise UnresolvedError(f"No management record for device {short_name}")

        suffix = (record.domain_suffix or "").strip().strip(".")
        if not suffix:
            raise UnresolvedError(f"No DNS suffix configured for device {short_name}")

        fqdn = f"{short_name}.{suffix}"
        logger.debug("Resolved %s to %s (resource %s)", short_name, fqdn, record.resource_id)
        return ResolvedDevice(short_name=short_name, fqdn=fqdn, resource_id=record.resource_id)
