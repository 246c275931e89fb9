"""Opens remote management sessions to enrolled devices."""

import asyncio
import logging
import shlex
from typing import Optional

from ..config.settings import FleetSettings
from .device import ResolvedDevice

logger = logging.getLogger(__name__)


class SessionLauncher:
    """Runs the configured session command for a device.

    The command inherits the terminal, so launches are serialized: only one
    interactive session is open at any time. Failures are logged and
    reported as False, never raised.
    """

    def __init__(self, settings: Optional[FleetSettings] = None):
        self.settings = settings or FleetSettings()
        self._lock: Optional[asyncio.Lock] = None

    def build_command(self, device: ResolvedDevice) -> list:
        command = self.settings.session_command.format(
            fqdn=device.fqdn,
            short_name=device.short_name,
            ip=device.ip_address or ""
        )
        return shlex.split(command)

    async def open_session(self, device: ResolvedDevice) -> bool:
        """Open an interactive session and wait for it to end."""
        try:
            command = self.build_command(device)
        except (KeyError, ValueError) as e:
            logger.error("Invalid session command template: %s", e)
            return False

        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            logger.info("Opening session to %s", device.fqdn)
            try:
                process = await asyncio.create_subprocess_exec(*command)
                return_code = await process.wait()
            except OSError as e:
                logger.warning("Could not open session to %s: %s", device.fqdn, e)
                return False

        if return_code != 0:
            logger.warning("Session to %s ended with exit code %d", device.fqdn, return_code)
            return False
        logger.info("Session to %s closed", device.fqdn)
        return True
