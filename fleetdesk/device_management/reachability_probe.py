"""Reachability and management-channel checks for FleetDesk."""

import asyncio
import logging
import socket
import sys
from typing import List, Optional

import httpx

from ..config.settings import FleetSettings
from ..error_handling.exceptions import EnvironmentFatalError
from .device import ProbeResult

logger = logging.getLogger(__name__)


class ReachabilityProbe:
    """Single-shot network checks for a resolved device.

    ``probe`` sends one echo request bounded by ``probe_timeout`` and never
    retries. ``check_management_channel`` sends one request to the
    WS-Management endpoint and reports, rather than raises, any failure.
    """

    def __init__(self, settings: Optional[FleetSettings] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """Initialize the probe.

        Args:
            settings: Timeouts and management endpoint settings.
            transport: Optional httpx transport used for the channel check.
        """
        self.settings = settings or FleetSettings()
        self._transport = transport

    def _ping_command(self, host: str) -> List[str]:
        timeout = max(1, int(round(self.settings.probe_timeout)))
        if sys.platform.startswith("win"):
            return ["ping", "-n", "1", "-w", str(timeout * 1000), host]
        if sys.platform == "darwin":
            return ["ping", "-c", "1", "-t", str(timeout), host]
        return ["ping", "-c", "1", "-W", str(timeout), host]

    async def _send_echo(self, host: str) -> bool:
        """Send one ICMP echo request through the system ping tool."""
        try:
            process = await asyncio.create_subprocess_exec(
                *self._ping_command(host),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL
            )
        except FileNotFoundError as e:
            raise EnvironmentFatalError("The ping tool is not available on this system") from e

        try:
            return_code = await asyncio.wait_for(process.wait(), timeout=self.settings.probe_timeout + 1)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            logger.debug("Echo request to %s timed out", host)
            return False
        return return_code == 0

    async def _resolve_address(self, host: str) -> Optional[str]:
        """Look up the IPv4 address of a host."""
        loop = asyncio.get_running_loop()
        try:
            infos = await asyncio.wait_for(
                loop.getaddrinfo(host, None, family=socket.AF_INET, type=socket.SOCK_STREAM),
                timeout=self.settings.probe_timeout
            )
        except (socket.gaierror, asyncio.TimeoutError, OSError) as e:
            logger.debug("Address lookup for %s failed: %s", host, e)
            return None
        for _family, _type, _proto, _canonname, sockaddr in infos:
            return sockaddr[0]
        return None

    async def probe(self, fqdn: str) -> ProbeResult:
        """Check whether a device answers and, if so, find its address.

        Returns:
            ProbeResult: ``ip_address`` is None whenever ``reachable`` is False.

        Raises:
            EnvironmentFatalError: If the system has no ping tool.
        """
        if not await self._send_echo(fqdn):
            return ProbeResult(reachable=False)

        ip_address = await self._resolve_address(fqdn)
        if ip_address is None:
            logger.warning("%s answered but its address could not be resolved", fqdn)
            return ProbeResult(reachable=False)
        return ProbeResult(reachable=True, ip_address=ip_address)

    def channel_url(self, host: str) -> str:
        return f"{self.settings.channel_scheme}://{host}:{self.settings.channel_port}{self.settings.channel_path}"

    async def check_management_channel(self, short_name: str) -> bool:
        """Check the remote-management endpoint of a device.

        Any HTTP answer below 500 means the listener is up; 401 and 405 are
        the usual answers to an unauthenticated GET.
        """
        url = self.channel_url(short_name)
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self.settings.channel_timeout,
                verify=False,
            ) as client:
                response = await client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.debug("Management channel probe %s failed: %s", url, e)
            return False

        logger.debug("Management channel probe %s answered %d", url, response.status_code)
        return response.status_code < 500
