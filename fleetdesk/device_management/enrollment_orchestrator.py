"""Device enrollment pipeline for FleetDesk.

Each device goes through resolve -> probe -> register -> verify channel and,
optionally, a remote session. Devices are independent: a failure stops the
pipeline of that device only, and the batch carries on.
"""

import asyncio
import logging
from typing import List, Optional, Sequence

from ..config.settings import FleetSettings
from ..directory.directory_service import DirectoryService
from ..error_handling.error_manager import ErrorManager
from ..error_handling.exceptions import (
    ChannelUnhealthyError,
    EnvironmentFatalError,
    UnreachableError,
)
from ..monitoring.monitor_manager import MonitorManager, MonitoringLevel
from .device import DeviceEnrollmentResult, EnrollmentStage, RegistryOutcome, ResolvedDevice
from .host_registry import HostRegistry
from .network_resolver import NetworkResolver
from .reachability_probe import ReachabilityProbe
from .session_launcher import SessionLauncher

logger = logging.getLogger(__name__)


class DeviceEnrollmentOrchestrator:
    """Runs the enrollment pipeline over a batch of device names.

    Pipelines run concurrently, at most ``pool_size`` at a time, and the
    results come back in the order the names were given.
    """

    def __init__(self, resolver: NetworkResolver, probe: ReachabilityProbe,
                 registry: HostRegistry, monitor: MonitorManager,
                 session_launcher: Optional[SessionLauncher] = None,
                 error_manager: Optional[ErrorManager] = None,
                 pool_size: int = 4):
        self.resolver = resolver
        self.probe = probe
        self.registry = registry
        self.monitor = monitor
        self.session_launcher = session_launcher
        self.error_manager = error_manager or ErrorManager(monitor)
        self.pool_size = max(1, pool_size)

    @classmethod
    def from_settings(cls, directory: DirectoryService, settings: FleetSettings,
                      monitor: MonitorManager,
                      error_manager: Optional[ErrorManager] = None) -> 'DeviceEnrollmentOrchestrator':
        """Wire the default collaborators from settings."""
        return cls(
            resolver=NetworkResolver(directory),
            probe=ReachabilityProbe(settings),
            registry=HostRegistry(settings.hosts_file),
            monitor=monitor,
            session_launcher=SessionLauncher(settings),
            error_manager=error_manager,
            pool_size=settings.pool_size
        )

    async def run(self, short_names: Sequence[str], open_session: bool = False) -> List[DeviceEnrollmentResult]:
        """Enroll every device of the batch.

        Args:
            short_names: Device short names, processed in order.
            open_session: Open a remote session to each enrolled device.

        Returns:
            List[DeviceEnrollmentResult]: One result per requested name, same order.

        Raises:
            EnvironmentFatalError: The batch is aborted; results of the devices
                that had finished are attached as ``partial_progress``.
        """
        semaphore = asyncio.Semaphore(self.pool_size)

        async def bounded(name: str) -> DeviceEnrollmentResult:
            async with semaphore:
                return await self.enroll(name, open_session)

        tasks = [asyncio.ensure_future(bounded(name)) for name in short_names]
        if not tasks:
            return []

        try:
            results = await asyncio.gather(*tasks)
        except EnvironmentFatalError as e:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            e.partial_progress = [
                task.result() for task in tasks
                if task.done() and not task.cancelled() and task.exception() is None
            ]
            logger.error("Enrollment aborted after %d of %d devices: %s",
                         len(e.partial_progress), len(tasks), e)
            raise

        registered = sum(1 for r in results if r.registered)
        logger.info("Enrollment finished: %d of %d devices registered", registered, len(results))
        return list(results)

    def _fail(self, source: str, short_name: str, error: Exception,
              details: dict, **result_fields) -> DeviceEnrollmentResult:
        """Record a per-device failure and build the FAILED result."""
        message = str(error) or error.__class__.__name__
        self.monitor.record_event(MonitoringLevel.ERROR, source, message, {'short_name': short_name, **details})
        self.error_manager.handle_exception(error, operation_id=short_name)
        return DeviceEnrollmentResult(
            short_name=short_name,
            stage=EnrollmentStage.FAILED,
            error=message,
            **result_fields
        )

    async def enroll(self, short_name: str, open_session: bool = False) -> DeviceEnrollmentResult:
        """Run the pipeline for one device.

        Only ``EnvironmentFatalError`` escapes; any other error ends the
        pipeline of this device with a FAILED result.
        """
        # Resolving
        try:
            device = await self.resolver.resolve(short_name)
        except EnvironmentFatalError:
            raise
        except Exception as e:
            return self._fail('device_unresolved', short_name, e, {})

        self.monitor.record_event(
            MonitoringLevel.INFO, 'device_resolved',
            f'Resolved {device.short_name} to {device.fqdn}',
            {'short_name': device.short_name, 'fqdn': device.fqdn, 'resource_id': device.resource_id}
        )

        # Probing
        try:
            probe_result = await self.probe.probe(device.fqdn)
        except EnvironmentFatalError:
            raise
        except Exception as e:
            return self._fail('device_unreachable', device.short_name, e,
                              {'fqdn': device.fqdn}, fqdn=device.fqdn)
        if not probe_result.reachable:
            error = UnreachableError(f'{device.fqdn} is not reachable')
            self.monitor.record_event(
                MonitoringLevel.ERROR, 'device_unreachable', str(error),
                {'short_name': device.short_name, 'fqdn': device.fqdn}
            )
            self.error_manager.handle_exception(error, operation_id=device.short_name)
            return DeviceEnrollmentResult(
                short_name=device.short_name,
                fqdn=device.fqdn,
                reachable=False,
                stage=EnrollmentStage.FAILED,
                error=str(error)
            )

        device = ResolvedDevice(
            short_name=device.short_name,
            fqdn=device.fqdn,
            ip_address=probe_result.ip_address,
            resource_id=device.resource_id
        )
        self.monitor.record_event(
            MonitoringLevel.INFO, 'device_reachable',
            f'{device.fqdn} is reachable at {device.ip_address}',
            {'short_name': device.short_name, 'fqdn': device.fqdn, 'ip_address': device.ip_address}
        )

        # Registering
        loop = asyncio.get_running_loop()
        try:
            outcome = await loop.run_in_executor(
                None, lambda: self.registry.append(device.ip_address, device.short_name)
            )
        except EnvironmentFatalError:
            raise
        except Exception as e:
            return self._fail('registry_write', device.short_name, e,
                              {'ip_address': device.ip_address},
                              fqdn=device.fqdn, reachable=True, ip_address=device.ip_address)
        if outcome == RegistryOutcome.ALREADY_PRESENT:
            message = f'{device.short_name} ({device.ip_address}) is already registered'
        else:
            message = f'Registered {device.short_name} ({device.ip_address})'
        self.monitor.record_event(
            MonitoringLevel.INFO, 'registry_write', message,
            {'short_name': device.short_name, 'ip_address': device.ip_address, 'outcome': outcome.value}
        )

        # Verifying channel
        try:
            healthy = await self.probe.check_management_channel(device.short_name)
        except EnvironmentFatalError:
            raise
        except Exception as e:
            logger.warning("Management channel check of %s failed: %s", device.short_name, e)
            healthy = False
        if healthy:
            self.monitor.record_event(
                MonitoringLevel.INFO, 'channel_check',
                f'Management channel of {device.short_name} is healthy',
                {'short_name': device.short_name, 'healthy': True}
            )
        else:
            error = ChannelUnhealthyError(f'Management channel of {device.short_name} did not answer')
            self.monitor.record_event(
                MonitoringLevel.WARNING, 'channel_check', str(error),
                {'short_name': device.short_name, 'healthy': False}
            )
            self.error_manager.handle_exception(error, operation_id=device.short_name)

        result = DeviceEnrollmentResult(
            short_name=device.short_name,
            fqdn=device.fqdn,
            reachable=True,
            management_channel_healthy=healthy,
            registered=True,
            ip_address=device.ip_address,
            stage=EnrollmentStage.DONE
        )

        # Sessioning
        if open_session and self.session_launcher:
            try:
                await self.session_launcher.open_session(device)
            except Exception as e:
                logger.warning("Session to %s failed: %s", device.fqdn, e)

        return result
