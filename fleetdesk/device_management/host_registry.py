"""Host registry for FleetDesk.

The registry is a hosts-format text file. Each entry FleetDesk writes is one
line ``<ip>\\t<short name> `` and the trailing space is kept. Matching works
on whole whitespace-separated tokens, so ``dev1`` never matches ``dev10``.
"""

import logging
import os
import threading
from typing import List

from ..error_handling.exceptions import EnvironmentFatalError
from ..utils.logging_config import log_audit_event
from .device import HostRegistryEntry, RegistryOutcome

logger = logging.getLogger(__name__)


def parse_line(line: str) -> List[HostRegistryEntry]:
    """Parse one hosts line into entries, one per name token."""
    content = line.split('#', 1)[0]
    tokens = content.split()
    if len(tokens) < 2:
        return []
    ip = tokens[0]
    return [HostRegistryEntry(ip=ip, short_name=name) for name in tokens[1:]]


class HostRegistry:
    """Idempotent (ip, short name) store kept in a hosts file.

    ``append`` holds a lock across the existence check and the write, so two
    pipelines registering the same pair concurrently produce one line.
    """

    def __init__(self, hosts_file: str):
        self.hosts_file = os.path.expanduser(hosts_file)
        self._lock = threading.Lock()

    def _read_lines(self) -> List[str]:
        try:
            # Hosts files written by other tools may not be UTF-8.
            with open(self.hosts_file, 'r', encoding='utf-8', errors='surrogateescape') as f:
                return f.readlines()
        except FileNotFoundError:
            return []
        except PermissionError as e:
            raise EnvironmentFatalError(f"Permission denied reading {self.hosts_file}") from e

    def entries(self) -> List[HostRegistryEntry]:
        """Return every entry in file order."""
        result = []
        for line in self._read_lines():
            result.extend(parse_line(line))
        return result

    def exists(self, ip: str, short_name: str) -> bool:
        """True if the pair is present (name compared case-insensitively)."""
        return any(entry.matches(ip, short_name) for entry in self.entries())

    def append(self, ip: str, short_name: str) -> RegistryOutcome:
        """Add the pair unless it is already present.

        The line is flushed and fsynced before returning.

        Raises:
            EnvironmentFatalError: If the file cannot be written.
        """
        with self._lock:
            lines = self._read_lines()
            if any(entry.matches(ip, short_name) for line in lines for entry in parse_line(line)):
                logger.info("Registry already maps %s to %s", short_name, ip)
                return RegistryOutcome.ALREADY_PRESENT

            prefix = ""
            if lines and not lines[-1].endswith('\n'):
                prefix = '\n'

            try:
                with open(self.hosts_file, 'a', encoding='utf-8') as f:
                    f.write(f"{prefix}{ip}\t{short_name} \n")
                    f.flush()
                    os.fsync(f.fileno())
            except PermissionError as e:
                raise EnvironmentFatalError(f"Permission denied writing {self.hosts_file}") from e

        logger.info("Registry now maps %s to %s", short_name, ip)
        log_audit_event('registry_append', {'file': self.hosts_file, 'ip': ip, 'short_name': short_name})
        return RegistryOutcome.ADDED

    def clear(self) -> None:
        """Truncate the registry file.

        Irreversible. Callers must confirm with the operator first.
        """
        with self._lock:
            try:
                with open(self.hosts_file, 'w', encoding='utf-8') as f:
                    f.flush()
                    os.fsync(f.fileno())
            except PermissionError as e:
                raise EnvironmentFatalError(f"Permission denied clearing {self.hosts_file}") from e

        logger.warning("Cleared registry file %s", self.hosts_file)
        log_audit_event('registry_clear', {'file': self.hosts_file})
