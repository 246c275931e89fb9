"""Membership snapshots and duplicate detection for FleetDesk.

Captures the membership of a set of collections and reports every device
that belongs to more than one of them. Snapshots and duplicates can be
exported as CSV files.
"""

import csv
import logging
import os
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from ..config.settings import FleetSettings
from ..directory.directory_service import DirectoryService
from ..directory.models import validate_collection_id
from ..error_handling.error_manager import ErrorManager
from ..error_handling.exceptions import EnvironmentFatalError, FleetDeskError, NotFoundError
from ..monitoring.monitor_manager import MonitorManager, MonitoringLevel
from .collection import DuplicateRecord, MembershipSnapshot

logger = logging.getLogger(__name__)

SNAPSHOT_HEADER = ['CollectionID', 'CollectionName', 'DeviceName']
DUPLICATES_HEADER = ['DeviceName', 'CollectionIDs', 'CollectionCount']


def run_timestamp() -> str:
    """Timestamp used in export file names."""
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def find_duplicates(snapshots: Iterable[MembershipSnapshot]) -> List[DuplicateRecord]:
    """Find devices present in two or more snapshots.

    Device names are compared case-insensitively; the spelling of the first
    occurrence is reported. Records are ordered by the first time each
    device name was seen, walking the snapshots in the order given.
    """
    first_spelling: Dict[str, str] = {}
    seen_in: Dict[str, List[str]] = {}
    for snapshot in snapshots:
        for device_name in snapshot.device_names:
            key = device_name.upper()
            if key not in seen_in:
                first_spelling[key] = device_name
                seen_in[key] = []
            if snapshot.collection_id not in seen_in[key]:
                seen_in[key].append(snapshot.collection_id)

    return [
        DuplicateRecord(device_name=first_spelling[key], collection_ids=tuple(ids))
        for key, ids in seen_in.items()
        if len(ids) >= 2
    ]


class MembershipDedupEngine:
    """Snapshots collection membership and detects duplicate members."""

    def __init__(self, directory: DirectoryService, monitor: MonitorManager,
                 settings: Optional[FleetSettings] = None,
                 error_manager: Optional[ErrorManager] = None):
        self.directory = directory
        self.monitor = monitor
        self.settings = settings or FleetSettings()
        self.error_manager = error_manager
        self.last_snapshots: List[MembershipSnapshot] = []
        self.last_failures: Dict[str, str] = {}
        self.last_exports: List[str] = []

    async def take_snapshot(self, collection_id: str) -> MembershipSnapshot:
        """Capture the current membership of one collection.

        Raises:
            InvalidInputError: If the id is malformed.
            NotFoundError: If the collection does not exist.
        """
        collection_id = validate_collection_id(collection_id)
        collection = await self.directory.get_collection(collection_id)
        if collection is None:
            raise NotFoundError(f"Collection {collection_id} not found")

        names: Dict[str, str] = {}
        for name in await self.directory.get_membership(collection_id):
            names.setdefault(name.upper(), name)

        snapshot = MembershipSnapshot(
            collection_id=collection.id,
            collection_name=collection.name,
            device_names=tuple(sorted(names.values(), key=str.upper)),
            taken_at=datetime.now()
        )
        self.monitor.record_event(
            MonitoringLevel.INFO, 'snapshot_taken',
            f'Captured {len(snapshot)} members of {collection.name} ({collection.id})',
            {'collection_id': collection.id, 'device_count': len(snapshot)}
        )
        return snapshot

    async def snapshot_and_dedup(self, collection_ids: Sequence[str],
                                 export: bool = False) -> List[DuplicateRecord]:
        """Snapshot every collection, then report devices found in more than one.

        All snapshots are captured before any comparison is made. A
        collection that cannot be read is recorded in ``last_failures`` and
        left out of the comparison.

        Args:
            collection_ids: Collections to compare. Repeated ids are ignored.
            export: Write one CSV per snapshot plus a duplicates CSV.

        Returns:
            List[DuplicateRecord]: Duplicates ordered by first-seen device name.
        """
        ordered_ids: List[str] = []
        for collection_id in collection_ids:
            key = collection_id.strip().upper() if isinstance(collection_id, str) else collection_id
            if key not in ordered_ids:
                ordered_ids.append(key)

        self.last_snapshots = []
        self.last_failures = {}
        self.last_exports = []

        for collection_id in ordered_ids:
            try:
                self.last_snapshots.append(await self.take_snapshot(collection_id))
            except EnvironmentFatalError as e:
                e.partial_progress = list(self.last_snapshots)
                raise
            except FleetDeskError as e:
                logger.error("Skipping collection %s: %s", collection_id, e)
                self.last_failures[str(collection_id)] = str(e)
                if self.error_manager:
                    self.error_manager.handle_exception(e, operation_id=str(collection_id))

        duplicates = find_duplicates(self.last_snapshots)
        for record in duplicates:
            self.monitor.record_event(
                MonitoringLevel.WARNING, 'duplicate_found',
                f'{record.device_name} is a member of {", ".join(record.collection_ids)}',
                {'device_name': record.device_name, 'collection_ids': list(record.collection_ids)}
            )

        if export:
            stamp = run_timestamp()
            for snapshot in self.last_snapshots:
                self.last_exports.append(self.export_snapshot(snapshot, stamp))
            self.last_exports.append(self.export_duplicates(duplicates, stamp))

        logger.info("Compared %d collections, %d duplicate devices",
                    len(self.last_snapshots), len(duplicates))
        return duplicates

    def export_snapshot(self, snapshot: MembershipSnapshot, stamp: Optional[str] = None) -> str:
        """Write one snapshot as CSV and return the file path."""
        file_path = self._unique_path(f"{snapshot.collection_id}_{stamp or run_timestamp()}")
        rows = [[snapshot.collection_id, snapshot.collection_name, name] for name in snapshot.device_names]
        self._write_csv(file_path, SNAPSHOT_HEADER, rows)
        logger.info("Exported %d members of %s to %s", len(snapshot), snapshot.collection_id, file_path)
        return file_path

    def export_duplicates(self, records: Sequence[DuplicateRecord], stamp: Optional[str] = None) -> str:
        """Write the duplicate records as CSV and return the file path."""
        file_path = self._unique_path(f"duplicates_{stamp or run_timestamp()}")
        rows = [[r.device_name, ';'.join(r.collection_ids), len(r.collection_ids)] for r in records]
        self._write_csv(file_path, DUPLICATES_HEADER, rows)
        logger.info("Exported %d duplicate records to %s", len(records), file_path)
        return file_path

    def _unique_path(self, base_name: str) -> str:
        export_dir = os.path.expanduser(self.settings.export_dir)
        os.makedirs(export_dir, exist_ok=True)
        file_path = os.path.join(export_dir, f"{base_name}.csv")
        counter = 1
        while os.path.exists(file_path):
            file_path = os.path.join(export_dir, f"{base_name}_{counter}.csv")
            counter += 1
        return file_path

    @staticmethod
    def _write_csv(file_path: str, header: List[str], rows: List[list]) -> None:
        try:
            with open(file_path, 'x', newline='', encoding='utf-8') as f:
                writer = csv.writer(f)
                writer.writerow(header)
                writer.writerows(rows)
        except PermissionError as e:
            raise EnvironmentFatalError(f"Cannot write export file {file_path}: {e}") from e
