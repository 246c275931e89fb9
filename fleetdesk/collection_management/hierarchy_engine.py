"""Collection hierarchy creation for FleetDesk.

Creates an optional pilot collection and a numbered set of child collections
limited to a parent collection.
"""

import logging
from typing import Optional

from ..config.settings import FleetSettings
from ..directory.directory_service import DirectoryService
from ..directory.models import validate_child_count, validate_collection_id
from ..error_handling.error_manager import ErrorManager
from ..error_handling.exceptions import EnvironmentFatalError, NotFoundError
from ..monitoring.monitor_manager import MonitorManager, MonitoringLevel
from ..utils.logging_config import log_audit_event
from .collection import CreationFailure, HierarchyResult

logger = logging.getLogger(__name__)


class CollectionHierarchyEngine:
    """Builds a pilot and child collections under a parent collection.

    The engine is not transactional. A failed creation is recorded and the
    remaining children are still attempted; nothing already created is rolled
    back. Creation calls are awaited one at a time so writes under the parent
    never overlap.
    """

    def __init__(self, directory: DirectoryService, monitor: MonitorManager,
                 settings: Optional[FleetSettings] = None,
                 error_manager: Optional[ErrorManager] = None):
        self.directory = directory
        self.monitor = monitor
        self.settings = settings or FleetSettings()
        self.error_manager = error_manager

    def pilot_name(self, parent_name: str) -> str:
        return self.settings.pilot_name_template.format(parent=parent_name)

    def child_name(self, parent_name: str, index: int) -> str:
        return self.settings.child_name_template.format(parent=parent_name, index=index)

    async def create_hierarchy(self, parent_id: str, want_pilot: bool, child_count: int) -> HierarchyResult:
        """Create the pilot and child collections under a parent.

        Args:
            parent_id: Id of the existing parent collection.
            want_pilot: Whether to create the ``_PILOT`` collection.
            child_count: Number of child collections, at least 1.

        Returns:
            HierarchyResult: Created ids and per-collection failures.

        Raises:
            InvalidInputError: If the id or the count is malformed.
            NotFoundError: If the parent collection does not exist.
            EnvironmentFatalError: If the directory becomes unavailable. The
                partial result is available as ``partial_progress``.
        """
        parent_id = validate_collection_id(parent_id)
        child_count = validate_child_count(child_count)

        parent = await self.directory.get_collection(parent_id)
        if parent is None:
            raise NotFoundError(f"Collection {parent_id} not found")

        device_count = await self.directory.get_device_count(parent_id)
        logger.info("Parent collection %s (%s) has %d devices", parent.name, parent.id, device_count)

        result = HierarchyResult(parent_id=parent.id, parent_name=parent.name, parent_device_count=device_count)
        try:
            if want_pilot:
                result.pilot_id = await self._create(
                    result, 0, self.pilot_name(parent.name), parent.id, self.settings.pilot_comment
                )

            for index in range(1, child_count + 1):
                collection_id = await self._create(
                    result,
                    index,
                    self.child_name(parent.name, index),
                    parent.id,
                    self.settings.child_comment_template.format(parent=parent.name, index=index)
                )
                if collection_id:
                    result.child_ids.append(collection_id)
        except EnvironmentFatalError as e:
            e.partial_progress = result
            raise

        logger.info("Hierarchy under %s: %d created, %d failed",
                    parent.id, result.created_count, len(result.failures))
        return result

    async def _create(self, result: HierarchyResult, index: int, name: str,
                      limiting_id: str, comment: str) -> Optional[str]:
        try:
            collection_id = await self.directory.create_collection(name, limiting_id, comment)
        except EnvironmentFatalError:
            raise
        except Exception as e:
            reason = str(e) or e.__class__.__name__
            result.failures.append(CreationFailure(index=index, name=name, reason=reason))
            self.monitor.record_event(
                MonitoringLevel.ERROR, 'collection_failed',
                f'Failed to create collection {name}: {reason}',
                {'index': index, 'name': name, 'limiting_collection_id': limiting_id}
            )
            if self.error_manager:
                self.error_manager.handle_exception(e, operation_id=name, details={'index': index})
            return None

        self.monitor.record_event(
            MonitoringLevel.INFO, 'collection_created',
            f'Created collection {name} ({collection_id})',
            {'index': index, 'id': collection_id, 'name': name, 'limiting_collection_id': limiting_id}
        )
        log_audit_event('collection_created', {
            'id': collection_id, 'name': name, 'limiting_collection_id': limiting_id, 'comment': comment
        })
        return collection_id
