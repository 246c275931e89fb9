"""Collection Management Module for FleetDesk.

This module builds collection hierarchies under a parent collection and
detects devices that are members of more than one collection.
"""

from .collection import CreationFailure, HierarchyResult, MembershipSnapshot, DuplicateRecord
from .hierarchy_engine import CollectionHierarchyEngine
from .membership_dedup import MembershipDedupEngine, find_duplicates

__all__ = [
    'CreationFailure', 'HierarchyResult', 'MembershipSnapshot', 'DuplicateRecord',
    'CollectionHierarchyEngine', 'MembershipDedupEngine', 'find_duplicates'
]
