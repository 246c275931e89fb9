"""Result types of the collection workflows."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class CreationFailure:
    """A collection the engine could not create.

    ``index`` is 0 for the pilot collection and 1..N for children.
    """
    index: int
    name: str
    reason: str


@dataclass
class HierarchyResult:
    """Outcome of one hierarchy creation run."""
    parent_id: str
    parent_name: str = ""
    parent_device_count: int = 0
    pilot_id: Optional[str] = None
    child_ids: List[str] = field(default_factory=list)
    failures: List[CreationFailure] = field(default_factory=list)

    @property
    def created_count(self) -> int:
        return len(self.child_ids) + (1 if self.pilot_id else 0)

    def to_dict(self) -> Dict:
        """Converts the result to a dictionary for serialization."""
        return {
            "parent_id": self.parent_id,
            "parent_name": self.parent_name,
            "parent_device_count": self.parent_device_count,
            "pilot_id": self.pilot_id,
            "child_ids": list(self.child_ids),
            "failures": [
                {"index": f.index, "name": f.name, "reason": f.reason} for f in self.failures
            ]
        }


@dataclass(frozen=True)
class MembershipSnapshot:
    """Point-in-time membership of one collection.

    Device names are unique (case-insensitive) and sorted so iteration order
    does not depend on how the directory returned them.
    """
    collection_id: str
    collection_name: str
    device_names: Tuple[str, ...]
    taken_at: datetime

    def __contains__(self, device_name: str) -> bool:
        return device_name.upper() in (name.upper() for name in self.device_names)

    def __len__(self) -> int:
        return len(self.device_names)


@dataclass(frozen=True)
class DuplicateRecord:
    """A device that is a member of two or more of the compared collections."""
    device_name: str
    collection_ids: Tuple[str, ...]
