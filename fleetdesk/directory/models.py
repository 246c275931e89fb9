"""Directory data models for FleetDesk.

Collections and device records as the directory service hands them out,
plus the input validators used at the CLI boundary and by the engines.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..error_handling.exceptions import InvalidInputError

COLLECTION_ID_PATTERN = re.compile(r'^[A-Za-z0-9]{6,8}$')
DEVICE_NAME_PATTERN = re.compile(r'^[A-Za-z0-9][A-Za-z0-9_-]{0,62}$')
SITE_CODE_PATTERN = re.compile(r'^[A-Za-z0-9]{3}$')


@dataclass(frozen=True)
class Collection:
    """A named grouping of devices limited to a parent collection."""
    id: str
    name: str
    limiting_collection_id: Optional[str] = None
    comment: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Converts the collection to a dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "limiting_collection_id": self.limiting_collection_id,
            "comment": self.comment
        }


@dataclass(frozen=True)
class DeviceRecord:
    """Management record of a device."""
    name: str
    resource_id: str
    domain_suffix: Optional[str] = None


def validate_collection_id(value: Any) -> str:
    """Check that a collection id is 6-8 alphanumeric characters.

    Returns:
        str: The id, stripped and upper-cased

    Raises:
        InvalidInputError: If the value is not a well-formed collection id
    """
    if not isinstance(value, str) or not COLLECTION_ID_PATTERN.match(value.strip()):
        raise InvalidInputError(f"Invalid collection id: {value!r} (expected 6-8 alphanumeric characters)")
    return value.strip().upper()


def validate_site_code(value: Any) -> str:
    """Check that a site code is 3 alphanumeric characters.

    Generated ids are the site code plus 5 hex digits, so any other length
    would produce ids ``validate_collection_id`` rejects.
    """
    if not isinstance(value, str) or not SITE_CODE_PATTERN.match(value):
        raise InvalidInputError(f"Invalid site code: {value!r} (expected 3 alphanumeric characters)")
    return value.upper()


def validate_device_name(value: Any) -> str:
    """Check that a device short name is a single host label.

    Raises:
        InvalidInputError: If the value is empty, dotted or has invalid characters
    """
    if not isinstance(value, str) or not DEVICE_NAME_PATTERN.match(value.strip()):
        raise InvalidInputError(f"Invalid device name: {value!r}")
    return value.strip()


def validate_child_count(value: Any) -> int:
    """Check that a child count is a positive integer.

    Strings are accepted when they hold a plain decimal number, so prompt
    input can be passed straight through.

    Raises:
        InvalidInputError: If the value is not a positive integer
    """
    if isinstance(value, bool):
        raise InvalidInputError(f"Invalid child count: {value!r}")
    if isinstance(value, str):
        text = value.strip()
        if not text.isdigit():
            raise InvalidInputError(f"Invalid child count: {value!r} (expected a positive whole number)")
        value = int(text)
    if not isinstance(value, int) or value < 1:
        raise InvalidInputError(f"Invalid child count: {value!r} (expected a positive whole number)")
    return value
