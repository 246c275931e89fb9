"""Exception taxonomy for FleetDesk.

Fatal environment problems abort a run; every other error is captured per
collection or per device and surfaced in the run summary.
"""

from typing import Any, Optional


class FleetDeskError(Exception):
    """Base class for all FleetDesk errors."""

    fatal = False


class EnvironmentFatalError(FleetDeskError):
    """The environment cannot support the run (directory down, no permission).

    ``partial_progress`` is filled in by whichever engine was running when the
    error surfaced, so the caller can report what completed before the abort.
    """

    fatal = True

    def __init__(self, message: str, partial_progress: Optional[Any] = None):
        super().__init__(message)
        self.partial_progress = partial_progress


class NotFoundError(FleetDeskError):
    """Unknown collection id or device name."""


class InvalidInputError(FleetDeskError):
    """Malformed input such as a bad collection id or child count."""


class UnresolvedError(FleetDeskError):
    """A device has no management record or no DNS suffix."""


class UnreachableError(FleetDeskError):
    """A device did not answer the reachability probe."""


class ChannelUnhealthyError(FleetDeskError):
    """The remote-management endpoint of a device did not answer."""


class CollectionCreationError(FleetDeskError):
    """The directory refused to create a collection."""
