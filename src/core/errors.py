from __future__ import annotations


class RelayError(Exception):
    """Base class for errors raised by the publisher and the drain loop."""


class InvalidInput(RelayError, ValueError):
    """The publish payload is not a usable student record."""


class PublishFailed(RelayError):
    """The event bus rejected one or more entries of a submission."""

    def __init__(self, failed_entry_count: int, total: int) -> None:
        super().__init__(f"event bus rejected {failed_entry_count} of {total} entries")
        self.failed_entry_count = failed_entry_count
        self.total = total


class TransientInfrastructureError(RelayError):
    """A call to the managed bus or queue failed."""
