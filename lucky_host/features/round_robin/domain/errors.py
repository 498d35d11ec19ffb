"""
Exceptions raised by the host selector.

Transient failures of the booking history store (DatabaseError, TimeoutError,
cancellation) are not wrapped here; they reach the caller unmodified.
"""


class HostSelectionError(Exception):
    """Base exception for host selection failures."""

    def __init__(self, message: str, event_type_id: int | None = None):
        super().__init__(message)
        self.event_type_id = event_type_id


class ConfigurationError(HostSelectionError):
    """Selection cannot proceed with the given event type or roster configuration."""


class DataIntegrityError(HostSelectionError):
    """Collaborator data is inconsistent, e.g. a candidate with no recency value."""
