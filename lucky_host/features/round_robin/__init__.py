"""
Round-robin assignment feature package.

Keeps every layer of the "lucky host" decision co-located: domain models,
the booking history repository, the pure selection pipeline, and the
selector service the booking workflow calls.
"""

# Re-export the primary building blocks for easy access.
from .domain import (  # noqa: F401
    Attendee,
    BookingRecord,
    ConfigurationError,
    DataIntegrityError,
    DistributionAlgorithm,
    EventType,
    Host,
    RosterHost,
    SelectionResult,
)
from .repository import BookingHistoryProvider, BookingHistoryRepository  # noqa: F401
from .services import HostSelectorService, host_selector  # noqa: F401
