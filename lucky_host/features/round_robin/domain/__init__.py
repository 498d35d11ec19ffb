"""
Domain subpackage for round-robin host assignment.
"""

from .errors import ConfigurationError, DataIntegrityError, HostSelectionError
from .models import (
    DEFAULT_PRIORITY,
    DEFAULT_WEIGHT,
    DEFAULT_WEIGHT_ADJUSTMENT,
    NEVER_BOOKED,
    Attendee,
    BookingRecord,
    DistributionAlgorithm,
    EventType,
    Host,
    RosterHost,
    SelectionResult,
    as_utc,
)

__all__ = [
    "DEFAULT_PRIORITY",
    "DEFAULT_WEIGHT",
    "DEFAULT_WEIGHT_ADJUSTMENT",
    "NEVER_BOOKED",
    "Attendee",
    "BookingRecord",
    "ConfigurationError",
    "DataIntegrityError",
    "DistributionAlgorithm",
    "EventType",
    "Host",
    "HostSelectionError",
    "RosterHost",
    "SelectionResult",
    "as_utc",
]
