"""
Domain models for round-robin host assignment.

These dataclasses are read-only snapshots supplied by the booking
workflow and the booking history store. The selector never mutates them.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

# Policy defaults applied when a host has no explicit value configured.
DEFAULT_PRIORITY = 2
DEFAULT_WEIGHT = 100
DEFAULT_WEIGHT_ADJUSTMENT = 0

# Recency of a host with no qualifying booking ("never booked").
NEVER_BOOKED = datetime.min.replace(tzinfo=UTC)


def as_utc(value: datetime) -> datetime:
    # Naive timestamps from the booking store are UTC.
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


class DistributionAlgorithm(str, Enum):
    MAXIMIZE_AVAILABILITY = "MAXIMIZE_AVAILABILITY"


@dataclass(frozen=True, slots=True)
class Host:
    """A round-robin host eligible for the booking being assigned."""

    id: int
    email: str
    priority: int | None = None
    weight: int | None = None
    weight_adjustment: int | None = None

    @property
    def effective_priority(self) -> int:
        return DEFAULT_PRIORITY if self.priority is None else self.priority

    @property
    def effective_weight(self) -> int:
        return DEFAULT_WEIGHT if self.weight is None else self.weight

    @property
    def effective_weight_adjustment(self) -> int:
        if self.weight_adjustment is None:
            return DEFAULT_WEIGHT_ADJUSTMENT
        return self.weight_adjustment


@dataclass(frozen=True, slots=True)
class EventType:
    id: int
    is_rr_weights_enabled: bool = False


@dataclass(frozen=True, slots=True)
class RosterHost:
    """A host as configured on a specific event type (weights may differ from globals)."""

    user_id: int
    email: str
    weight: int | None = None
    weight_adjustment: int | None = None


@dataclass(frozen=True, slots=True)
class Attendee:
    email: str | None
    no_show: bool = False


@dataclass(frozen=True, slots=True)
class BookingRecord:
    """A historical booking of the event type, used only for counting and recency."""

    id: int
    created_at: datetime
    user_id: int | None
    status: str
    attendees: tuple[Attendee, ...] = ()
    no_show_host: bool | None = None

    def __post_init__(self):
        object.__setattr__(self, "created_at", as_utc(self.created_at))

    @property
    def attendee_emails(self) -> set[str]:
        return {attendee.email for attendee in self.attendees if attendee.email}

    def involves(self, host: Host) -> bool:
        """True when the host organized the booking or attended it."""
        return self.user_id == host.id or host.email in self.attendee_emails


@dataclass(slots=True)
class SelectionResult:
    """Chosen host plus the survivors of each stage, for the audit trail."""

    host: Host
    algorithm: DistributionAlgorithm
    stages: dict[str, list[int]] = field(default_factory=dict)
    last_booked_at: datetime | None = None
    history_size: int = 0
