"""
Selection pipeline stages for round-robin assignment.

Each stage is a pure function over pre-fetched data; the selector service
wires them together and talks to the booking history store.
"""

from .priority import filter_by_highest_priority
from .recency import (
    attendee_recency,
    merge_recency,
    organizer_recency,
    pick_least_recently_booked,
)
from .weights import compute_booking_shortfalls, filter_by_weight_shortfall

__all__ = [
    "attendee_recency",
    "compute_booking_shortfalls",
    "filter_by_highest_priority",
    "filter_by_weight_shortfall",
    "merge_recency",
    "organizer_recency",
    "pick_least_recently_booked",
]
