"""
Repository subpackage for round-robin assignment.
"""

from .booking_repository import (
    BookingHistoryProvider,
    BookingHistoryRepository,
    booking_history_repository,
)

__all__ = [
    "BookingHistoryProvider",
    "BookingHistoryRepository",
    "booking_history_repository",
]
