"""
Weight-shortfall filter.

Each roster host is owed a share of the event type's bookings in proportion
to its weight. The filter keeps the candidates furthest behind that share.

Shortfalls are exact fractions so that hosts owed the same amount tie
instead of differing by float rounding.
"""

from collections.abc import Sequence
from fractions import Fraction

from lucky_host.features.round_robin.domain import (
    DEFAULT_WEIGHT,
    DEFAULT_WEIGHT_ADJUSTMENT,
    BookingRecord,
    ConfigurationError,
    Host,
    RosterHost,
)
from lucky_host.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


def compute_booking_shortfalls(
    candidates: Sequence[Host],
    roster: Sequence[RosterHost],
    bookings: Sequence[BookingRecord],
) -> dict[int, Fraction]:
    """
    Compute how many bookings each candidate is short of its weighted target.

    Args:
        candidates: Hosts still in the running
        roster: Every round-robin host of the event type, with per-event weights
        bookings: Historical bookings of the event type across the roster

    Returns:
        Mapping of candidate id to shortfall (higher means more owed)

    Raises:
        ConfigurationError: If the roster's total weight is not positive
    """
    total_weight = sum(
        DEFAULT_WEIGHT if host.weight is None else host.weight for host in roster
    )
    if total_weight <= 0:
        raise ConfigurationError(
            f"Round-robin roster total weight must be positive, got {total_weight}"
        )

    total_adjustments = sum(
        DEFAULT_WEIGHT_ADJUSTMENT if host.weight_adjustment is None else host.weight_adjustment
        for host in roster
    )

    shortfalls: dict[int, Fraction] = {}
    for candidate in candidates:
        target_share = Fraction(candidate.effective_weight) / Fraction(total_weight)
        target_bookings = (len(bookings) + total_adjustments) * target_share
        booking_count = sum(1 for booking in bookings if booking.involves(candidate))
        shortfalls[candidate.id] = target_bookings - (
            booking_count + candidate.effective_weight_adjustment
        )

    return shortfalls


def filter_by_weight_shortfall(
    candidates: Sequence[Host],
    roster: Sequence[RosterHost],
    bookings: Sequence[BookingRecord],
) -> list[Host]:
    """Keep every candidate whose shortfall equals the maximum; ties all survive."""
    if not candidates:
        return []

    shortfalls = compute_booking_shortfalls(candidates, roster, bookings)
    max_shortfall = max(shortfalls.values())
    survivors = [host for host in candidates if shortfalls[host.id] == max_shortfall]

    logger.debug(
        "Weight shortfall filter applied",
        candidate_count=len(candidates),
        survivor_count=len(survivors),
        max_shortfall=float(max_shortfall),
    )
    return survivors
