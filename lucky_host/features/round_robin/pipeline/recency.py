"""
Recency tiebreak.

Among the remaining candidates, prefer whoever has gone longest without a
booking. "Last booked" merges two sources:

- organizer recency: the candidate's most recent organized booking of the
  event type that the host attended and at least one attendee attended
  (queried from the booking history store)
- attendee recency: the most recent history booking listing the candidate's
  email among attendees, ignoring bookings older than the organizer recency

Attendee recency overrides organizer recency when both exist.
"""

import random
from collections.abc import Mapping, Sequence
from datetime import datetime

from lucky_host.features.round_robin.domain import (
    NEVER_BOOKED,
    BookingRecord,
    DataIntegrityError,
    Host,
    as_utc,
)
from lucky_host.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


def organizer_recency(
    candidates: Sequence[Host], last_organized: Mapping[int, datetime]
) -> dict[int, datetime]:
    """Organizer recency per candidate, NEVER_BOOKED when nothing qualifies."""
    return {
        host.id: as_utc(last_organized[host.id]) if last_organized.get(host.id) else NEVER_BOOKED
        for host in candidates
    }


def attendee_recency(
    candidates: Sequence[Host],
    bookings: Sequence[BookingRecord],
    organized: Mapping[int, datetime],
) -> dict[int, datetime]:
    """
    Most recent attended booking per candidate.

    Candidates never found among attendees (or only in bookings older than
    their organizer recency) are absent from the result.
    """
    found: dict[int, datetime] = {}
    newest_first = sorted(bookings, key=lambda booking: booking.created_at, reverse=True)

    for booking in newest_first:
        emails = booking.attendee_emails
        for host in candidates:
            if host.id in found or host.email not in emails:
                continue
            if organized.get(host.id, NEVER_BOOKED) > booking.created_at:
                continue
            found[host.id] = booking.created_at

        if len(found) == len(candidates):
            break

    return found


def merge_recency(
    organized: Mapping[int, datetime], attended: Mapping[int, datetime]
) -> dict[int, datetime]:
    """Return a new mapping; attendee values override organizer values."""
    return {**organized, **attended}


def pick_least_recently_booked(
    candidates: Sequence[Host],
    last_booked: Mapping[int, datetime],
    rng: random.Random | None = None,
) -> tuple[Host, datetime]:
    """
    Pick the candidate with the oldest last-booked timestamp.

    Candidates sharing the oldest timestamp are drawn from uniformly.

    Raises:
        DataIntegrityError: If a candidate has no recency value
        ValueError: If there are no candidates
    """
    if not candidates:
        raise ValueError("No candidates to pick from")

    missing = [host.id for host in candidates if host.id not in last_booked]
    if missing:
        raise DataIntegrityError(f"No recency value for candidates: {missing}")

    oldest = min(last_booked[host.id] for host in candidates)
    tied = [host for host in candidates if last_booked[host.id] == oldest]

    chosen = tied[0] if len(tied) == 1 else (rng or random).choice(tied)

    if len(tied) > 1:
        logger.debug(
            "Recency tie broken randomly",
            tied_user_ids=[host.id for host in tied],
            chosen_user_id=chosen.id,
        )
    return chosen, oldest
