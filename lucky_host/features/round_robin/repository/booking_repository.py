"""
Booking history store for round-robin assignment.

The selector depends on the BookingHistoryProvider protocol; the Postgres
repository below is the production implementation. It only reads.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Any, Protocol

from lucky_host.db.helpers import fetch_all
from lucky_host.features.round_robin.domain import Attendee, BookingRecord, RosterHost, as_utc
from lucky_host.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class BookingHistoryProvider(Protocol):
    async def fetch_bookings(
        self,
        event_type_id: int,
        hosts: Sequence[RosterHost],
        exclude_no_shows: bool = True,
    ) -> list[BookingRecord]:
        """Bookings of the event type involving any of the hosts, newest first."""
        ...

    async def fetch_last_organizer_bookings(
        self, event_type_id: int, user_ids: Sequence[int]
    ) -> dict[int, datetime]:
        """Most recent attended booking organized by each user; users without one are absent."""
        ...


_BOOKINGS_QUERY = """
    SELECT
        b.id,
        b.created_at,
        b.user_id,
        b.status,
        b.no_show_host,
        COALESCE(
            json_agg(
                json_build_object('email', a.email, 'no_show', COALESCE(a.no_show, false))
            ) FILTER (WHERE a.id IS NOT NULL),
            '[]'::json
        ) AS attendees
    FROM bookings b
    LEFT JOIN attendees a ON a.booking_id = b.id
    WHERE b.event_type_id = %s
      AND (
        b.user_id = ANY(%s)
        OR EXISTS (
            SELECT 1 FROM attendees x
            WHERE x.booking_id = b.id
              AND x.email = ANY(%s)
        )
      )
      {no_show_clause}
    GROUP BY b.id
    ORDER BY b.created_at DESC
"""

# no_show_host was added without a default; NULL means the host attended.
_HOST_ATTENDED_CLAUSE = "AND (b.no_show_host = false OR b.no_show_host IS NULL)"

_LAST_ORGANIZER_BOOKINGS_QUERY = """
    SELECT DISTINCT ON (b.user_id)
        b.user_id,
        b.created_at
    FROM bookings b
    WHERE b.event_type_id = %s
      AND b.user_id = ANY(%s)
      AND (b.no_show_host = false OR b.no_show_host IS NULL)
      AND EXISTS (
          SELECT 1 FROM attendees a
          WHERE a.booking_id = b.id
            AND a.no_show = false
      )
    ORDER BY b.user_id, b.created_at DESC
"""


class BookingHistoryRepository:
    """Postgres-backed BookingHistoryProvider."""

    async def fetch_bookings(
        self,
        event_type_id: int,
        hosts: Sequence[RosterHost],
        exclude_no_shows: bool = True,
    ) -> list[BookingRecord]:
        if not hosts:
            return []

        query = _BOOKINGS_QUERY.format(
            no_show_clause=_HOST_ATTENDED_CLAUSE if exclude_no_shows else ""
        )
        user_ids = [host.user_id for host in hosts]
        emails = [host.email for host in hosts]

        rows = await fetch_all(query, (event_type_id, user_ids, emails))
        bookings = [self._row_to_booking(row) for row in rows]

        logger.debug(
            "Fetched booking history",
            event_type_id=event_type_id,
            host_count=len(hosts),
            booking_count=len(bookings),
            exclude_no_shows=exclude_no_shows,
        )
        return bookings

    async def fetch_last_organizer_bookings(
        self, event_type_id: int, user_ids: Sequence[int]
    ) -> dict[int, datetime]:
        if not user_ids:
            return {}

        rows = await fetch_all(_LAST_ORGANIZER_BOOKINGS_QUERY, (event_type_id, list(user_ids)))
        return {row["user_id"]: as_utc(row["created_at"]) for row in rows}

    @staticmethod
    def _row_to_booking(row: dict[str, Any]) -> BookingRecord:
        attendees = tuple(
            Attendee(email=item.get("email"), no_show=bool(item.get("no_show")))
            for item in row.get("attendees") or []
        )
        return BookingRecord(
            id=row["id"],
            created_at=row["created_at"],
            user_id=row.get("user_id"),
            status=row.get("status") or "",
            attendees=attendees,
            no_show_host=row.get("no_show_host"),
        )


booking_history_repository = BookingHistoryRepository()
