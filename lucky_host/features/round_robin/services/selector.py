"""
Host selector service - picks the round-robin host for the next booking.
"""

from __future__ import annotations

import asyncio
import random
import time
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime

from lucky_host.config import settings
from lucky_host.features.round_robin.domain import (
    BookingRecord,
    ConfigurationError,
    DistributionAlgorithm,
    EventType,
    Host,
    RosterHost,
    SelectionResult,
)
from lucky_host.features.round_robin.pipeline import (
    attendee_recency,
    filter_by_highest_priority,
    filter_by_weight_shortfall,
    merge_recency,
    organizer_recency,
    pick_least_recently_booked,
)
from lucky_host.features.round_robin.repository import (
    BookingHistoryProvider,
    booking_history_repository,
)
from lucky_host.infrastructure.audit import audit_logger
from lucky_host.infrastructure.observability.logging import get_logger, log_host_selection

logger = get_logger(__name__)

AlgorithmRunner = Callable[
    [Sequence[Host], EventType, Sequence[RosterHost], list[BookingRecord]],
    Awaitable[SelectionResult],
]


class HostSelectorService:
    """
    Chooses which round-robin host receives a booking.

    The booking history provider is the only I/O; everything else is pure.
    Provider failures, timeouts and cancellation propagate unmodified.
    """

    def __init__(
        self,
        provider: BookingHistoryProvider | None = None,
        rng: random.Random | None = None,
    ):
        self.provider = provider or booking_history_repository
        self.rng = rng or random.Random()
        self._algorithms: dict[DistributionAlgorithm, AlgorithmRunner] = {
            DistributionAlgorithm.MAXIMIZE_AVAILABILITY: self._maximize_availability,
        }

    async def select_host(
        self,
        distribution_algorithm: DistributionAlgorithm | str,
        available_users: Sequence[Host],
        event_type: EventType,
        all_roster_hosts: Sequence[RosterHost],
    ) -> Host:
        """
        Pick the host for the next booking of a round-robin event type.

        Args:
            distribution_algorithm: Distribution algorithm configured for the event type
            available_users: Hosts available for the requested slot
            event_type: The round-robin event type
            all_roster_hosts: Every round-robin host of the event type

        Returns:
            The chosen host, always one of available_users

        Raises:
            ConfigurationError: Unknown algorithm, empty pool or zero roster weight
            DataIntegrityError: A candidate could not be given a recency value
        """
        result = await self.select_host_with_trace(
            distribution_algorithm, available_users, event_type, all_roster_hosts
        )
        return result.host

    async def select_host_with_trace(
        self,
        distribution_algorithm: DistributionAlgorithm | str,
        available_users: Sequence[Host],
        event_type: EventType,
        all_roster_hosts: Sequence[RosterHost],
    ) -> SelectionResult:
        """Same as select_host, returning the survivors of every stage as well."""
        started = time.perf_counter()
        algorithm_name = getattr(distribution_algorithm, "value", str(distribution_algorithm))

        try:
            algorithm = self._resolve_algorithm(distribution_algorithm, event_type)
            if not available_users:
                raise ConfigurationError(
                    "No available users to choose from", event_type_id=event_type.id
                )

            if len(available_users) == 1:
                only = available_users[0]
                result = SelectionResult(
                    host=only,
                    algorithm=algorithm,
                    stages={"available": [only.id]},
                )
            else:
                bookings = await self._fetch_history(event_type, all_roster_hosts)
                runner = self._algorithms[algorithm]
                result = await runner(available_users, event_type, all_roster_hosts, bookings)

        except Exception as e:
            log_host_selection(
                event_type_id=event_type.id,
                algorithm=algorithm_name,
                candidate_count=len(available_users),
                chosen_user_id=None,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
                error=f"{type(e).__name__}: {e}",
            )
            raise

        log_host_selection(
            event_type_id=event_type.id,
            algorithm=algorithm_name,
            candidate_count=len(available_users),
            chosen_user_id=result.host.id,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )

        if settings.SELECTION_AUDIT_ENABLED:
            await audit_logger.log_host_assignment(
                event_type_id=event_type.id,
                chosen_user_id=result.host.id,
                algorithm=result.algorithm.value,
                stages=result.stages,
                last_booked_at=result.last_booked_at,
                history_size=result.history_size,
            )

        return result

    def _resolve_algorithm(
        self, value: DistributionAlgorithm | str, event_type: EventType
    ) -> DistributionAlgorithm:
        try:
            algorithm = DistributionAlgorithm(value)
        except ValueError:
            raise ConfigurationError(
                f"Unknown distribution algorithm '{value}'. "
                f"Available: {', '.join(a.value for a in self._algorithms)}",
                event_type_id=event_type.id,
            ) from None

        if algorithm not in self._algorithms:
            raise ConfigurationError(
                f"Distribution algorithm '{algorithm.value}' is not supported",
                event_type_id=event_type.id,
            )
        return algorithm

    async def _fetch_history(
        self, event_type: EventType, all_roster_hosts: Sequence[RosterHost]
    ) -> list[BookingRecord]:
        return await asyncio.wait_for(
            self.provider.fetch_bookings(event_type.id, all_roster_hosts, exclude_no_shows=True),
            timeout=settings.HISTORY_FETCH_TIMEOUT_S,
        )

    async def _maximize_availability(
        self,
        available_users: Sequence[Host],
        event_type: EventType,
        all_roster_hosts: Sequence[RosterHost],
        bookings: list[BookingRecord],
    ) -> SelectionResult:
        stages: dict[str, list[int]] = {"available": [host.id for host in available_users]}

        candidates = list(available_users)
        if event_type.is_rr_weights_enabled:
            candidates = filter_by_weight_shortfall(candidates, all_roster_hosts, bookings)
            stages["weights"] = [host.id for host in candidates]

        candidates = filter_by_highest_priority(candidates)
        stages["priority"] = [host.id for host in candidates]

        chosen, last_booked_at = await self._least_recently_booked(
            candidates, event_type, bookings
        )
        stages["recency"] = [chosen.id]

        logger.info(
            "Round-robin host chosen",
            event_type_id=event_type.id,
            chosen_user_id=chosen.id,
            history_size=len(bookings),
            weights_enabled=event_type.is_rr_weights_enabled,
            final_pool_size=len(candidates),
        )

        return SelectionResult(
            host=chosen,
            algorithm=DistributionAlgorithm.MAXIMIZE_AVAILABILITY,
            stages=stages,
            last_booked_at=last_booked_at,
            history_size=len(bookings),
        )

    async def _least_recently_booked(
        self,
        candidates: Sequence[Host],
        event_type: EventType,
        bookings: Sequence[BookingRecord],
    ) -> tuple[Host, datetime | None]:
        if len(candidates) == 1:
            return candidates[0], None

        last_organized = await asyncio.wait_for(
            self.provider.fetch_last_organizer_bookings(
                event_type.id, [host.id for host in candidates]
            ),
            timeout=settings.HISTORY_FETCH_TIMEOUT_S,
        )
        organized = organizer_recency(candidates, last_organized)
        attended = attendee_recency(candidates, bookings, organized)
        last_booked = merge_recency(organized, attended)

        return pick_least_recently_booked(candidates, last_booked, self.rng)


host_selector = HostSelectorService()
