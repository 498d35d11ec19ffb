import asyncio
import random
from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from lucky_host.db.helpers import DatabaseError
from lucky_host.features.round_robin import (
    Attendee,
    BookingRecord,
    ConfigurationError,
    DistributionAlgorithm,
    EventType,
    Host,
    HostSelectorService,
    RosterHost,
)
from tests.factories import FakeBookingHistory, booking

MAX_AVAILABILITY = DistributionAlgorithm.MAXIMIZE_AVAILABILITY
EVENT = EventType(id=42, is_rr_weights_enabled=False)
WEIGHTED_EVENT = EventType(id=42, is_rr_weights_enabled=True)


def _roster(*hosts: Host) -> list[RosterHost]:
    return [
        RosterHost(
            user_id=h.id, email=h.email, weight=h.weight, weight_adjustment=h.weight_adjustment
        )
        for h in hosts
    ]


@pytest.mark.asyncio
async def test_single_available_user_skips_history(fake_history, disable_audit):
    only = Host(id=1, email="u1@example.com")
    selector = HostSelectorService(provider=fake_history)

    chosen = await selector.select_host(
        MAX_AVAILABILITY, [only], EVENT, _roster(only, Host(id=2, email="u2@example.com"))
    )

    assert chosen is only
    assert fake_history.fetch_calls == []
    assert fake_history.organizer_calls == []


@pytest.mark.asyncio
async def test_higher_priority_tier_wins_regardless_of_history(disable_audit):
    u1 = Host(id=1, email="u1@example.com", priority=1)
    u2 = Host(id=2, email="u2@example.com", priority=2)
    history = FakeBookingHistory([booking(1, 900, organizer=2), booking(2, 950, organizer=2)])
    selector = HostSelectorService(provider=history)

    chosen = await selector.select_host(MAX_AVAILABILITY, [u1, u2], EVENT, _roster(u1, u2))

    assert chosen == u2


@pytest.mark.asyncio
async def test_never_booked_host_beats_recently_booked_host(disable_audit):
    u1 = Host(id=1, email="u1@example.com")
    u2 = Host(id=2, email="u2@example.com")
    history = FakeBookingHistory([booking(1, 100, organizer=1)])
    selector = HostSelectorService(provider=history)

    chosen = await selector.select_host(MAX_AVAILABILITY, [u1, u2], EVENT, _roster(u1, u2))

    assert chosen == u2
    assert history.fetch_calls == [(42, tuple(_roster(u1, u2)), True)]
    assert history.organizer_calls == [(42, (1, 2))]


@pytest.mark.asyncio
async def test_weighted_event_favors_host_with_largest_shortfall(disable_audit):
    u1 = Host(id=1, email="u1@example.com", weight=200)
    u2 = Host(id=2, email="u2@example.com", weight=100)
    history = FakeBookingHistory(
        [
            booking(1, 100, organizer=2),
            booking(2, 200, organizer=2),
            booking(3, 300, organizer=2),
            # most recent booking is u1's, so recency alone would pick u2
            booking(4, 400, organizer=1),
        ]
    )
    selector = HostSelectorService(provider=history)

    result = await selector.select_host_with_trace(
        MAX_AVAILABILITY, [u1, u2], WEIGHTED_EVENT, _roster(u1, u2)
    )

    assert result.host == u1
    assert result.stages["weights"] == [1]
    assert result.history_size == 4


@pytest.mark.asyncio
async def test_weights_ignored_when_disabled(disable_audit):
    u1 = Host(id=1, email="u1@example.com", weight=200)
    u2 = Host(id=2, email="u2@example.com", weight=100)
    history = FakeBookingHistory(
        [booking(1, 100, organizer=2), booking(2, 200, organizer=2), booking(3, 400, organizer=1)]
    )
    selector = HostSelectorService(provider=history)

    result = await selector.select_host_with_trace(MAX_AVAILABILITY, [u1, u2], EVENT, _roster(u1, u2))

    assert result.host == u2
    assert "weights" not in result.stages


@pytest.mark.asyncio
async def test_unknown_algorithm_fails_before_fetching(fake_history, disable_audit):
    u1 = Host(id=1, email="u1@example.com")
    u2 = Host(id=2, email="u2@example.com")
    selector = HostSelectorService(provider=fake_history)

    with pytest.raises(ConfigurationError, match="Unknown distribution algorithm"):
        await selector.select_host("MAXIMIZE_FAIRNESS", [u1, u2], EVENT, _roster(u1, u2))

    assert fake_history.fetch_calls == []


@pytest.mark.asyncio
async def test_algorithm_accepts_plain_string(fake_history, disable_audit):
    u1 = Host(id=1, email="u1@example.com")
    u2 = Host(id=2, email="u2@example.com")
    selector = HostSelectorService(provider=fake_history, rng=random.Random(3))

    chosen = await selector.select_host("MAXIMIZE_AVAILABILITY", [u1, u2], EVENT, _roster(u1, u2))

    assert chosen in (u1, u2)


@pytest.mark.asyncio
async def test_empty_pool_is_configuration_error(fake_history, disable_audit):
    selector = HostSelectorService(provider=fake_history)

    with pytest.raises(ConfigurationError):
        await selector.select_host(MAX_AVAILABILITY, [], EVENT, [])


@pytest.mark.asyncio
async def test_zero_roster_weight_is_configuration_error(disable_audit):
    u1 = Host(id=1, email="u1@example.com", weight=0)
    u2 = Host(id=2, email="u2@example.com", weight=0)
    selector = HostSelectorService(provider=FakeBookingHistory())

    with pytest.raises(ConfigurationError, match="total weight"):
        await selector.select_host(MAX_AVAILABILITY, [u1, u2], WEIGHTED_EVENT, _roster(u1, u2))


@pytest.mark.asyncio
async def test_same_inputs_without_ties_choose_same_host(disable_audit):
    hosts = [Host(id=i, email=f"u{i}@example.com") for i in range(1, 5)]
    history = FakeBookingHistory(
        [booking(i, 100 * i, organizer=i) for i in range(1, 5)]
        + [booking(10, 50, organizer=9, attendees=["u3@example.com"])]
    )

    first = await HostSelectorService(provider=history).select_host(
        MAX_AVAILABILITY, hosts, EVENT, _roster(*hosts)
    )
    second = await HostSelectorService(provider=history).select_host(
        MAX_AVAILABILITY, hosts, EVENT, _roster(*hosts)
    )

    assert first == second == hosts[0]


@pytest.mark.asyncio
async def test_chosen_host_is_always_available(disable_audit):
    available = [Host(id=1, email="u1@example.com"), Host(id=2, email="u2@example.com")]
    roster = _roster(*available) + [RosterHost(user_id=3, email="u3@example.com")]
    history = FakeBookingHistory([booking(1, 10, organizer=1), booking(2, 20, organizer=2)])
    selector = HostSelectorService(provider=history, rng=random.Random(0))

    for _ in range(20):
        chosen = await selector.select_host(MAX_AVAILABILITY, available, WEIGHTED_EVENT, roster)
        assert chosen in available


@pytest.mark.asyncio
async def test_recent_attendance_counts_as_being_booked(disable_audit):
    u1 = Host(id=1, email="u1@example.com")
    u2 = Host(id=2, email="u2@example.com")
    history = FakeBookingHistory(
        [
            booking(1, 100, organizer=1),
            booking(2, 200, organizer=2),
            booking(3, 400, organizer=9, attendees=["u1@example.com"]),
        ]
    )
    selector = HostSelectorService(provider=history)

    chosen = await selector.select_host(MAX_AVAILABILITY, [u1, u2], EVENT, _roster(u1, u2))

    assert chosen == u2


@pytest.mark.asyncio
async def test_host_no_show_does_not_count_as_recent_booking(disable_audit):
    u1 = Host(id=1, email="u1@example.com")
    u2 = Host(id=2, email="u2@example.com")
    history = FakeBookingHistory(
        [booking(1, 500, organizer=1, no_show_host=True), booking(2, 100, organizer=2)]
    )
    selector = HostSelectorService(provider=history)

    chosen = await selector.select_host(MAX_AVAILABILITY, [u1, u2], EVENT, _roster(u1, u2))

    assert chosen == u1


@pytest.mark.asyncio
async def test_booking_without_attending_guests_does_not_count(disable_audit):
    u1 = Host(id=1, email="u1@example.com")
    u2 = Host(id=2, email="u2@example.com")
    history = FakeBookingHistory(
        [booking(1, 500, organizer=1, attendee_no_show=True), booking(2, 100, organizer=2)]
    )
    selector = HostSelectorService(provider=history)

    chosen = await selector.select_host(MAX_AVAILABILITY, [u1, u2], EVENT, _roster(u1, u2))

    assert chosen == u1


@pytest.mark.asyncio
async def test_provider_failure_propagates_unmodified(disable_audit):
    u1 = Host(id=1, email="u1@example.com")
    u2 = Host(id=2, email="u2@example.com")
    error = DatabaseError("connection reset", operation="fetch_all")
    provider = AsyncMock()
    provider.fetch_bookings.side_effect = error
    selector = HostSelectorService(provider=provider)

    with pytest.raises(DatabaseError) as exc_info:
        await selector.select_host(MAX_AVAILABILITY, [u1, u2], EVENT, _roster(u1, u2))

    assert exc_info.value is error
    provider.fetch_last_organizer_bookings.assert_not_awaited()


@pytest.mark.asyncio
async def test_slow_history_fetch_times_out(monkeypatch, disable_audit):
    u1 = Host(id=1, email="u1@example.com")
    u2 = Host(id=2, email="u2@example.com")

    class SlowHistory(FakeBookingHistory):
        async def fetch_bookings(self, *args, **kwargs):
            await asyncio.sleep(1)
            return []

    monkeypatch.setattr(
        "lucky_host.features.round_robin.services.selector.settings.HISTORY_FETCH_TIMEOUT_S",
        0.01,
    )
    selector = HostSelectorService(provider=SlowHistory())

    with pytest.raises(asyncio.TimeoutError):
        await selector.select_host(MAX_AVAILABILITY, [u1, u2], EVENT, _roster(u1, u2))


@pytest.mark.asyncio
async def test_selection_is_audited(monkeypatch):
    u1 = Host(id=1, email="u1@example.com")
    u2 = Host(id=2, email="u2@example.com")
    audit_mock = AsyncMock(return_value=False)
    monkeypatch.setattr(
        "lucky_host.features.round_robin.services.selector.audit_logger.log_host_assignment",
        audit_mock,
    )
    history = FakeBookingHistory([booking(1, 100, organizer=1)])
    selector = HostSelectorService(provider=history)

    await selector.select_host(MAX_AVAILABILITY, [u1, u2], EVENT, _roster(u1, u2))

    audit_mock.assert_awaited_once()
    kwargs = audit_mock.await_args.kwargs
    assert kwargs["event_type_id"] == 42
    assert kwargs["chosen_user_id"] == 2
    assert kwargs["algorithm"] == "MAXIMIZE_AVAILABILITY"
    assert kwargs["stages"] == {"available": [1, 2], "priority": [1, 2], "recency": [2]}


@pytest.mark.asyncio
async def test_naive_history_timestamps_are_treated_as_utc(disable_audit):
    u1 = Host(id=1, email="u1@example.com")
    u2 = Host(id=2, email="u2@example.com")

    class NaiveHistory(FakeBookingHistory):
        async def fetch_last_organizer_bookings(self, event_type_id, user_ids):
            self.organizer_calls.append((event_type_id, tuple(user_ids)))
            return {}

    naive = BookingRecord(
        id=1,
        created_at=datetime(2024, 1, 1),
        user_id=9,
        status="accepted",
        attendees=(Attendee(email="u1@example.com"),),
    )
    selector = HostSelectorService(provider=NaiveHistory([naive]))

    chosen = await selector.select_host(MAX_AVAILABILITY, [u1, u2], EVENT, _roster(u1, u2))

    assert chosen == u2


@pytest.mark.asyncio
async def test_naive_organizer_timestamps_are_treated_as_utc(disable_audit):
    u1 = Host(id=1, email="u1@example.com")
    u2 = Host(id=2, email="u2@example.com")

    class NaiveOrganizerHistory(FakeBookingHistory):
        async def fetch_last_organizer_bookings(self, event_type_id, user_ids):
            return {1: datetime(2024, 1, 1, 0, 5), 2: datetime(2024, 1, 1)}

    history = NaiveOrganizerHistory(
        [booking(1, 0, organizer=9, attendees=["u1@example.com"])]
    )
    selector = HostSelectorService(provider=history)

    chosen = await selector.select_host(MAX_AVAILABILITY, [u1, u2], EVENT, _roster(u1, u2))

    assert chosen == u2


@pytest.mark.asyncio
async def test_cancellation_during_history_fetch_propagates(monkeypatch):
    u1 = Host(id=1, email="u1@example.com")
    u2 = Host(id=2, email="u2@example.com")
    started = asyncio.Event()

    class HangingHistory(FakeBookingHistory):
        async def fetch_bookings(self, *args, **kwargs):
            started.set()
            await asyncio.Event().wait()

    audit_mock = AsyncMock(return_value=True)
    monkeypatch.setattr(
        "lucky_host.features.round_robin.services.selector.audit_logger.log_host_assignment",
        audit_mock,
    )
    history = HangingHistory()
    selector = HostSelectorService(provider=history)

    task = asyncio.create_task(
        selector.select_host(MAX_AVAILABILITY, [u1, u2], EVENT, _roster(u1, u2))
    )
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert history.organizer_calls == []
    audit_mock.assert_not_awaited()
