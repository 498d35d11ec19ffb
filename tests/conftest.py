import pytest

from tests.factories import FakeBookingHistory


@pytest.fixture
def fake_history():
    return FakeBookingHistory()


@pytest.fixture
def disable_audit(monkeypatch):
    monkeypatch.setattr(
        "lucky_host.features.round_robin.services.selector.settings.SELECTION_AUDIT_ENABLED",
        False,
    )
