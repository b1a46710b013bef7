"""Shared fixtures for the trip budget tests."""

from datetime import datetime

import pytest

from tripbudget.models.trip import AccountSnapshot, Trip, TripDraft
from tripbudget.services.rates import TableConverter
from tripbudget.store import EntityStore, IdFactory, default_snapshot


class FakeClock:
    """A clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def rates() -> dict[str, float]:
    return {"EUR": 1.0, "USD": 1.08, "THB": 39.5}


@pytest.fixture
def converter(rates) -> TableConverter:
    return TableConverter(rates)


@pytest.fixture
def store() -> EntityStore:
    return EntityStore(id_factory=IdFactory(clock=FakeClock()))


@pytest.fixture
def trip_draft() -> TripDraft:
    return TripDraft(
        name="Giappone",
        start_date=datetime(2024, 3, 1),
        end_date=datetime(2024, 3, 10),
        total_budget=1000,
        countries=["Giappone"],
        main_currency="EUR",
        preferred_currencies=["EUR", "USD"],
    )


@pytest.fixture
def loaded(store, trip_draft) -> AccountSnapshot:
    """Default snapshot with one trip."""
    return store.add_trip(default_snapshot(), trip_draft)


@pytest.fixture
def trip(loaded) -> Trip:
    return loaded.trips[0]
