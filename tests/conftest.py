"""Shared test fixtures for splitledger tests."""

from pathlib import Path

import pytest

from splitledger.models import Expense, Participant, SplitStrategy, Trip
from splitledger.state import TripManager


def make_trip(*ids: str, current_user: str | None = None) -> Trip:
    """Build a trip whose participant ids double as their names."""
    trip = Trip(id="trip-1", name="Test Trip")
    for pid in ids:
        trip.participants[pid] = Participant(id=pid, name=pid, is_current_user=pid == current_user)
    return trip


def make_expense(
    trip: Trip, amount: int, paid_by: str, splits: dict[str, int], expense_id: str | None = None
) -> Expense:
    """Build an expense with precomputed splits and add it to the trip in place."""
    fields = {"id": expense_id} if expense_id else {}
    expense = Expense(
        trip_id=trip.id,
        amount=amount,
        paid_by=paid_by,
        strategy=SplitStrategy.EXACT,
        split_params=splits,
        computed_splits=splits,
        **fields,
    )
    trip.expenses[expense.id] = expense
    return expense


@pytest.fixture
def abc_trip() -> Trip:
    """Create a trip with participants A, B and C, A being the current user."""
    return make_trip("A", "B", "C", current_user="A")


@pytest.fixture
def trip_with_expenses() -> Trip:
    """Create a trip with some expenses for testing."""
    trip = make_trip("Dan", "Sara", "Avi")

    # Dan paid 300.00 for dinner, split equally
    make_expense(trip, 30000, "Dan", {"Dan": 10000, "Sara": 10000, "Avi": 10000})

    # Sara paid 150.00 for gas, split equally
    make_expense(trip, 15000, "Sara", {"Dan": 5000, "Sara": 5000, "Avi": 5000})

    return trip


@pytest.fixture
def temp_state_dir(tmp_path: Path) -> Path:
    """Create a temporary directory for state files."""
    state_dir = tmp_path / "state"
    state_dir.mkdir()
    return state_dir


@pytest.fixture
def trip_manager(temp_state_dir: Path) -> TripManager:
    """Create a TripManager with a temporary state directory."""
    return TripManager(temp_state_dir)


@pytest.fixture
def stored_trip(trip_manager: TripManager, abc_trip: Trip) -> Trip:
    """Save the A/B/C trip into the temporary store."""
    trip_manager.save_trip(abc_trip)
    return abc_trip
