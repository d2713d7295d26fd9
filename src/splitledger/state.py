"""Trip persistence - load/save trips as JSON and publish change events."""

import json
import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from pydantic import ValidationError

from .config import get_state_dir
from .events import ChangeNotifier, Events
from .exceptions import StateError, TripNotFoundError
from .models import Trip

logger = logging.getLogger(__name__)


class TripManager:
    """
    Stores trips and hands out consistent snapshots.

    State is persisted to <state_dir>/trips.json. Reads return deep copies,
    so callers never observe a half-applied write. Writes made inside
    transaction() are saved once on commit and rolled back on error; their
    change events are delivered only after the commit.
    """

    def __init__(
        self,
        state_dir: str | Path | None = None,
        notifier: ChangeNotifier | None = None,
    ):
        """
        Initialize TripManager.

        Args:
            state_dir: Directory for state files (default: SPLITLEDGER_STATE_DIR or ~/.splitledger)
            notifier: Change notifier to publish on (default: a private one)
        """
        self.state_dir = get_state_dir(state_dir)
        self.state_dir.mkdir(parents=True, exist_ok=True)
        self.trips_file = self.state_dir / "trips.json"

        self.notifier = notifier or ChangeNotifier()

        self._trips: dict[str, Trip] = {}
        self._lock = threading.RLock()
        self._tx_depth = 0

        self._load()

    def _load(self) -> None:
        """Load state from disk."""
        if not self.trips_file.exists():
            return
        try:
            with open(self.trips_file, encoding="utf-8") as f:
                data = json.load(f)
            self._trips = {trip_id: Trip.model_validate(trip) for trip_id, trip in data.items()}
        except (json.JSONDecodeError, ValidationError) as e:
            raise StateError(f"Could not read {self.trips_file}: {e}") from e
        logger.debug("Loaded %d trip(s) from %s", len(self._trips), self.trips_file)

    def _save(self) -> None:
        """Save state to disk, unless a transaction is open."""
        if self._tx_depth > 0:
            return
        tmp_file = self.trips_file.with_suffix(".json.tmp")
        with open(tmp_file, "w", encoding="utf-8") as f:
            json.dump(
                {trip_id: trip.model_dump(mode="json") for trip_id, trip in self._trips.items()},
                f,
                indent=2,
                ensure_ascii=False,
            )
        tmp_file.replace(self.trips_file)

    @contextmanager
    def transaction(self) -> Iterator["TripManager"]:
        """
        Group writes into one all-or-nothing save.

        Nested transactions join the outer one.
        """
        with self._lock:
            snapshot = {k: v.model_copy(deep=True) for k, v in self._trips.items()}
            self._tx_depth += 1
            self.notifier.begin_batch()
            try:
                yield self
            except BaseException:
                self._tx_depth -= 1
                self._trips = snapshot
                self.notifier.end_batch(commit=False)
                logger.debug("Transaction rolled back")
                raise
            self._tx_depth -= 1
            try:
                self._save()
            except BaseException:
                self._trips = snapshot
                self.notifier.end_batch(commit=False)
                raise
            self.notifier.end_batch(commit=True)

    def get_trip(self, trip_id: str) -> Trip | None:
        """Get a snapshot of a trip by id."""
        with self._lock:
            trip = self._trips.get(trip_id)
            return trip.model_copy(deep=True) if trip else None

    def require_trip(self, trip_id: str) -> Trip:
        """Get a trip snapshot or raise TripNotFoundError."""
        trip = self.get_trip(trip_id)
        if trip is None:
            raise TripNotFoundError(trip_id)
        return trip

    def find_trip(self, name_or_id: str) -> Trip | None:
        """Look up a trip by id, falling back to its name."""
        trip = self.get_trip(name_or_id)
        if trip is not None:
            return trip
        with self._lock:
            for candidate in self._trips.values():
                if candidate.name == name_or_id:
                    return candidate.model_copy(deep=True)
        return None

    def create_trip(self, name: str) -> Trip:
        """Create a new trip."""
        trip = Trip(name=name)
        with self.transaction():
            self._trips[trip.id] = trip
            self.notifier.emit(Events.TRIPS_CHANGED)
        logger.info("Created trip %s (%s)", trip.name, trip.id)
        return trip.model_copy(deep=True)

    def save_trip(self, trip: Trip) -> None:
        """Save/update a trip and announce which tables changed."""
        with self.transaction():
            previous = self._trips.get(trip.id)
            self._trips[trip.id] = trip.model_copy(deep=True)
            for event in _changed_tables(previous, trip):
                self.notifier.emit(event)

    def list_trips(self) -> list[Trip]:
        """List snapshots of all trips."""
        with self._lock:
            return [trip.model_copy(deep=True) for trip in self._trips.values()]

    def delete_trip(self, trip_id: str) -> bool:
        """Delete a trip. Returns True if deleted."""
        with self.transaction():
            if trip_id not in self._trips:
                return False
            del self._trips[trip_id]
            self.notifier.emit(Events.TRIPS_CHANGED)
        return True


def _changed_tables(previous: Trip | None, current: Trip) -> list[Events]:
    if previous is None:
        return [Events.TRIPS_CHANGED]
    events = []
    if previous.name != current.name:
        events.append(Events.TRIPS_CHANGED)
    if previous.participants != current.participants:
        events.append(Events.PARTICIPANTS_CHANGED)
    if previous.expenses != current.expenses:
        events.append(Events.EXPENSES_CHANGED)
    if previous.settlements != current.settlements:
        events.append(Events.SETTLEMENTS_CHANGED)
    return events
