"""Tests for last-write-wins merging."""

from datetime import datetime, timedelta

import pytest
from conftest import make_trip

from splitledger.models import Participant
from splitledger.sync import mark_synced, merge, merge_table, merge_trip, pending_changes

NOW = datetime(2024, 6, 1, 12, 0, 0)


def _participant(name: str, updated_at: datetime, needs_sync: bool) -> Participant:
    return Participant(id="p1", name=name, updated_at=updated_at, needs_sync=needs_sync)


class TestMerge:
    """Tests for the per-record rule."""

    def test_remote_wins_by_default(self) -> None:
        local = _participant("Local", NOW, needs_sync=False)
        remote = _participant("Remote", NOW - timedelta(minutes=1), needs_sync=True)

        merged = merge(local, remote)

        assert merged.name == "Remote"
        assert not merged.needs_sync

    def test_newer_unpushed_local_wins(self) -> None:
        """Test that a newer local edit awaiting push survives."""
        local = _participant("Local", NOW, needs_sync=True)
        remote = _participant("Remote", NOW - timedelta(minutes=1), needs_sync=False)

        merged = merge(local, remote)

        assert merged is local
        assert merged.needs_sync

    def test_older_unpushed_local_loses(self) -> None:
        local = _participant("Local", NOW - timedelta(minutes=1), needs_sync=True)
        remote = _participant("Remote", NOW, needs_sync=False)

        assert merge(local, remote).name == "Remote"

    def test_new_remote_record(self) -> None:
        remote = _participant("Remote", NOW, needs_sync=True)
        assert merge(None, remote).needs_sync is False

    def test_merge_table_keeps_local_only(self) -> None:
        local = {"a": Participant(id="a", name="A")}
        remote = {"b": Participant(id="b", name="B")}

        merged = merge_table(local, remote)

        assert set(merged) == {"a", "b"}


class TestMergeTrip:
    """Tests for trip-level merging."""

    def test_tables_merged(self) -> None:
        local = make_trip("A")
        remote = make_trip("B")

        merged = merge_trip(local, remote)

        assert set(merged.participants) == {"A", "B"}

    def test_different_trips_rejected(self) -> None:
        other = make_trip("A").model_copy(update={"id": "trip-2"})
        with pytest.raises(ValueError):
            merge_trip(make_trip("A"), other)


class TestPendingChanges:
    """Tests for push bookkeeping."""

    def test_pending_then_synced(self) -> None:
        """Test that fresh records are pending until marked synced."""
        trip = make_trip("A", "B")
        assert len(pending_changes(trip)) == 3

        synced = mark_synced(trip)

        assert pending_changes(synced) == []
        assert trip.participants["A"].needs_sync
