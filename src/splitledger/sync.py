"""Last-write-wins reconciliation of records pulled from another device."""

import logging
from collections.abc import Mapping
from typing import TypeVar

from .models import SyncedRecord, Trip

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=SyncedRecord)


def merge(local: R | None, remote: R) -> R:
    """
    Pick the surviving copy of a record.

    The remote copy wins and is stored as synced, unless the local copy has
    unpushed edits that are newer than the remote one.

    Args:
        local: Local record, or None if the record is new here
        remote: Incoming record

    Returns:
        The record to store
    """
    if local is not None and local.needs_sync and local.updated_at > remote.updated_at:
        return local
    return remote.model_copy(update={"needs_sync": False})


def merge_table(local: Mapping[str, R], remote: Mapping[str, R]) -> dict[str, R]:
    """Merge an id-indexed table. Local-only records are kept as they are."""
    merged = dict(local)
    for record_id, incoming in remote.items():
        merged[record_id] = merge(local.get(record_id), incoming)
    return merged


def merge_trip(local: Trip, remote: Trip) -> Trip:
    """Merge every table of a trip pulled from another device."""
    if local.id != remote.id:
        raise ValueError(f"Cannot merge trip {remote.id} into {local.id}")

    header = merge(local, remote)
    merged = header.model_copy(
        update={
            "participants": merge_table(local.participants, remote.participants),
            "expenses": merge_table(local.expenses, remote.expenses),
            "settlements": merge_table(local.settlements, remote.settlements),
        }
    )
    logger.debug(
        "Merged trip %s: %d participants, %d expenses, %d settlements",
        merged.id,
        len(merged.participants),
        len(merged.expenses),
        len(merged.settlements),
    )
    return merged


def pending_changes(trip: Trip) -> list[SyncedRecord]:
    """Records with local edits that still need pushing."""
    records: list[SyncedRecord] = []
    if trip.needs_sync:
        records.append(trip)
    for table in (trip.participants, trip.expenses, trip.settlements):
        records.extend(r for r in table.values() if r.needs_sync)
    return records


def mark_synced(trip: Trip) -> Trip:
    """Clear needs_sync on every record after a successful push."""

    def clear(table: Mapping[str, R]) -> dict[str, R]:
        return {k: v.model_copy(update={"needs_sync": False}) for k, v in table.items()}

    return trip.model_copy(
        update={
            "needs_sync": False,
            "participants": clear(trip.participants),
            "expenses": clear(trip.expenses),
            "settlements": clear(trip.settlements),
        }
    )
