"""Idempotent recording of realized settlements."""

import hashlib
import logging
import threading
from datetime import datetime
from pathlib import Path
from uuid import UUID, uuid5

from . import ledger
from .audit import log_event
from .config import IDEMPOTENCY_WINDOW_MS, get_log_path
from .state import TripManager

logger = logging.getLogger(__name__)

SETTLEMENT_NAMESPACE = UUID("6c1f7a52-93a4-4c52-8f0e-2b7d3c9e5a10")


def idempotency_bucket(ts: datetime) -> int:
    """Window number a timestamp falls into."""
    return int(ts.timestamp() * 1000) // IDEMPOTENCY_WINDOW_MS


def compute_idempotency_key(
    trip_id: str,
    from_participant: str,
    to_participant: str,
    amount: int,
    ts: datetime,
    note: str = "",
) -> str:
    """
    Derive a deterministic idempotency key for a logical settlement.

    Same trip, participants, amount, note and time window produce the same
    key, so a retried delivery maps onto the record created the first time.

    Returns:
        SHA256 hex digest (64 characters)
    """
    payload = "|".join(
        [
            trip_id,
            from_participant,
            to_participant,
            str(abs(amount)),
            str(idempotency_bucket(ts)),
            note.strip(),
        ]
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def settlement_id_for(idempotency_key: str) -> str:
    """Stable settlement id for an idempotency key."""
    return str(uuid5(SETTLEMENT_NAMESPACE, idempotency_key))


class SettlementLedger:
    """
    Records settlements against trips held by a TripManager.

    Writes are serialized per trip. Recording only appends a settlement;
    balances are always recomputed from the stored records.
    """

    def __init__(self, trip_manager: TripManager, log_path: Path | None = None):
        """
        Initialize SettlementLedger.

        Args:
            trip_manager: Store holding the trips
            log_path: Audit log path (default: alongside the store's state)
        """
        self.trip_manager = trip_manager
        self.log_path = log_path or get_log_path(trip_manager.state_dir)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _trip_lock(self, trip_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(trip_id, threading.Lock())

    def record_settlement(
        self,
        trip_id: str,
        from_participant: str,
        to_participant: str,
        amount: int,
        idempotency_key: str | None = None,
        *,
        ts: datetime | None = None,
        note: str = "",
    ) -> str:
        """
        Record a settlement, at most once per idempotency key.

        Args:
            trip_id: Trip the payment belongs to
            from_participant: Who paid
            to_participant: Who received
            amount: Amount in minor units, > 0
            idempotency_key: Caller-chosen key; derived from the payment details if omitted
            ts: When the payment happened (default: now)
            note: Optional note

        Returns:
            Id of the stored settlement (the existing one for a repeated key)

        Raises:
            TripNotFoundError: If the trip does not exist
            InvalidInput: If the settlement fails validation
        """
        ts = ts or datetime.now()

        with self._trip_lock(trip_id), self.trip_manager.transaction():
            trip = self.trip_manager.require_trip(trip_id)
            ledger.validate_settlement(trip, from_participant, to_participant, amount)

            key = idempotency_key or compute_idempotency_key(
                trip_id, from_participant, to_participant, amount, ts, note
            )
            settlement_id = settlement_id_for(key)

            settlement = trip.settlements.get(settlement_id)
            duplicate = settlement is not None
            if not duplicate:
                trip, settlement = ledger.add_settlement(
                    trip,
                    from_participant,
                    to_participant,
                    amount,
                    note=note,
                    ts=ts,
                    settlement_id=settlement_id,
                    idempotency_key=key,
                )
                self.trip_manager.save_trip(trip)

        if duplicate:
            logger.info(
                "Settlement already recorded for key %s... (id %s)", key[:8], settlement_id
            )
            log_event(trip_id, "settlement_duplicate", settlement_id, log_path=self.log_path)
            return settlement.id

        logger.info(
            "Recorded settlement %s: %s -> %s %d",
            settlement.id,
            from_participant,
            to_participant,
            amount,
        )
        log_event(
            trip_id,
            "settlement_recorded",
            settlement.id,
            log_path=self.log_path,
            from_participant=from_participant,
            to_participant=to_participant,
            amount=amount,
        )
        return settlement.id

    def remove_settlement(self, trip_id: str, settlement_id: str) -> None:
        """Soft-delete a settlement so it stops affecting balances."""
        with self._trip_lock(trip_id):
            with self.trip_manager.transaction():
                trip = self.trip_manager.require_trip(trip_id)
                trip, _ = ledger.remove_settlement(trip, settlement_id)
                self.trip_manager.save_trip(trip)

        logger.info("Removed settlement %s from trip %s", settlement_id, trip_id)
        log_event(trip_id, "settlement_removed", settlement_id, log_path=self.log_path)
