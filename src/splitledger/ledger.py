"""Trip editing operations. Pure: every function returns a new Trip, never mutates its input."""

from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import TypeVar

from .exceptions import InvalidInput, RecordNotFoundError
from .models import Expense, Participant, Settlement, SplitStrategy, SyncedRecord, Trip
from .splits import ParamValue, compute_splits

R = TypeVar("R", bound=SyncedRecord)


def touched(record: R, **changes: object) -> R:
    """Copy a record with changes applied, stamped as a local edit awaiting sync."""
    return record.model_copy(
        update={**changes, "updated_at": datetime.now(), "needs_sync": True}
    )


# === Participants ===


def add_participant(
    trip: Trip,
    name: str,
    is_current_user: bool = False,
    color: str | None = None,
) -> tuple[Trip, Participant]:
    """
    Add a participant to a trip.

    Flagging the new participant as current user clears the flag on everyone else.

    Returns:
        Tuple of (new Trip, created Participant)
    """
    name = name.strip()
    if not name:
        raise InvalidInput("Participant name must not be empty", field="name")

    participant = Participant(name=name, is_current_user=is_current_user, color=color)

    new_trip = trip.model_copy(deep=True)
    if is_current_user:
        for pid, other in new_trip.participants.items():
            if other.is_current_user:
                new_trip.participants[pid] = touched(other, is_current_user=False)
    new_trip.participants[participant.id] = participant
    return new_trip, participant


def rename_participant(
    trip: Trip,
    participant_id: str,
    name: str | None = None,
    color: str | None = None,
) -> tuple[Trip, Participant]:
    """Change a participant's display name and/or color. Ids never change."""
    existing = _get_participant(trip, participant_id)
    changes: dict[str, object] = {}
    if name is not None:
        if not name.strip():
            raise InvalidInput("Participant name must not be empty", field="name")
        changes["name"] = name.strip()
    if color is not None:
        changes["color"] = color

    updated = touched(existing, **changes)
    new_trip = trip.model_copy(deep=True)
    new_trip.participants[participant_id] = updated
    return new_trip, updated


def remove_participant(trip: Trip, participant_id: str) -> tuple[Trip, Participant]:
    """
    Soft-remove a participant.

    The record stays in the trip so existing expenses and settlements keep
    resolving; removed participants cannot take part in new records.
    """
    existing = _get_participant(trip, participant_id)
    if existing.is_removed:
        return trip.model_copy(deep=True), existing

    updated = touched(existing, removed_at=datetime.now())
    new_trip = trip.model_copy(deep=True)
    new_trip.participants[participant_id] = updated
    return new_trip, updated


def normalize_current_user(trip: Trip) -> Trip:
    """
    Make sure exactly one participant carries the current-user flag.

    Keeps a sole flagged participant; otherwise prefers one named "You",
    otherwise the first participant.
    """
    participants = list(trip.participants.values())
    if not participants:
        return trip.model_copy(deep=True)

    flagged = [p for p in participants if p.is_current_user]
    if len(flagged) == 1:
        chosen = flagged[0].id
    else:
        you = next((p for p in participants if p.name.strip().lower() == "you"), None)
        chosen = (you or participants[0]).id

    new_trip = trip.model_copy(deep=True)
    for pid, participant in new_trip.participants.items():
        should_flag = pid == chosen
        if participant.is_current_user != should_flag:
            new_trip.participants[pid] = touched(participant, is_current_user=should_flag)
    return new_trip


# === Expenses ===


def add_expense(
    trip: Trip,
    amount: int,
    paid_by: str,
    strategy: SplitStrategy = SplitStrategy.EQUAL,
    params: Mapping[str, ParamValue] | None = None,
    participants: Sequence[str] | None = None,
    description: str = "",
    ts: datetime | None = None,
) -> tuple[Trip, Expense]:
    """
    Add an expense to a trip, computing its splits.

    Args:
        trip: Original trip
        amount: Total in minor units
        paid_by: Participant id of the payer
        strategy: How to split the amount
        params: Strategy parameters per participant id
        participants: Who the expense is split among, in order
            (default: all active participants)
        description: What the expense was for
        ts: When it happened (default: now)

    Returns:
        Tuple of (new Trip, created Expense)

    Raises:
        InvalidInput: If the payer, participants or split inputs are rejected
    """
    _require_active(trip, paid_by, "paid_by")
    order = _split_participants(trip, participants)
    splits = compute_splits(amount, strategy, order, params)

    expense = Expense(
        trip_id=trip.id,
        ts=ts or datetime.now(),
        description=description,
        amount=amount,
        paid_by=paid_by,
        strategy=strategy,
        split_params=dict(params or {}),
        computed_splits=splits,
    )

    new_trip = trip.model_copy(deep=True)
    new_trip.expenses[expense.id] = expense
    return new_trip, expense


def edit_expense(
    trip: Trip,
    expense_id: str,
    amount: int | None = None,
    paid_by: str | None = None,
    strategy: SplitStrategy | None = None,
    params: Mapping[str, ParamValue] | None = None,
    participants: Sequence[str] | None = None,
    description: str | None = None,
) -> tuple[Trip, Expense]:
    """
    Edit an expense and recompute its splits.

    Unspecified fields keep their current value. The split participant list
    defaults to the expense's current one.
    """
    existing = _get_expense(trip, expense_id)
    if existing.is_deleted:
        raise InvalidInput(f"Expense '{expense_id}' is deleted", field="expense_id")

    new_amount = existing.amount if amount is None else amount
    new_payer = existing.paid_by if paid_by is None else paid_by
    new_strategy = existing.strategy if strategy is None else strategy
    new_params = existing.split_params if params is None else dict(params)
    order = list(existing.computed_splits) if participants is None else list(participants)

    if paid_by is not None:
        _require_active(trip, new_payer, "paid_by")
    if participants is not None:
        order = _split_participants(trip, participants)
    for pid in order:
        if pid not in trip.participants:
            raise InvalidInput(f"'{pid}' is not a participant of this trip", field="participants")

    splits = compute_splits(new_amount, new_strategy, order, new_params)

    changes: dict[str, object] = {
        "amount": new_amount,
        "paid_by": new_payer,
        "strategy": new_strategy,
        "split_params": new_params,
        "computed_splits": splits,
    }
    if description is not None:
        changes["description"] = description

    updated = touched(existing, **changes)
    new_trip = trip.model_copy(deep=True)
    new_trip.expenses[expense_id] = updated
    return new_trip, updated


def remove_expense(trip: Trip, expense_id: str) -> tuple[Trip, Expense]:
    """Soft-delete an expense. It stops affecting balances but stays on record."""
    existing = _get_expense(trip, expense_id)
    updated = existing if existing.is_deleted else touched(existing, deleted_at=datetime.now())
    new_trip = trip.model_copy(deep=True)
    new_trip.expenses[expense_id] = updated
    return new_trip, updated


# === Settlements ===


def add_settlement(
    trip: Trip,
    from_participant: str,
    to_participant: str,
    amount: int,
    note: str = "",
    ts: datetime | None = None,
    settlement_id: str | None = None,
    idempotency_key: str | None = None,
) -> tuple[Trip, Settlement]:
    """
    Add a settlement (payment between participants) to a trip.

    Args:
        trip: Original trip
        from_participant: Who paid
        to_participant: Who received
        amount: Amount paid in minor units
        note: Optional note
        ts: When it happened (default: now)
        settlement_id: Explicit id (default: random)
        idempotency_key: Key the settlement was recorded under, if any

    Returns:
        Tuple of (new Trip, created Settlement)
    """
    validate_settlement(trip, from_participant, to_participant, amount)

    fields: dict[str, object] = {}
    if settlement_id is not None:
        fields["id"] = settlement_id
    settlement = Settlement(
        trip_id=trip.id,
        ts=ts or datetime.now(),
        from_participant=from_participant,
        to_participant=to_participant,
        amount=amount,
        note=note,
        idempotency_key=idempotency_key,
        **fields,
    )

    new_trip = trip.model_copy(deep=True)
    new_trip.settlements[settlement.id] = settlement
    return new_trip, settlement


def remove_settlement(trip: Trip, settlement_id: str) -> tuple[Trip, Settlement]:
    """Soft-delete a settlement."""
    existing = trip.settlements.get(settlement_id)
    if existing is None:
        raise RecordNotFoundError("settlement", settlement_id)
    updated = existing if existing.is_deleted else touched(existing, deleted_at=datetime.now())
    new_trip = trip.model_copy(deep=True)
    new_trip.settlements[settlement_id] = updated
    return new_trip, updated


def validate_settlement(
    trip: Trip, from_participant: str, to_participant: str, amount: int
) -> None:
    """
    Check a settlement before it is recorded.

    Raises:
        InvalidInput: If the participants are equal or unknown, or amount is not positive
    """
    if from_participant == to_participant:
        raise InvalidInput("Settlement sender and receiver must differ", field="to_participant")
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidInput(
            f"Settlement amount must be a positive integer, got {amount!r}", field="amount"
        )
    for field, pid in (("from_participant", from_participant), ("to_participant", to_participant)):
        if pid not in trip.participants:
            raise InvalidInput(f"'{pid}' is not a participant of this trip", field=field)


# === Undo ===


def undo_last(trip: Trip) -> tuple[Trip, Expense | Settlement | None]:
    """
    Soft-delete the most recent live expense or settlement.

    Returns:
        Tuple of (new Trip, removed item or None if nothing to undo)
    """
    candidates: list[Expense | Settlement] = [*trip.live_expenses(), *trip.live_settlements()]
    if not candidates:
        return trip.model_copy(deep=True), None

    last = max(candidates, key=lambda record: record.ts)
    if isinstance(last, Expense):
        return remove_expense(trip, last.id)
    return remove_settlement(trip, last.id)


# === Lookups ===


def _get_participant(trip: Trip, participant_id: str) -> Participant:
    participant = trip.participants.get(participant_id)
    if participant is None:
        raise RecordNotFoundError("participant", participant_id)
    return participant


def _get_expense(trip: Trip, expense_id: str) -> Expense:
    expense = trip.expenses.get(expense_id)
    if expense is None:
        raise RecordNotFoundError("expense", expense_id)
    return expense


def _require_active(trip: Trip, participant_id: str, field: str) -> None:
    participant = trip.participants.get(participant_id)
    if participant is None:
        raise InvalidInput(f"'{participant_id}' is not a participant of this trip", field=field)
    if participant.is_removed:
        raise InvalidInput(f"'{participant.name}' has been removed from this trip", field=field)


def _split_participants(trip: Trip, participants: Sequence[str] | None) -> list[str]:
    if participants is None:
        return trip.participant_ids(include_removed=False)
    for pid in participants:
        _require_active(trip, pid, "participants")
    return list(participants)
