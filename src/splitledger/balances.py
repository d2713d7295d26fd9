"""Balance aggregation over a trip's expenses and settlements. No I/O, no side effects."""

from collections import defaultdict
from collections.abc import Iterable

from .exceptions import InvariantViolation
from .models import Expense, ParticipantBalance, Settlement, Trip


def compute_balances(
    expenses: Iterable[Expense],
    settlements: Iterable[Settlement],
    participants: Iterable[str],
) -> dict[str, int]:
    """
    Compute net balance per participant in minor units.

    Positive balance = participant is owed money by the group
    Negative balance = participant owes money to the group

    Soft-deleted expenses and settlements are skipped. Ids referenced by a
    record but missing from participants (soft-removed people) are kept.

    Args:
        expenses: Expenses with their computed splits
        settlements: Recorded settlements
        participants: Participant ids to report, in display order

    Returns:
        Dict mapping participant id to net balance

    Raises:
        InvariantViolation: If an expense's splits do not sum to its amount,
            or the balances do not sum to zero
    """
    balances: dict[str, int] = {pid: 0 for pid in participants}

    for expense in expenses:
        if expense.is_deleted:
            continue
        _check_expense(expense)
        # Payer fronted the full amount
        balances[expense.paid_by] = balances.get(expense.paid_by, 0) + expense.amount
        for pid, owed in expense.computed_splits.items():
            balances[pid] = balances.get(pid, 0) - owed

    for settlement in settlements:
        if settlement.is_deleted:
            continue
        balances[settlement.from_participant] = (
            balances.get(settlement.from_participant, 0) + settlement.amount
        )
        balances[settlement.to_participant] = (
            balances.get(settlement.to_participant, 0) - settlement.amount
        )

    total = sum(balances.values())
    if total != 0:
        raise InvariantViolation(f"Balances sum to {total}, expected 0: {balances}")
    return balances


def trip_balances(trip: Trip) -> dict[str, int]:
    """Net balances for every participant of a trip, removed ones included."""
    return compute_balances(
        trip.expenses.values(), trip.settlements.values(), trip.participant_ids()
    )


def participant_balances(trip: Trip) -> list[ParticipantBalance]:
    """
    Paid / owed breakdown per participant.

    Settlements count towards "paid": the sender has paid more, the receiver
    has been reimbursed and so has effectively paid less.
    """
    paid: dict[str, int] = defaultdict(int)
    owed: dict[str, int] = defaultdict(int)

    for expense in trip.live_expenses():
        _check_expense(expense)
        paid[expense.paid_by] += expense.amount
        for pid, amount in expense.computed_splits.items():
            owed[pid] += amount

    for settlement in trip.live_settlements():
        paid[settlement.from_participant] += settlement.amount
        paid[settlement.to_participant] -= settlement.amount

    return [
        ParticipantBalance(
            participant_id=p.id,
            name=p.name,
            is_current_user=p.is_current_user,
            total_paid=paid[p.id],
            total_owed=owed[p.id],
        )
        for p in trip.participants.values()
    ]


def current_user_summary(balances: Iterable[ParticipantBalance]) -> tuple[int, int]:
    """
    What the current user owes or gets back.

    Returns:
        Tuple of (owes, gets_back); at most one is non-zero
    """
    for balance in balances:
        if balance.is_current_user:
            if balance.net < 0:
                return -balance.net, 0
            return 0, balance.net
    return 0, 0


def detailed_debts(expenses: Iterable[Expense]) -> dict[str, dict[str, int]]:
    """
    Who owes whom from expense splits alone (settlements ignored).

    Returns:
        Dict of creditor id -> debtor id -> amount
    """
    debts: dict[str, dict[str, int]] = {}
    for expense in expenses:
        if expense.is_deleted:
            continue
        for pid, amount in expense.computed_splits.items():
            # Payer does not owe themselves
            if pid == expense.paid_by or amount <= 0:
                continue
            per_debtor = debts.setdefault(expense.paid_by, {})
            per_debtor[pid] = per_debtor.get(pid, 0) + amount
    return debts


def _check_expense(expense: Expense) -> None:
    allocated = sum(expense.computed_splits.values())
    if allocated != expense.amount:
        raise InvariantViolation(
            f"Expense {expense.id} splits sum to {allocated} but amount is {expense.amount}"
        )
