"""Debt simplification: turn net balances into suggested transfers."""

import logging
from collections.abc import Mapping

from .balances import trip_balances
from .exceptions import InvalidInput
from .models import SuggestedTransfer, Trip

logger = logging.getLogger(__name__)


def simplify(balances: Mapping[str, int], threshold: int = 0) -> list[SuggestedTransfer]:
    """
    Compute transfers that settle all debts.

    Greedy matching: the largest debtor pays the largest creditor the smaller
    of the two amounts, until nobody is left outside the threshold. Ties go to
    whoever comes first in balances. The result has at most N - 1 transfers for
    N non-zero participants but is not guaranteed to be the minimum.

    Args:
        balances: Net balance per participant, must sum to zero
        threshold: Balances within this many minor units of zero count as settled

    Returns:
        Ordered list of SuggestedTransfer (debtor -> creditor)

    Raises:
        InvalidInput: If balances do not sum to zero or threshold is negative
    """
    if threshold < 0:
        raise InvalidInput(f"Threshold must not be negative, got {threshold}", field="threshold")
    total = sum(balances.values())
    if total != 0:
        raise InvalidInput(f"Balances sum to {total}, expected 0", field="balances")

    order = {pid: i for i, pid in enumerate(balances)}

    # (person, amount) with amount stored positive on both sides
    creditors: list[tuple[str, int]] = []
    debtors: list[tuple[str, int]] = []
    for person, balance in balances.items():
        if balance > threshold:
            creditors.append((person, balance))
        elif balance < -threshold:
            debtors.append((person, -balance))

    def rank(entry: tuple[str, int]) -> tuple[int, int]:
        return -entry[1], order[entry[0]]

    creditors.sort(key=rank)
    debtors.sort(key=rank)

    transfers: list[SuggestedTransfer] = []

    while debtors and creditors:
        debtor, debt = debtors.pop(0)
        creditor, credit = creditors.pop(0)

        amount = min(debt, credit)
        transfers.append(
            SuggestedTransfer(from_participant=debtor, to_participant=creditor, amount=amount)
        )

        if debt - amount > threshold:
            debtors.append((debtor, debt - amount))
            debtors.sort(key=rank)
        if credit - amount > threshold:
            creditors.append((creditor, credit - amount))
            creditors.sort(key=rank)

    logger.debug("Simplified %d balances into %d transfers", len(balances), len(transfers))
    return transfers


def suggest_transfers(trip: Trip, exclude_removed: bool = False) -> list[SuggestedTransfer]:
    """
    Suggested transfers for a trip.

    Args:
        trip: Trip to settle
        exclude_removed: Drop suggestions that involve soft-removed participants

    Returns:
        List of SuggestedTransfer
    """
    transfers = simplify(trip_balances(trip))
    if not exclude_removed:
        return transfers
    removed = {p.id for p in trip.participants.values() if p.is_removed}
    return [
        t
        for t in transfers
        if t.from_participant not in removed and t.to_participant not in removed
    ]
