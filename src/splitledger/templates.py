"""Plain-text output for the CLI. Amounts are shown as minor units with two decimals."""

from collections.abc import Mapping

from .models import Expense, ParticipantBalance, SuggestedTransfer, Trip


def format_amount(minor_units: int) -> str:
    """Format minor units as a signed decimal string, e.g. -1234 -> "-12.34"."""
    sign = "-" if minor_units < 0 else ""
    whole, cents = divmod(abs(minor_units), 100)
    return f"{sign}{whole}.{cents:02d}"


def display_name(trip: Trip, participant_id: str) -> str:
    """Participant name, "You" for the current user, or the raw id if unknown."""
    participant = trip.participants.get(participant_id)
    if participant is None:
        return participant_id
    if participant.is_current_user:
        return "You"
    return participant.name


def format_splits(trip: Trip, splits: Mapping[str, int]) -> str:
    """Format computed splits for display."""
    return ", ".join(
        f"{display_name(trip, pid)} {format_amount(amount)}" for pid, amount in splits.items()
    )


def format_transfers(trip: Trip, transfers: list[SuggestedTransfer]) -> str:
    """Format list of suggested transfers for display."""
    if not transfers:
        return ALL_SETTLED

    lines = []
    for t in transfers:
        lines.append(
            f"• {display_name(trip, t.from_participant)} → "
            f"{display_name(trip, t.to_participant)}: {format_amount(t.amount)}"
        )
    return "\n".join(lines)


def owes_or_gets(balance: ParticipantBalance) -> str:
    if balance.net > 0:
        return "gets back"
    if balance.net < 0:
        return "owes"
    return "settled"


def format_balances(trip: Trip, balances: list[ParticipantBalance]) -> str:
    """Format per-participant balances with paid / owed totals."""
    lines = []
    for b in balances:
        name = display_name(trip, b.participant_id)
        status = owes_or_gets(b)
        amount = "" if status == "settled" else f" {format_amount(abs(b.net))}"
        lines.append(
            f"• {name} {status}{amount} "
            f"(paid {format_amount(b.total_paid)}, share {format_amount(b.total_owed)})"
        )
    return "\n".join(lines)


def format_expense(trip: Trip, expense: Expense) -> str:
    """One-line summary of an expense."""
    label = expense.description or "Expense"
    return (
        f"{label} {format_amount(expense.amount)} paid by {display_name(trip, expense.paid_by)}, "
        f"{expense.strategy.value} → {format_splits(trip, expense.computed_splits)}"
    )


ALL_SETTLED = "✨ All settled up!"
NOTHING_TO_UNDO = "Nothing to undo."
UNDONE_EXPENSE = "↩️ Removed expense: {summary}"
UNDONE_SETTLEMENT = "↩️ Removed settlement: {from_name} → {to_name} {amount}"
SETTLEMENT_RECORDED = "✅ Recorded {from_name} → {to_name} {amount} (id {settlement_id})"
