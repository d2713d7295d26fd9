"""Split calculation: allocate an expense total across participants.

Pure functions, integer minor units throughout. Every strategy returns a
mapping with one entry per listed participant whose values sum exactly to
the total. Percentage shares are rounded half up, other strategies floor;
whatever is left over is settled one unit at a time with the earliest
participants in list order, so identical inputs always produce identical
splits.
"""

from collections.abc import Mapping, Sequence
from decimal import Decimal, InvalidOperation
from fractions import Fraction
from typing import assert_never

from .exceptions import InvalidInput, InvariantViolation
from .models import SplitStrategy

ParamValue = int | Decimal | float | str


def compute_splits(
    total: int,
    strategy: SplitStrategy,
    participants: Sequence[str],
    params: Mapping[str, ParamValue] | None = None,
) -> dict[str, int]:
    """
    Compute how much each participant owes for an expense.

    Args:
        total: Expense total in minor units, must be > 0
        strategy: Split strategy to apply
        participants: Ordered participant ids; order decides who absorbs remainders
        params: Strategy input per participant id (selection flag, percentage,
            share count or exact amount). Ignored for EQUAL.

    Returns:
        Dict mapping every participant id to its owed amount

    Raises:
        InvalidInput: If the total, participants or params are rejected
        InvariantViolation: If the computed splits do not sum to total
    """
    try:
        strategy = SplitStrategy(strategy)
    except ValueError as e:
        raise InvalidInput(f"Unknown split strategy {strategy!r}", field="strategy") from e
    _validate_total(total, strategy)
    order = _validate_participants(participants, strategy)
    values = _coerce_params(params or {}, order, strategy)

    if strategy is SplitStrategy.EQUAL:
        splits = _equal(total, order, order)
    elif strategy is SplitStrategy.EQUAL_SELECTED:
        splits = _equal_selected(total, order, values)
    elif strategy is SplitStrategy.PERCENTAGE:
        splits = _percentage(total, order, values)
    elif strategy is SplitStrategy.SHARES:
        splits = _shares(total, order, values)
    elif strategy is SplitStrategy.EXACT:
        splits = _exact(total, order, values)
    else:
        assert_never(strategy)

    allocated = sum(splits.values())
    if allocated != total:
        raise InvariantViolation(
            f"{strategy.value} split allocated {allocated} of {total}: {splits}"
        )
    return splits


# === Strategies ===


def _equal(total: int, order: Sequence[str], selected: Sequence[str]) -> dict[str, int]:
    base, remainder = divmod(total, len(selected))
    splits = {pid: 0 for pid in order}
    for pid in selected:
        splits[pid] = base
    _distribute_remainder(splits, selected, remainder)
    return splits


def _equal_selected(
    total: int, order: Sequence[str], values: dict[str, Decimal]
) -> dict[str, int]:
    _reject_negative(values, SplitStrategy.EQUAL_SELECTED)
    selected = [pid for pid in order if values.get(pid, Decimal("0")) > 0]
    if not selected:
        raise InvalidInput(
            "equal_selected split needs at least one selected participant",
            strategy=SplitStrategy.EQUAL_SELECTED.value,
            field="params",
        )
    return _equal(total, order, selected)


def _percentage(total: int, order: Sequence[str], values: dict[str, Decimal]) -> dict[str, int]:
    _reject_negative(values, SplitStrategy.PERCENTAGE)
    if not validate_percentages(values):
        raise InvalidInput(
            f"Percentages sum to {sum(values.values(), Decimal('0'))}, expected exactly 100",
            strategy=SplitStrategy.PERCENTAGE.value,
            field="params",
        )
    weights = {pid: Fraction(values.get(pid, Decimal("0"))) for pid in order}
    return _proportional(total, order, weights, Fraction(100), rounded=True)


def _shares(total: int, order: Sequence[str], values: dict[str, Decimal]) -> dict[str, int]:
    _reject_negative(values, SplitStrategy.SHARES)
    for pid, value in values.items():
        if value != value.to_integral_value():
            raise InvalidInput(
                f"Share count for '{pid}' must be a whole number, got {value}",
                strategy=SplitStrategy.SHARES.value,
                field=pid,
            )
    total_shares = sum(values.values(), Decimal("0"))
    if total_shares <= 0:
        raise InvalidInput(
            "shares split needs a positive total share count",
            strategy=SplitStrategy.SHARES.value,
            field="params",
        )
    weights = {pid: Fraction(values.get(pid, Decimal("0"))) for pid in order}
    return _proportional(total, order, weights, Fraction(total_shares))


def _exact(total: int, order: Sequence[str], values: dict[str, Decimal]) -> dict[str, int]:
    _reject_negative(values, SplitStrategy.EXACT)
    for pid, value in values.items():
        if value != value.to_integral_value():
            raise InvalidInput(
                f"Exact amount for '{pid}' must be whole minor units, got {value}",
                strategy=SplitStrategy.EXACT.value,
                field=pid,
            )
    amounts = {pid: int(values.get(pid, Decimal("0"))) for pid in order}
    if not validate_exact_amounts(amounts, total):
        raise InvalidInput(
            f"Exact amounts sum to {sum(amounts.values())} but expense total is {total}",
            strategy=SplitStrategy.EXACT.value,
            field="params",
        )
    return amounts


def _proportional(
    total: int,
    order: Sequence[str],
    weights: dict[str, Fraction],
    denominator: Fraction,
    rounded: bool = False,
) -> dict[str, int]:
    """
    Allocate total by weight, then settle the leftover with the earliest holders.

    Each share is floored, or rounded half up when rounded is set. Rounding
    can overshoot, in which case the earliest holders give a unit back.
    """
    splits: dict[str, int] = {}
    for pid in order:
        exact = total * weights[pid] / denominator
        splits[pid] = int((2 * exact + 1) // 2) if rounded else int(exact // 1)
    holders = [pid for pid in order if weights[pid] > 0]
    _distribute_remainder(splits, holders, total - sum(splits.values()))
    return splits


def _distribute_remainder(
    splits: dict[str, int], recipients: Sequence[str], remainder: int
) -> None:
    step = 1 if remainder > 0 else -1
    # Only participants with something to give back can absorb a negative leftover
    eligible = [pid for pid in recipients if step > 0 or splits[pid] > 0]
    if abs(remainder) > len(eligible):
        raise InvariantViolation(
            f"Remainder {remainder} cannot be spread over {len(eligible)} participants"
        )
    for pid in eligible[: abs(remainder)]:
        splits[pid] += step


# === Input checks ===


def _validate_total(total: int, strategy: SplitStrategy) -> None:
    if isinstance(total, bool) or not isinstance(total, int):
        raise InvalidInput(
            f"Total must be an integer amount of minor units, got {total!r}",
            strategy=strategy.value,
            field="total",
        )
    if total <= 0:
        raise InvalidInput(
            f"Total must be positive, got {total}", strategy=strategy.value, field="total"
        )


def _validate_participants(participants: Sequence[str], strategy: SplitStrategy) -> list[str]:
    order = list(participants)
    if not order:
        raise InvalidInput(
            "Cannot split among zero participants",
            strategy=strategy.value,
            field="participants",
        )
    if len(set(order)) != len(order):
        raise InvalidInput(
            "Participant list contains duplicates",
            strategy=strategy.value,
            field="participants",
        )
    return order


def _coerce_params(
    params: Mapping[str, ParamValue], order: Sequence[str], strategy: SplitStrategy
) -> dict[str, Decimal]:
    known = set(order)
    values: dict[str, Decimal] = {}
    for pid, raw in params.items():
        if pid not in known:
            raise InvalidInput(
                f"Parameter given for '{pid}' who is not a participant of this split",
                strategy=strategy.value,
                field=pid,
            )
        try:
            value = Decimal(str(raw)) if isinstance(raw, float) else Decimal(raw)
        except (InvalidOperation, TypeError, ValueError) as e:
            raise InvalidInput(
                f"Parameter for '{pid}' is not a number: {raw!r}",
                strategy=strategy.value,
                field=pid,
            ) from e
        if not value.is_finite():
            raise InvalidInput(
                f"Parameter for '{pid}' must be finite, got {raw!r}",
                strategy=strategy.value,
                field=pid,
            )
        values[pid] = value
    return values


def _reject_negative(values: dict[str, Decimal], strategy: SplitStrategy) -> None:
    for pid, value in values.items():
        if value < 0:
            raise InvalidInput(
                f"Parameter for '{pid}' must not be negative, got {value}",
                strategy=strategy.value,
                field=pid,
            )


# === Validation helpers ===


def validate_percentages(percentages: Mapping[str, Decimal | int]) -> bool:
    """Check that percentages sum to exactly 100."""
    return sum((Decimal(v) for v in percentages.values()), Decimal("0")) == 100


def validate_exact_amounts(amounts: Mapping[str, int], total: int) -> bool:
    """Check that exact amounts sum to the expense total."""
    return sum(amounts.values()) == total


def validate_selected_participants(params: Mapping[str, Decimal | int] | None) -> bool:
    """Check that at least one participant is selected."""
    if not params:
        return False
    return any(v > 0 for v in params.values())
