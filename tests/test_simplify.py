"""Tests for debt simplification."""

import random
from datetime import datetime

import pytest
from conftest import make_expense, make_trip

from splitledger.exceptions import InvalidInput
from splitledger.models import SuggestedTransfer
from splitledger.simplify import simplify, suggest_transfers


def _t(from_id: str, to_id: str, amount: int) -> SuggestedTransfer:
    return SuggestedTransfer(from_participant=from_id, to_participant=to_id, amount=amount)


def _apply(balances: dict[str, int], transfers: list[SuggestedTransfer]) -> dict[str, int]:
    result = dict(balances)
    for t in transfers:
        result[t.from_participant] += t.amount
        result[t.to_participant] -= t.amount
    return result


class TestSimplify:
    """Tests for greedy debt simplification."""

    def test_one_creditor_two_debtors(self) -> None:
        """Test A +600, B -300, C -300 → B→A 300, C→A 300."""
        transfers = simplify({"A": 600, "B": -300, "C": -300})

        assert len(transfers) == 2
        assert {(t.from_participant, t.to_participant, t.amount) for t in transfers} == {
            ("B", "A", 300),
            ("C", "A", 300),
        }

    def test_tie_break_by_order(self) -> None:
        """Test that equal debts are paid in balance order."""
        transfers = simplify({"A": 600, "B": -300, "C": -300})
        assert [t.from_participant for t in transfers] == ["B", "C"]

        transfers = simplify({"A": 600, "C": -300, "B": -300})
        assert [t.from_participant for t in transfers] == ["C", "B"]

    def test_simple_debt(self) -> None:
        """Test simple debt with one debtor/creditor."""
        transfers = simplify({"Dan": 5000, "Sara": -5000})
        assert transfers == [_t("Sara", "Dan", 5000)]

    def test_largest_pairs_first(self) -> None:
        """Test that the largest debtor pays the largest creditor first."""
        transfers = simplify({"A": 100, "B": 700, "C": -500, "D": -300})

        assert transfers[0] == _t("C", "B", 500)
        assert _apply({"A": 100, "B": 700, "C": -500, "D": -300}, transfers) == {
            "A": 0,
            "B": 0,
            "C": 0,
            "D": 0,
        }

    def test_chain_simplification(self) -> None:
        """Test A owes B 100 and B owes C 100 collapses to A→C 100."""
        transfers = simplify({"A": -100, "B": 0, "C": 100})
        assert transfers == [_t("A", "C", 100)]

    def test_all_settled_returns_empty(self) -> None:
        """Test that zero balances need no transfers."""
        assert simplify({"A": 0, "B": 0}) == []
        assert simplify({}) == []

    def test_threshold_treats_small_balances_as_settled(self) -> None:
        """Test that balances within the threshold are left alone."""
        transfers = simplify({"A": 501, "B": -500, "C": -1}, threshold=1)
        assert transfers == [_t("B", "A", 500)]

    def test_unbalanced_input_rejected(self) -> None:
        """Test that balances not summing to zero are rejected."""
        with pytest.raises(InvalidInput, match="sum to 1"):
            simplify({"A": 301, "B": -300})

    def test_negative_threshold_rejected(self) -> None:
        with pytest.raises(InvalidInput):
            simplify({"A": 0}, threshold=-1)

    def test_not_always_minimal(self) -> None:
        """Test a case where greedy needs four transfers although three would do."""
        # Optimal: X→A 6, Y→A 4, Z→B 7
        balances = {"A": 10, "B": 7, "X": -6, "Y": -4, "Z": -7}
        transfers = simplify(balances)
        assert len(transfers) == 4
        assert all(v == 0 for v in _apply(balances, transfers).values())

    @pytest.mark.parametrize("seed", range(30))
    def test_transfers_zero_every_balance(self, seed: int) -> None:
        """Test random balance maps are settled within N - 1 transfers."""
        rng = random.Random(seed)
        ids = [f"p{i}" for i in range(rng.randint(1, 40))]
        balances = {pid: rng.randint(-100_000, 100_000) for pid in ids}
        balances[ids[-1]] -= sum(balances.values())

        transfers = simplify(balances)

        non_zero = sum(1 for b in balances.values() if b != 0)
        assert len(transfers) <= max(0, non_zero - 1)
        assert all(t.amount > 0 for t in transfers)
        assert all(v == 0 for v in _apply(balances, transfers).values())
        assert sum(t.amount for t in transfers) == sum(b for b in balances.values() if b > 0)


class TestSuggestTransfers:
    """Tests for trip-level suggestions."""

    def test_from_trip(self) -> None:
        """Test suggestions computed straight from a trip."""
        trip = make_trip("A", "B", "C")
        make_expense(trip, 900, "A", {"A": 300, "B": 300, "C": 300})

        transfers = suggest_transfers(trip)

        assert [(t.from_participant, t.amount) for t in transfers] == [("B", 300), ("C", 300)]

    def test_exclude_removed(self) -> None:
        """Test that removed participants can be filtered out of suggestions."""
        trip = make_trip("A", "B", "C")
        make_expense(trip, 900, "A", {"A": 300, "B": 300, "C": 300})
        trip.participants["C"] = trip.participants["C"].model_copy(
            update={"removed_at": datetime.now()}
        )

        assert len(suggest_transfers(trip)) == 2
        transfers = suggest_transfers(trip, exclude_removed=True)
        assert [t.from_participant for t in transfers] == ["B"]
