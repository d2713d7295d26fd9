"""Tests for splitledger CLI."""

from pathlib import Path

import pytest
from click.testing import CliRunner

from splitledger.audit import read_log
from splitledger.cli import cli
from splitledger.state import TripManager


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def temp_state(tmp_path: Path) -> str:
    """Create a temporary state directory path."""
    return str(tmp_path / "splitledger-state")


@pytest.fixture
def lisbon(runner: CliRunner, temp_state: str) -> str:
    """Create a trip with Dan (current user), Sara and Avi."""
    runner.invoke(cli, ["--state-dir", temp_state, "trip", "create", "Lisbon"])
    runner.invoke(cli, ["--state-dir", temp_state, "participant", "add", "Lisbon", "Dan", "--me"])
    runner.invoke(cli, ["--state-dir", temp_state, "participant", "add", "Lisbon", "Sara"])
    runner.invoke(cli, ["--state-dir", temp_state, "participant", "add", "Lisbon", "Avi"])
    return temp_state


class TestCLI:
    """Tests for CLI commands."""

    def test_version(self, runner: CliRunner) -> None:
        """Test --version flag."""
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_help(self, runner: CliRunner) -> None:
        """Test help command."""
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Split trip expenses" in result.output


class TestSplitCommand:
    """Tests for the stateless split command."""

    def test_equal_split(self, runner: CliRunner) -> None:
        result = runner.invoke(
            cli, ["split", "1000", "--participant", "A", "--participant", "B", "--participant", "C"]
        )
        assert result.exit_code == 0
        assert result.output.splitlines() == ["A: 3.34", "B: 3.33", "C: 3.33"]

    def test_percentage_split(self, runner: CliRunner) -> None:
        result = runner.invoke(
            cli,
            [
                "split",
                "1000",
                "--strategy",
                "percentage",
                "--participant",
                "A",
                "--participant",
                "B",
                "--param",
                "A=70",
                "--param",
                "B=30",
            ],
        )
        assert result.exit_code == 0
        assert result.output.splitlines() == ["A: 7.00", "B: 3.00"]

    def test_invalid_split_reports_error(self, runner: CliRunner) -> None:
        """Test that rejected input exits with an error message."""
        result = runner.invoke(
            cli,
            ["split", "1000", "--strategy", "exact", "--participant", "A", "--param", "A=999"],
        )
        assert result.exit_code == 1
        assert "❌" in result.output
        assert "Exact amounts sum to 999" in result.output

    def test_malformed_param(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["split", "1000", "--participant", "A", "--param", "A"])
        assert result.exit_code == 1
        assert "NAME=VALUE" in result.output


class TestTripCommands:
    """Tests for trip and participant commands."""

    def test_trips_empty(self, runner: CliRunner, temp_state: str) -> None:
        """Test trips command with no trips."""
        result = runner.invoke(cli, ["--state-dir", temp_state, "trips"])
        assert result.exit_code == 0
        assert "No trips found" in result.output

    def test_trips_lists_created(self, runner: CliRunner, lisbon: str) -> None:
        result = runner.invoke(cli, ["--state-dir", lisbon, "trips"])
        assert result.exit_code == 0
        assert "Lisbon - 3 participants, 0 expenses" in result.output

    def test_unknown_trip(self, runner: CliRunner, temp_state: str) -> None:
        result = runner.invoke(cli, ["--state-dir", temp_state, "balances", "Nowhere"])
        assert result.exit_code == 1
        assert "Trip 'Nowhere' not found" in result.output

    def test_participant_remove(self, runner: CliRunner, lisbon: str) -> None:
        """Test that a removed participant stays on record but is not counted."""
        result = runner.invoke(
            cli, ["--state-dir", lisbon, "participant", "remove", "Lisbon", "avi"]
        )
        assert result.exit_code == 0
        assert "Removed Avi" in result.output

        trip = TripManager(lisbon).find_trip("Lisbon")
        assert len(trip.participants) == 3
        assert len(trip.participant_ids(include_removed=False)) == 2

    def test_corrupt_state_reported(self, runner: CliRunner, temp_state: str) -> None:
        """Test that an unreadable state file fails cleanly instead of with a traceback."""
        Path(temp_state).mkdir(parents=True)
        (Path(temp_state) / "trips.json").write_text("not valid json {{{")

        result = runner.invoke(cli, ["--state-dir", temp_state, "trips"])

        assert result.exit_code == 1
        assert "❌ Could not read" in result.output


class TestLedgerFlow:
    """Tests for adding expenses, settling up and undoing."""

    def test_expense_and_balances(self, runner: CliRunner, lisbon: str) -> None:
        """Test that an equal expense shows up in balances and suggestions."""
        result = runner.invoke(
            cli,
            ["--state-dir", lisbon, "expense", "add", "Lisbon", "9000", "--paid-by", "Dan",
             "-d", "Dinner"],
        )
        assert result.exit_code == 0
        assert "Dinner 90.00 paid by You" in result.output

        result = runner.invoke(cli, ["--state-dir", lisbon, "balances", "Lisbon"])
        assert result.exit_code == 0
        assert "📊 Lisbon Balances:" in result.output
        assert "You gets back 60.00" in result.output
        assert "Sara owes 30.00" in result.output

        result = runner.invoke(cli, ["--state-dir", lisbon, "suggest", "Lisbon"])
        assert result.exit_code == 0
        assert "• Sara → You: 30.00" in result.output
        assert "• Avi → You: 30.00" in result.output

    def test_expense_is_audited(self, runner: CliRunner, lisbon: str) -> None:
        runner.invoke(
            cli, ["--state-dir", lisbon, "expense", "add", "Lisbon", "9000", "--paid-by", "Sara"]
        )

        entries = read_log(Path(lisbon) / "ledger_log.jsonl")
        assert [e["action"] for e in entries] == ["expense_added"]
        assert entries[0]["amount"] == 9000

    def test_rejected_expense_not_stored(self, runner: CliRunner, lisbon: str) -> None:
        """Test that an exact split that does not add up stores nothing."""
        result = runner.invoke(
            cli,
            ["--state-dir", lisbon, "expense", "add", "Lisbon", "1000", "--paid-by", "Dan",
             "--strategy", "exact", "--param", "Dan=500", "--param", "Sara=300",
             "--param", "Avi=199"],
        )
        assert result.exit_code == 1
        assert "Exact amounts sum to 999" in result.output
        assert TripManager(lisbon).find_trip("Lisbon").expenses == {}

    def test_settle_up(self, runner: CliRunner, lisbon: str) -> None:
        """Test that recording the suggested payments settles the trip."""
        runner.invoke(
            cli, ["--state-dir", lisbon, "expense", "add", "Lisbon", "9000", "--paid-by", "Dan"]
        )

        for debtor in ("Sara", "Avi"):
            result = runner.invoke(
                cli, ["--state-dir", lisbon, "settle", "Lisbon", debtor, "Dan", "3000"]
            )
            assert result.exit_code == 0
            assert f"✅ Recorded {debtor} → You 30.00" in result.output

        result = runner.invoke(cli, ["--state-dir", lisbon, "suggest", "Lisbon"])
        assert "All settled up" in result.output

    def test_settle_same_key_once(self, runner: CliRunner, lisbon: str) -> None:
        """Test that a repeated idempotency key records one settlement."""
        args = ["--state-dir", lisbon, "settle", "Lisbon", "Sara", "Dan", "3000", "--key", "k1"]
        first = runner.invoke(cli, args)
        second = runner.invoke(cli, args)

        assert first.exit_code == 0
        assert second.exit_code == 0
        assert first.output == second.output
        assert len(TripManager(lisbon).find_trip("Lisbon").settlements) == 1

    def test_settle_with_self_rejected(self, runner: CliRunner, lisbon: str) -> None:
        result = runner.invoke(
            cli, ["--state-dir", lisbon, "settle", "Lisbon", "Dan", "Dan", "100"]
        )
        assert result.exit_code == 1
        assert "must differ" in result.output

    def test_undo(self, runner: CliRunner, lisbon: str) -> None:
        """Test undo removes the last expense, then reports nothing left."""
        runner.invoke(
            cli,
            ["--state-dir", lisbon, "expense", "add", "Lisbon", "3000", "--paid-by", "Sara",
             "-d", "Taxi"],
        )

        result = runner.invoke(cli, ["--state-dir", lisbon, "undo", "Lisbon"])
        assert result.exit_code == 0
        assert "Removed expense: Taxi 30.00" in result.output

        result = runner.invoke(cli, ["--state-dir", lisbon, "undo", "Lisbon"])
        assert "Nothing to undo." in result.output

        entries = read_log(Path(lisbon) / "ledger_log.jsonl")
        assert [e["action"] for e in entries] == ["expense_added", "expense_removed"]

    def test_expense_edit(self, runner: CliRunner, lisbon: str) -> None:
        """Test that an edit recomputes the split and is audited."""
        runner.invoke(
            cli, ["--state-dir", lisbon, "expense", "add", "Lisbon", "9000", "--paid-by", "Dan"]
        )
        trip = TripManager(lisbon).find_trip("Lisbon")
        (expense_id,) = trip.expenses

        result = runner.invoke(
            cli,
            ["--state-dir", lisbon, "expense", "edit", "Lisbon", expense_id, "--amount", "6000",
             "--participant", "Dan", "--participant", "Sara"],
        )
        assert result.exit_code == 0
        assert "60.00 paid by You" in result.output

        edited = TripManager(lisbon).find_trip("Lisbon").expenses[expense_id]
        assert edited.computed_splits == {
            trip.find_participant("Dan").id: 3000,
            trip.find_participant("Sara").id: 3000,
        }
        entries = read_log(Path(lisbon) / "ledger_log.jsonl")
        assert [e["action"] for e in entries] == ["expense_added", "expense_edited"]
        assert entries[1]["amount"] == 6000

    def test_expense_edit_with_removed_participant(self, runner: CliRunner, lisbon: str) -> None:
        runner.invoke(
            cli, ["--state-dir", lisbon, "expense", "add", "Lisbon", "9000", "--paid-by", "Dan"]
        )
        runner.invoke(cli, ["--state-dir", lisbon, "participant", "remove", "Lisbon", "Avi"])
        (expense_id,) = TripManager(lisbon).find_trip("Lisbon").expenses

        result = runner.invoke(
            cli,
            ["--state-dir", lisbon, "expense", "edit", "Lisbon", expense_id,
             "--participant", "Dan", "--participant", "Avi"],
        )
        assert result.exit_code == 1
        assert "Avi' has been removed" in result.output

    def test_expense_remove(self, runner: CliRunner, lisbon: str) -> None:
        runner.invoke(
            cli, ["--state-dir", lisbon, "expense", "add", "Lisbon", "9000", "--paid-by", "Dan"]
        )
        (expense_id,) = TripManager(lisbon).find_trip("Lisbon").expenses

        result = runner.invoke(
            cli, ["--state-dir", lisbon, "expense", "remove", "Lisbon", expense_id]
        )
        assert result.exit_code == 0
        assert TripManager(lisbon).find_trip("Lisbon").live_expenses() == []

        entries = read_log(Path(lisbon) / "ledger_log.jsonl")
        assert [e["action"] for e in entries] == ["expense_added", "expense_removed"]

    def test_edit_unknown_expense(self, runner: CliRunner, lisbon: str) -> None:
        result = runner.invoke(
            cli, ["--state-dir", lisbon, "expense", "edit", "Lisbon", "nope", "--amount", "5"]
        )
        assert result.exit_code == 1
        assert "❌" in result.output
