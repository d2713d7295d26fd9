"""Click CLI entrypoint for splitledger. All amounts are integer minor units (cents)."""

import logging
import sys
from decimal import Decimal, InvalidOperation
from typing import NoReturn

import click

from . import __version__, ledger, templates
from .audit import log_event
from .balances import participant_balances
from .config import get_log_path
from .exceptions import LedgerError
from .models import Expense, SplitStrategy, Trip
from .settlements import SettlementLedger
from .simplify import suggest_transfers
from .splits import compute_splits
from .state import TripManager

STRATEGY_CHOICE = click.Choice([s.value for s in SplitStrategy])


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _fail(message: str) -> NoReturn:
    click.echo(f"❌ {message}")
    sys.exit(1)


def _manager(ctx: click.Context) -> TripManager:
    try:
        return TripManager(ctx.obj["state_dir"])
    except LedgerError as e:
        _fail(str(e))


def _load_trip(manager: TripManager, name_or_id: str) -> Trip:
    trip = manager.find_trip(name_or_id)
    if trip is None:
        _fail(f"Trip '{name_or_id}' not found.")
    return trip


def _participant_id(trip: Trip, name_or_id: str) -> str:
    participant = trip.find_participant(name_or_id)
    if participant is None:
        _fail(f"'{name_or_id}' is not a participant of {trip.name}.")
    return participant.id


def _parse_params(trip: Trip | None, raw: tuple[str, ...]) -> dict[str, Decimal]:
    params: dict[str, Decimal] = {}
    for item in raw:
        name, sep, value = item.partition("=")
        if not sep:
            _fail(f"Parameter '{item}' must look like NAME=VALUE.")
        try:
            number = Decimal(value)
        except InvalidOperation:
            _fail(f"Parameter '{item}' has a non-numeric value.")
        key = _participant_id(trip, name) if trip is not None else name
        params[key] = number
    return params


@click.group()
@click.version_option(version=__version__)
@click.option("--state-dir", default=None, help="State directory (default: ~/.splitledger)")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, state_dir: str | None, verbose: bool) -> None:
    """splitledger - Split trip expenses and settle up in as few payments as possible."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["state_dir"] = state_dir


@cli.command()
@click.argument("amount", type=int)
@click.option("--strategy", type=STRATEGY_CHOICE, default="equal", show_default=True)
@click.option("--participant", "participants", multiple=True, required=True)
@click.option("--param", "params", multiple=True, help="NAME=VALUE strategy parameter")
def split(
    amount: int, strategy: str, participants: tuple[str, ...], params: tuple[str, ...]
) -> None:
    """
    Compute a split without storing anything.

    AMOUNT is the total in minor units.
    """
    try:
        splits = compute_splits(
            amount, SplitStrategy(strategy), participants, _parse_params(None, params)
        )
    except LedgerError as e:
        _fail(str(e))
    for person, owed in splits.items():
        click.echo(f"{person}: {templates.format_amount(owed)}")


@cli.group()
def trip() -> None:
    """Manage trips."""
    pass


@trip.command("create")
@click.argument("name")
@click.pass_context
def trip_create(ctx: click.Context, name: str) -> None:
    """Create a trip called NAME."""
    manager = _manager(ctx)
    created = manager.create_trip(name)
    click.echo(f"Created trip {created.name} ({created.id})")


@cli.command()
@click.pass_context
def trips(ctx: click.Context) -> None:
    """List all trips."""
    trip_list = _manager(ctx).list_trips()

    if not trip_list:
        click.echo("No trips found.")
        return

    click.echo("Trips:")
    for t in trip_list:
        click.echo(
            f"  • {t.name} - {len(t.participant_ids(include_removed=False))} participants, "
            f"{len(t.live_expenses())} expenses"
        )


@cli.group()
def participant() -> None:
    """Manage trip participants."""
    pass


@participant.command("add")
@click.argument("trip_name")
@click.argument("name")
@click.option("--me", is_flag=True, help="Mark as the current user")
@click.option("--color", default=None, help="Color tag")
@click.pass_context
def participant_add(
    ctx: click.Context, trip_name: str, name: str, me: bool, color: str | None
) -> None:
    """Add NAME to a trip."""
    manager = _manager(ctx)
    current = _load_trip(manager, trip_name)
    try:
        updated, added = ledger.add_participant(current, name, is_current_user=me, color=color)
    except LedgerError as e:
        _fail(str(e))
    manager.save_trip(updated)
    click.echo(f"Added {added.name} ({added.id})")


@participant.command("remove")
@click.argument("trip_name")
@click.argument("name")
@click.pass_context
def participant_remove(ctx: click.Context, trip_name: str, name: str) -> None:
    """Soft-remove NAME from a trip."""
    manager = _manager(ctx)
    current = _load_trip(manager, trip_name)
    updated, removed = ledger.remove_participant(current, _participant_id(current, name))
    manager.save_trip(updated)
    click.echo(f"Removed {removed.name}")


@cli.group()
def expense() -> None:
    """Manage trip expenses."""
    pass


@expense.command("add")
@click.argument("trip_name")
@click.argument("amount", type=int)
@click.option("--paid-by", required=True, help="Who paid")
@click.option("--strategy", type=STRATEGY_CHOICE, default="equal", show_default=True)
@click.option(
    "--participant", "participants", multiple=True, help="Split among (default: everyone)"
)
@click.option("--param", "params", multiple=True, help="NAME=VALUE strategy parameter")
@click.option("--description", "-d", default="", help="What it was for")
@click.pass_context
def expense_add(
    ctx: click.Context,
    trip_name: str,
    amount: int,
    paid_by: str,
    strategy: str,
    participants: tuple[str, ...],
    params: tuple[str, ...],
    description: str,
) -> None:
    """
    Add an expense of AMOUNT minor units to a trip.

    For equal_selected, percentage, shares and exact splits, pass one
    --param NAME=VALUE per participant.
    """
    manager = _manager(ctx)
    current = _load_trip(manager, trip_name)
    order = [_participant_id(current, p) for p in participants] or None
    try:
        updated, added = ledger.add_expense(
            current,
            amount,
            _participant_id(current, paid_by),
            strategy=SplitStrategy(strategy),
            params=_parse_params(current, params),
            participants=order,
            description=description,
        )
    except LedgerError as e:
        _fail(str(e))
    manager.save_trip(updated)
    log_event(
        updated.id,
        "expense_added",
        added.id,
        log_path=get_log_path(manager.state_dir),
        amount=added.amount,
        paid_by=added.paid_by,
        strategy=added.strategy.value,
    )
    click.echo(f"✅ {templates.format_expense(updated, added)}")


@expense.command("edit")
@click.argument("trip_name")
@click.argument("expense_id")
@click.option("--amount", type=int, default=None, help="New total in minor units")
@click.option("--paid-by", default=None, help="Who paid")
@click.option("--strategy", type=STRATEGY_CHOICE, default=None)
@click.option(
    "--participant", "participants", multiple=True, help="Split among (default: unchanged)"
)
@click.option("--param", "params", multiple=True, help="NAME=VALUE strategy parameter")
@click.option("--description", "-d", default=None, help="What it was for")
@click.pass_context
def expense_edit(
    ctx: click.Context,
    trip_name: str,
    expense_id: str,
    amount: int | None,
    paid_by: str | None,
    strategy: str | None,
    participants: tuple[str, ...],
    params: tuple[str, ...],
    description: str | None,
) -> None:
    """Edit EXPENSE_ID and recompute its split. Omitted options keep their value."""
    manager = _manager(ctx)
    current = _load_trip(manager, trip_name)
    order = [_participant_id(current, p) for p in participants] or None
    try:
        updated, edited = ledger.edit_expense(
            current,
            expense_id,
            amount=amount,
            paid_by=_participant_id(current, paid_by) if paid_by else None,
            strategy=SplitStrategy(strategy) if strategy else None,
            params=_parse_params(current, params) if params else None,
            participants=order,
            description=description,
        )
    except LedgerError as e:
        _fail(str(e))
    manager.save_trip(updated)
    log_event(
        updated.id,
        "expense_edited",
        edited.id,
        log_path=get_log_path(manager.state_dir),
        amount=edited.amount,
        paid_by=edited.paid_by,
        strategy=edited.strategy.value,
    )
    click.echo(f"✏️ {templates.format_expense(updated, edited)}")


@expense.command("remove")
@click.argument("trip_name")
@click.argument("expense_id")
@click.pass_context
def expense_remove(ctx: click.Context, trip_name: str, expense_id: str) -> None:
    """Soft-delete EXPENSE_ID so it stops affecting balances."""
    manager = _manager(ctx)
    current = _load_trip(manager, trip_name)
    try:
        updated, removed = ledger.remove_expense(current, expense_id)
    except LedgerError as e:
        _fail(str(e))
    manager.save_trip(updated)
    log_event(
        updated.id, "expense_removed", removed.id, log_path=get_log_path(manager.state_dir)
    )
    click.echo(f"🗑️ Removed {templates.format_expense(updated, removed)}")


@cli.command()
@click.argument("trip_name")
@click.argument("from_name")
@click.argument("to_name")
@click.argument("amount", type=int)
@click.option("--key", default=None, help="Idempotency key (default: derived from the payment)")
@click.option("--note", default="", help="Optional note")
@click.pass_context
def settle(
    ctx: click.Context,
    trip_name: str,
    from_name: str,
    to_name: str,
    amount: int,
    key: str | None,
    note: str,
) -> None:
    """Record that FROM_NAME paid TO_NAME an AMOUNT of minor units."""
    manager = _manager(ctx)
    current = _load_trip(manager, trip_name)
    from_id = _participant_id(current, from_name)
    to_id = _participant_id(current, to_name)
    try:
        settlement_id = SettlementLedger(manager).record_settlement(
            current.id, from_id, to_id, amount, key, note=note
        )
    except LedgerError as e:
        _fail(str(e))
    click.echo(
        templates.SETTLEMENT_RECORDED.format(
            from_name=templates.display_name(current, from_id),
            to_name=templates.display_name(current, to_id),
            amount=templates.format_amount(amount),
            settlement_id=settlement_id,
        )
    )


@cli.command()
@click.argument("trip_name")
@click.pass_context
def balances(ctx: click.Context, trip_name: str) -> None:
    """Show balances for a trip."""
    current = _load_trip(_manager(ctx), trip_name)
    click.echo(f"📊 {current.name} Balances:\n")
    click.echo(templates.format_balances(current, participant_balances(current)))


@cli.command()
@click.argument("trip_name")
@click.option("--exclude-removed", is_flag=True, help="Skip removed participants")
@click.pass_context
def suggest(ctx: click.Context, trip_name: str, exclude_removed: bool) -> None:
    """Suggest payments that settle a trip."""
    current = _load_trip(_manager(ctx), trip_name)
    transfers = suggest_transfers(current, exclude_removed=exclude_removed)
    click.echo(templates.format_transfers(current, transfers))


@cli.command()
@click.argument("trip_name")
@click.pass_context
def undo(ctx: click.Context, trip_name: str) -> None:
    """Remove the most recent expense or settlement of a trip."""
    manager = _manager(ctx)
    current = _load_trip(manager, trip_name)
    updated, removed = ledger.undo_last(current)

    if removed is None:
        click.echo(templates.NOTHING_TO_UNDO)
        return

    manager.save_trip(updated)
    log_path = get_log_path(manager.state_dir)
    if isinstance(removed, Expense):
        log_event(updated.id, "expense_removed", removed.id, log_path=log_path)
        summary = templates.format_expense(updated, removed)
        click.echo(templates.UNDONE_EXPENSE.format(summary=summary))
    else:
        log_event(updated.id, "settlement_removed", removed.id, log_path=log_path)
        click.echo(
            templates.UNDONE_SETTLEMENT.format(
                from_name=templates.display_name(updated, removed.from_participant),
                to_name=templates.display_name(updated, removed.to_participant),
                amount=templates.format_amount(removed.amount),
            )
        )


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
