# Overview: Flask CLI command groups for bootstrap, inspection, and operator actions.

# backend/tokendist/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
# - Operator commands act as OWNER_ADDRESS from config.
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables, the four sale rounds and the six allocation groups.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Sale:
# - python -m flask sale status
#   Show the current round, purchasing gate and per-round progress.
# - python -m flask sale activate | pause
#   Re-arm or halt purchasing for the current round.
# - python -m flask sale whitelist 0 0xabc 0xdef
#   Whitelist addresses for a gated round (0-2).
#
# Allocation:
# - python -m flask allocation status
#   Show TGE / mainnet anchors and every group.
# - python -m flask allocation add TEAM --address 0xabc --balance 1000 [--address ... --balance ...]
#   Register participants (before TGE only).
# - python -m flask allocation tge | mainnet
#   One-shot transitions.
# - python -m flask allocation distribute TEAM
#   Push the group's current epoch to every live member.
#
# Ledger:
# - python -m flask ledger fund-reserve 1000000
#   Mint tokens into SALE_RESERVE_ADDRESS so sale claims can be paid.
# - python -m flask ledger credit-payment 0xabc 5000
#   Deposit payment asset into an account (dev/test funding).
# - python -m flask ledger events --category sale --limit 20
#   List recent distribution events.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .errors import DistributionError
from .models.types import amount_str
from .services import sale_service, allocation_service, ledger_service, token_ledger, payment_ledger
from .services.ledger_service import append_event
from .validation import normalize_address, coerce_amount
from . import time_utils


def _operator() -> str:
    return current_app.config["OWNER_ADDRESS"]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the distribution system: schema, sale rounds, allocation groups.

    Round and group parameters come from SALE_ROUNDS / ALLOCATION_GROUPS in
    config. Safe to re-run; existing rows are left unchanged.
    """
    click.echo("START Initializing token distribution...")

    db.create_all()

    try:
        rounds = sale_service.initialize_sale()
        groups = allocation_service.initialize_allocation()
    except DistributionError as e:
        click.echo(f"FAIL Error: {str(e)}")
        return

    click.echo(f"PASS Sale rounds: {len(rounds)}")
    click.echo(f"PASS Allocation groups: {', '.join(grp.code for grp in groups)}")

    state = allocation_service.get_allocation_state()
    click.echo(f"PASS Sale identity: {state.token_sale_address or '-'}")
    click.echo("DONE Token distribution initialized.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


# =============================================================================
# SALE
# =============================================================================

@click.group('sale')
def sale_group():
    """Token sale inspection and owner commands."""


@sale_group.command('status')
@with_appcontext
def sale_status_cli():
    """Show the current round and per-round progress."""
    try:
        state = sale_service.get_sale_state()
    except DistributionError as e:
        click.echo(f"FAIL Error: {str(e)}")
        return

    active_str = "Yes" if state.sale_active else "No"
    if state.is_ended:
        click.echo("Sale: ENDED")
    else:
        click.echo(f"Sale: round {state.current_round}, active: {active_str}")

    click.echo("\n" + "="*100)
    click.echo(f"{'Round':<7} {'Cap':<30} {'Sold':<30} {'Price':<12} {'Closed'}")
    click.echo("="*100)

    for sale_round in sale_service.list_rounds():
        closed = time_utils.ts_to_utc_z(sale_round.tge_timestamp) if sale_round.is_closed else "No"
        click.echo(
            f"{sale_round.round_index:<7} {amount_str(sale_round.cap):<30} "
            f"{amount_str(sale_round.token_sold):<30} {amount_str(sale_round.price):<12} {closed}"
        )

    click.echo("="*100 + "\n")


@sale_group.command('activate')
@with_appcontext
def sale_activate_cli():
    """Re-arm purchasing for the current round."""
    try:
        state = sale_service.activate_sale(_operator())
        click.echo(f"PASS Sale active for round {state.current_round}")
    except DistributionError as e:
        click.echo(f"FAIL Error: {str(e)}")


@sale_group.command('pause')
@with_appcontext
def sale_pause_cli():
    """Halt purchasing without closing the round."""
    try:
        state = sale_service.pause_sale(_operator())
        click.echo(f"PASS Sale paused at round {state.current_round}")
    except DistributionError as e:
        click.echo(f"FAIL Error: {str(e)}")


@sale_group.command('whitelist')
@click.argument('round_index', type=int)
@click.argument('addresses', nargs=-1, required=True)
@with_appcontext
def sale_whitelist_cli(round_index, addresses):
    """Whitelist ADDRESSES for ROUND_INDEX (0-2)."""
    try:
        positions = sale_service.whitelist(_operator(), round_index, list(addresses))
        click.echo(f"PASS Whitelisted {len(positions)} address(es) for round {round_index}")
    except DistributionError as e:
        click.echo(f"FAIL Error: {str(e)}")


# =============================================================================
# ALLOCATION
# =============================================================================

@click.group('allocation')
def allocation_group():
    """Allocation group inspection and owner commands."""


@allocation_group.command('status')
@with_appcontext
def allocation_status_cli():
    """Show TGE / mainnet anchors and every group."""
    try:
        state = allocation_service.get_allocation_state()
    except DistributionError as e:
        click.echo(f"FAIL Error: {str(e)}")
        return

    click.echo(f"TGE: {time_utils.ts_to_utc_z(state.tge_timestamp) or 'not passed'}")
    click.echo(f"Mainnet: {time_utils.ts_to_utc_z(state.mainnet_launch_timestamp) or 'not launched'}")
    click.echo(f"Sale identity: {state.token_sale_address or '-'}")

    click.echo("\n" + "="*90)
    click.echo(f"{'Group':<12} {'Cliff(d)':<10} {'Delay(d)':<10} {'Init%':<8} {'Steady%':<9} {'Epoch':<7} {'Slots':<7} {'Done'}")
    click.echo("="*90)

    for grp in allocation_service.list_groups():
        done = "Yes" if grp.is_exhausted else "No"
        click.echo(
            f"{grp.code:<12} {grp.cliff // time_utils.DAY:<10} {grp.unlock_delay // time_utils.DAY:<10} "
            f"{grp.initial_unlock_bps / 100:<8} {grp.steady_unlock_bps / 100:<9} "
            f"{grp.current_epoch:<7} {grp.next_position:<7} {done}"
        )

    click.echo("="*90 + "\n")


@allocation_group.command('add')
@click.argument('group')
@click.option('--address', 'addresses', multiple=True, required=True, help='Participant address (repeatable)')
@click.option('--balance', 'balances', multiple=True, required=True, help='Allocation in base units (repeatable)')
@with_appcontext
def allocation_add_cli(group, addresses, balances):
    """Register participants of GROUP (code or index). Pairs --address with --balance in order."""
    try:
        added = allocation_service.add_participants(_operator(), group, list(addresses), list(balances))
        click.echo(f"PASS Added {len(added)} participant(s) to {group.upper()}")
        skipped = len(addresses) - len(added)
        if skipped:
            click.echo(f"WARN  {skipped} address(es) already registered, left unchanged")
    except DistributionError as e:
        click.echo(f"FAIL Error: {str(e)}")


@allocation_group.command('tge')
@with_appcontext
def allocation_tge_cli():
    """Mark the TGE as passed (one-shot)."""
    try:
        state = allocation_service.set_tge_passed(_operator())
        click.echo(f"PASS TGE passed at {time_utils.ts_to_utc_z(state.tge_timestamp)}")
    except DistributionError as e:
        click.echo(f"FAIL Error: {str(e)}")


@allocation_group.command('mainnet')
@with_appcontext
def allocation_mainnet_cli():
    """Mark mainnet as launched (one-shot, after TGE)."""
    try:
        state = allocation_service.set_mainnet_launched(_operator())
        click.echo(f"PASS Mainnet launched at {time_utils.ts_to_utc_z(state.mainnet_launch_timestamp)}")
    except DistributionError as e:
        click.echo(f"FAIL Error: {str(e)}")


@allocation_group.command('distribute')
@click.argument('group')
@with_appcontext
def allocation_distribute_cli(group):
    """Push GROUP's current epoch to every live member."""
    try:
        result = allocation_service.distribute(group)
        click.echo(
            f"PASS {result.group_code} epoch {result.epoch}: "
            f"{amount_str(result.total_amount)} to {result.recipients} member(s), {result.skipped} skipped"
        )
    except DistributionError as e:
        click.echo(f"FAIL Error: {str(e)}")


# =============================================================================
# LEDGER
# =============================================================================

@click.group('ledger')
def ledger_group():
    """Token / payment ledger funding and event inspection."""


@ledger_group.command('fund-reserve')
@click.argument('amount')
@with_appcontext
def fund_reserve_cli(amount):
    """Mint AMOUNT tokens into the sale reserve."""
    try:
        amount = coerce_amount(amount, "amount")
        reserve = normalize_address(current_app.config["SALE_RESERVE_ADDRESS"], "SALE_RESERVE_ADDRESS")
        token_ledger.mint(reserve, amount)
        append_event(
            event_type="ledger.reserve_funded",
            event_category="ledger",
            entity_type="token_balance",
            entity_id=0,
            account=reserve,
            actor=normalize_address(_operator(), "OWNER_ADDRESS"),
            amount=amount,
        )
        db.session.commit()
    except DistributionError as e:
        db.session.rollback()
        click.echo(f"FAIL Error: {str(e)}")
        return

    click.echo(f"PASS Sale reserve {reserve} balance: {amount_str(token_ledger.balance_of(reserve))}")


@ledger_group.command('credit-payment')
@click.argument('address')
@click.argument('amount')
@with_appcontext
def credit_payment_cli(address, amount):
    """Deposit AMOUNT of the payment asset into ADDRESS."""
    try:
        account = normalize_address(address, "address")
        amount = coerce_amount(amount, "amount")
        payment_ledger.credit(account, amount)
        append_event(
            event_type="ledger.payment_credited",
            event_category="ledger",
            entity_type="payment_balance",
            entity_id=0,
            account=account,
            actor=normalize_address(_operator(), "OWNER_ADDRESS"),
            amount=amount,
        )
        db.session.commit()
    except DistributionError as e:
        db.session.rollback()
        click.echo(f"FAIL Error: {str(e)}")
        return

    click.echo(f"PASS {account} payment balance: {amount_str(payment_ledger.balance_of(account))}")


@ledger_group.command('events')
@click.option('--category', type=click.Choice(['sale', 'allocation', 'ledger']), help='Filter by category')
@click.option('--account', help='Filter by account')
@click.option('--limit', type=int, default=20, help='Max events to show')
@with_appcontext
def list_events_cli(category, account, limit):
    """List recent distribution events, newest first."""
    events, total = ledger_service.list_events(
        event_category=category,
        account=account.strip().lower() if account else None,
        limit=max(1, min(limit, 500)),
    )

    if not events:
        click.echo("No events found.")
        return

    click.echo("\n" + "="*110)
    click.echo(f"{'ID':<6} {'Occurred':<22} {'Type':<34} {'Account':<20} {'Amount'}")
    click.echo("="*110)

    for ev in events:
        click.echo(
            f"{ev.id:<6} {time_utils.ts_to_utc_z(ev.occurred_at):<22} {ev.event_type:<34} "
            f"{ev.account or '-':<20} {amount_str(ev.amount) or '-'}"
        )

    click.echo("="*110)
    click.echo(f"Showing {len(events)} of {total}\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(sale_group)
    app.cli.add_command(allocation_group)
    app.cli.add_command(ledger_group)
