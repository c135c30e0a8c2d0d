# Overview: Token ledger boundary (mint/transfer/decimals) backed by the token_balances table.

"""
Token Ledger

The engines only depend on the functions below. The default implementation
keeps balances in the same database as the engine state, so a mint or
transfer made inside an engine transaction rolls back with it.

Nothing here commits; callers own the transaction.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import TokenBalance, TokenSupply
from .concurrency import lock_for_update


def decimals() -> int:
    return int(current_app.config["TOKEN_DECIMALS"])


def _get_or_create_balance(account: str) -> TokenBalance:
    row = lock_for_update(db.session.query(TokenBalance).filter_by(account=account)).first()
    if row is None:
        row = TokenBalance(account=account, balance=0)
        db.session.add(row)
        db.session.flush()
    return row


def get_supply() -> TokenSupply:
    supply = lock_for_update(db.session.query(TokenSupply).filter_by(id=1)).first()
    if supply is None:
        supply = TokenSupply(id=1, total_minted=0, sale_ended=False)
        db.session.add(supply)
        db.session.flush()
    return supply


def balance_of(account: str) -> int:
    row = db.session.query(TokenBalance).filter_by(account=account).first()
    return row.balance if row else 0


def mint(to: str, amount: int) -> None:
    """Create amount new tokens in to's balance."""
    if amount < 0:
        raise ValueError("mint amount must be >= 0")
    row = _get_or_create_balance(to)
    row.balance = row.balance + amount
    supply = get_supply()
    supply.total_minted = supply.total_minted + amount
    db.session.flush()


def transfer(sender: str, to: str, amount: int) -> bool:
    """
    Move amount from sender to to.

    Returns False (and changes nothing) when sender's balance is short.
    """
    if amount < 0:
        return False
    source = _get_or_create_balance(sender)
    if source.balance < amount:
        return False
    target = _get_or_create_balance(to)
    source.balance = source.balance - amount
    target.balance = target.balance + amount
    db.session.flush()
    return True


def end_token_sale(occurred_at: int) -> TokenSupply:
    """Record that every sale round is exhausted. Idempotent."""
    supply = get_supply()
    if not supply.sale_ended:
        supply.sale_ended = True
        supply.sale_ended_at = occurred_at
        db.session.flush()
    return supply
