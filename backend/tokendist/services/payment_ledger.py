# Overview: Payment-asset ledger boundary (transfer_from/decimals) backed by the payment_balances table.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import PaymentBalance
from .concurrency import lock_for_update


def decimals() -> int:
    return int(current_app.config["PAYMENT_ASSET_DECIMALS"])


def _get_or_create_balance(account: str) -> PaymentBalance:
    row = lock_for_update(db.session.query(PaymentBalance).filter_by(account=account)).first()
    if row is None:
        row = PaymentBalance(account=account, balance=0)
        db.session.add(row)
        db.session.flush()
    return row


def balance_of(account: str) -> int:
    row = db.session.query(PaymentBalance).filter_by(account=account).first()
    return row.balance if row else 0


def credit(account: str, amount: int) -> PaymentBalance:
    """Deposit payment asset into account (bootstrap/dev funding). Does not commit."""
    if amount <= 0:
        raise ValueError("credit amount must be > 0")
    row = _get_or_create_balance(account)
    row.balance = row.balance + amount
    db.session.flush()
    return row


def transfer_from(payer: str, payee: str, amount: int) -> bool:
    """
    Pull amount from payer to payee.

    Returns False (and changes nothing) when payer cannot cover amount.
    """
    if amount < 0:
        return False
    if amount == 0:
        return True
    source = _get_or_create_balance(payer)
    if source.balance < amount:
        return False
    target = _get_or_create_balance(payee)
    source.balance = source.balance - amount
    target.balance = target.balance + amount
    db.session.flush()
    return True
