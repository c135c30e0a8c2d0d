from __future__ import annotations

from ..extensions import db
from ..time_utils import ts_to_utc_z, to_utc_z
from .types import TokenAmount, amount_str


class TokenBalance(db.Model):
    """Default token ledger: one row per holder."""
    __tablename__ = "token_balances"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    account = db.Column(db.String(64), nullable=False, unique=True, index=True)
    balance = db.Column(TokenAmount, nullable=False, default=0)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "account": self.account,
            "balance": amount_str(self.balance),
        }


class TokenSupply(db.Model):
    """
    Singleton (id=1) token supply record.

    sale_ended is set by the end-of-sale signal; repeated signals are harmless.
    """
    __tablename__ = "token_supply"

    id = db.Column(db.Integer, primary_key=True, autoincrement=False, default=1)
    total_minted = db.Column(TokenAmount, nullable=False, default=0)
    sale_ended = db.Column(db.Boolean, nullable=False, default=False)
    sale_ended_at = db.Column(db.BigInteger, nullable=True)

    def to_dict(self) -> dict:
        return {
            "total_minted": amount_str(self.total_minted),
            "sale_ended": self.sale_ended,
            "sale_ended_at": ts_to_utc_z(self.sale_ended_at),
        }


class PaymentBalance(db.Model):
    """Default payment-asset ledger: one row per holder."""
    __tablename__ = "payment_balances"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    account = db.Column(db.String(64), nullable=False, unique=True, index=True)
    balance = db.Column(TokenAmount, nullable=False, default=0)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "account": self.account,
            "balance": amount_str(self.balance),
        }


class DistributionEvent(db.Model):
    """
    Append-only audit record of sale/allocation domain events.

    Written inside the same transaction as the state change it records, so a
    rolled-back operation leaves no event behind.
    """
    __tablename__ = "distribution_events"
    __table_args__ = (
        db.Index("ix_distribution_events_category_occurred", "event_category", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # What happened
    event_type = db.Column(db.String(64), nullable=False, index=True)  # e.g., sale.purchase, allocation.distributed
    event_category = db.Column(db.String(32), nullable=False, index=True)  # sale, allocation, ledger

    # What it refers to (generic pointer)
    entity_type = db.Column(db.String(64), nullable=False)  # e.g., sale_round, allocation_group
    entity_id = db.Column(db.Integer, nullable=False)

    account = db.Column(db.String(64), nullable=True, index=True)
    actor = db.Column(db.String(64), nullable=True)
    amount = db.Column(TokenAmount, nullable=True)
    round_index = db.Column(db.Integer, nullable=True, index=True)
    group_code = db.Column(db.String(16), nullable=True, index=True)

    # Business vs system time
    occurred_at = db.Column(db.BigInteger, nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    # Optional structured metadata (keep small; do not denormalize domain state)
    note = db.Column(db.String(255), nullable=True)
    payload = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "event_category": self.event_category,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "account": self.account,
            "actor": self.actor,
            "amount": amount_str(self.amount),
            "round_index": self.round_index,
            "group_code": self.group_code,
            "occurred_at": ts_to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
            "note": self.note,
            "payload": self.payload,
        }
