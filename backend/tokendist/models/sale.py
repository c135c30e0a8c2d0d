from __future__ import annotations

from ..extensions import db
from ..time_utils import ts_to_utc_z, to_utc_z
from .types import TokenAmount, amount_str


ROUND_COUNT = 4
# Round 3 is public: purchases are never whitelist-gated
PUBLIC_ROUND = 3
# current_round value once every round has closed
SALE_ENDED_ROUND = ROUND_COUNT


class SaleRound(db.Model):
    """
    One of the four sequential sale rounds.

    cap/price/cliff are fixed at bootstrap. token_sold never exceeds cap.
    tge_timestamp stays NULL until the cap is reached; once set it is never
    changed and the round accepts no further purchases.
    """
    __tablename__ = "sale_rounds"
    __table_args__ = (
        db.CheckConstraint("round_index >= 0 AND round_index < 4", name="ck_sale_rounds_index"),
    )

    round_index = db.Column(db.Integer, primary_key=True, autoincrement=False)

    cap = db.Column(TokenAmount, nullable=False)
    price = db.Column(TokenAmount, nullable=False)
    cliff = db.Column(db.BigInteger, nullable=False, default=0)  # seconds after closure

    token_sold = db.Column(TokenAmount, nullable=False, default=0)
    tge_timestamp = db.Column(db.BigInteger, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_closed(self) -> bool:
        return self.tge_timestamp is not None

    @property
    def remaining(self) -> int:
        return self.cap - self.token_sold

    def to_dict(self) -> dict:
        return {
            "round_index": self.round_index,
            "cap": amount_str(self.cap),
            "price": amount_str(self.price),
            "cliff": self.cliff,
            "token_sold": amount_str(self.token_sold),
            "remaining": amount_str(self.remaining),
            "is_public": self.round_index == PUBLIC_ROUND,
            "is_closed": self.is_closed,
            "tge_timestamp": self.tge_timestamp,
            "tge_at": ts_to_utc_z(self.tge_timestamp),
            "created_at": to_utc_z(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<SaleRound index={self.round_index} sold={self.token_sold}/{self.cap}>"


class RoundAccount(db.Model):
    """
    Per-round, per-account sub-ledger.

    bought, unlocked and vesting_epoch only ever increase; unlocked <= bought.
    """
    __tablename__ = "sale_round_accounts"
    __table_args__ = (
        db.UniqueConstraint("round_index", "account", name="uq_sale_round_accounts_round_account"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    round_index = db.Column(db.Integer, db.ForeignKey("sale_rounds.round_index"), nullable=False, index=True)
    account = db.Column(db.String(64), nullable=False, index=True)

    whitelisted = db.Column(db.Boolean, nullable=False, default=False)
    bought = db.Column(TokenAmount, nullable=False, default=0)
    unlocked = db.Column(TokenAmount, nullable=False, default=0)
    vesting_epoch = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    sale_round = db.relationship("SaleRound", backref=db.backref("accounts", lazy=True))

    @property
    def locked(self) -> int:
        return self.bought - self.unlocked

    def to_dict(self) -> dict:
        return {
            "round_index": self.round_index,
            "account": self.account,
            "whitelisted": self.whitelisted,
            "bought": amount_str(self.bought),
            "unlocked": amount_str(self.unlocked),
            "locked": amount_str(self.locked),
            "vesting_epoch": self.vesting_epoch,
        }


class SaleState(db.Model):
    """
    Singleton (id=1) global sale state.

    current_round is 0..3 while rounds remain and 4 once the sale has ended.
    sale_active is cleared automatically on every round closure.
    """
    __tablename__ = "sale_state"

    id = db.Column(db.Integer, primary_key=True, autoincrement=False, default=1)
    current_round = db.Column(db.Integer, nullable=False, default=0)
    sale_active = db.Column(db.Boolean, nullable=False, default=False)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_ended(self) -> bool:
        return self.current_round >= SALE_ENDED_ROUND

    def to_dict(self) -> dict:
        return {
            "current_round": self.current_round,
            "sale_active": self.sale_active,
            "sale_ended": self.is_ended,
            "updated_at": to_utc_z(self.updated_at),
        }
