from __future__ import annotations

from ..extensions import db
from ..time_utils import ts_to_utc_z, to_utc_z
from .types import TokenAmount, amount_str


# Fixed group identities, index order
GROUP_CODES = ("TEAM", "ECOSYSTEM", "ADVISOR", "LIQUIDITY", "MARKETING", "RESERVE")

BPS_DENOMINATOR = 10_000


class AllocationGroup(db.Model):
    """
    Post-launch vesting cohort.

    Percentages are basis points (10000 = 100%). current_epoch is the
    group-wide distribution counter and only moves in distribute().
    next_position is the length of the group's address list, holes included.
    """
    __tablename__ = "allocation_groups"
    __table_args__ = (
        db.CheckConstraint("group_index >= 0 AND group_index < 6", name="ck_allocation_groups_index"),
    )

    group_index = db.Column(db.Integer, primary_key=True, autoincrement=False)
    code = db.Column(db.String(16), nullable=False, unique=True, index=True)

    cliff = db.Column(db.BigInteger, nullable=False, default=0)
    unlock_delay = db.Column(db.BigInteger, nullable=False)
    initial_unlock_bps = db.Column(db.Integer, nullable=False)
    steady_unlock_bps = db.Column(db.Integer, nullable=False)

    current_epoch = db.Column(db.Integer, nullable=False, default=0)
    next_position = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def scheduled_bps(self) -> int:
        """Cumulative percentage released once current_epoch is distributed."""
        return self.initial_unlock_bps + self.current_epoch * self.steady_unlock_bps

    @property
    def is_exhausted(self) -> bool:
        return self.scheduled_bps > BPS_DENOMINATOR

    def to_dict(self) -> dict:
        return {
            "group_index": self.group_index,
            "code": self.code,
            "cliff": self.cliff,
            "unlock_delay": self.unlock_delay,
            "initial_unlock_bps": self.initial_unlock_bps,
            "steady_unlock_bps": self.steady_unlock_bps,
            "current_epoch": self.current_epoch,
            "slots": self.next_position,
            "is_exhausted": self.is_exhausted,
            "created_at": to_utc_z(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<AllocationGroup {self.code} epoch={self.current_epoch}>"


class AllocationParticipant(db.Model):
    """
    Per-group, per-account allocation.

    balance is fixed once non-zero. position is the slot in the group's
    address list; removal clears the sub-ledger and sets position to NULL,
    which leaves a hole at the old slot.
    """
    __tablename__ = "allocation_participants"
    __table_args__ = (
        db.UniqueConstraint("group_index", "account", name="uq_allocation_participants_group_account"),
        db.Index("ix_allocation_participants_group_position", "group_index", "position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    group_index = db.Column(db.Integer, db.ForeignKey("allocation_groups.group_index"), nullable=False, index=True)
    account = db.Column(db.String(64), nullable=False, index=True)

    balance = db.Column(TokenAmount, nullable=False, default=0)
    unlocked_balance = db.Column(TokenAmount, nullable=False, default=0)
    epoch = db.Column(db.Integer, nullable=False, default=0)
    position = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    group = db.relationship("AllocationGroup", backref=db.backref("participants", lazy=True))

    @property
    def is_live(self) -> bool:
        return self.position is not None and self.balance > 0

    @property
    def remaining(self) -> int:
        return self.balance - self.unlocked_balance

    def to_dict(self) -> dict:
        return {
            "group_index": self.group_index,
            "account": self.account,
            "balance": amount_str(self.balance),
            "unlocked_balance": amount_str(self.unlocked_balance),
            "remaining": amount_str(self.remaining),
            "epoch": self.epoch,
            "position": self.position,
        }


class AllocationState(db.Model):
    """
    Singleton (id=1) global allocation state.

    tge_timestamp and mainnet_launch_timestamp are NULL until their one-shot
    transition fires; neither is ever changed afterwards.
    """
    __tablename__ = "allocation_state"

    id = db.Column(db.Integer, primary_key=True, autoincrement=False, default=1)
    tge_timestamp = db.Column(db.BigInteger, nullable=True)
    mainnet_launch_timestamp = db.Column(db.BigInteger, nullable=True)
    token_sale_address = db.Column(db.String(64), nullable=True)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def tge_passed(self) -> bool:
        return self.tge_timestamp is not None

    @property
    def mainnet_launched(self) -> bool:
        return self.mainnet_launch_timestamp is not None

    def to_dict(self) -> dict:
        return {
            "tge_passed": self.tge_passed,
            "tge_timestamp": self.tge_timestamp,
            "tge_at": ts_to_utc_z(self.tge_timestamp),
            "mainnet_launched": self.mainnet_launched,
            "mainnet_launch_timestamp": self.mainnet_launch_timestamp,
            "mainnet_launch_at": ts_to_utc_z(self.mainnet_launch_timestamp),
            "token_sale_address": self.token_sale_address,
        }
