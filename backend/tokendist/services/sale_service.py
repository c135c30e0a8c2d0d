# Overview: Service-layer operations for the multi-round token sale; encapsulates business logic and database work.

"""
Sale Engine

WHY: Four sequential, capped rounds sell tokens against a payment asset.
Each round closes itself when its cap is reached; buyers then pull their
tokens out over a round-specific vesting table.

DESIGN PRINCIPLES:
- One transaction per call: any failure rolls back every change
- Purchases are clipped to the remaining cap, never rejected for size
- Round closure is one-way and deactivates purchasing until re-armed
- Claim amounts follow the vesting table as a share of the original
  purchase and are not clipped to the remaining balance
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..errors import (
    AlreadySettledError,
    InsufficientPaymentError,
    InvalidStateError,
    NotEligibleError,
    OutOfRangeError,
    TransferFailedError,
    ValidationError,
)
from ..models import SaleRound, RoundAccount, SaleState
from ..models.sale import ROUND_COUNT, PUBLIC_ROUND
from ..models.types import amount_str
from ..validation import normalize_address, coerce_amount, coerce_address_list
from .. import time_utils
from . import payment_ledger, token_ledger, vesting
from .allocation_service import signal_end_token_sale
from .concurrency import lock_for_update, run_with_retry
from .ledger_service import append_event
from .permission_service import require_owner


# Rounds that can be whitelisted; the public round never is
WHITELIST_ROUNDS = range(0, PUBLIC_ROUND)
CLAIM_ROUNDS = range(0, ROUND_COUNT)


@dataclass(frozen=True)
class PurchaseResult:
    account: str
    round_index: int
    amount_requested: int
    amount: int
    payment: int
    round_closed: bool
    sale_ended: bool

    def to_dict(self) -> dict:
        return {
            "account": self.account,
            "round_index": self.round_index,
            "amount_requested": amount_str(self.amount_requested),
            "amount": amount_str(self.amount),
            "payment": amount_str(self.payment),
            "round_closed": self.round_closed,
            "sale_ended": self.sale_ended,
        }


@dataclass(frozen=True)
class ClaimResult:
    account: str
    round_index: int
    amount: int
    vesting_epoch: int
    unlocked: int
    bought: int

    def to_dict(self) -> dict:
        return {
            "account": self.account,
            "round_index": self.round_index,
            "amount": amount_str(self.amount),
            "vesting_epoch": self.vesting_epoch,
            "unlocked": amount_str(self.unlocked),
            "total": amount_str(self.bought),
        }


# =============================================================================
# BOOTSTRAP & LOOKUPS
# =============================================================================

def initialize_sale(round_configs: list[dict] | None = None) -> list[SaleRound]:
    """
    Create the four rounds and the global sale state.

    Idempotent: rounds are fixed at construction, so existing rows are
    returned unchanged.
    """
    if round_configs is None:
        round_configs = current_app.config["SALE_ROUNDS"]

    existing = db.session.query(SaleRound).order_by(SaleRound.round_index).all()
    if existing:
        return existing

    if len(round_configs) != ROUND_COUNT:
        raise ValidationError(f"Exactly {ROUND_COUNT} sale rounds are required")

    rounds = []
    for index, cfg in enumerate(round_configs):
        cap = coerce_amount(cfg.get("cap"), "cap")
        price = coerce_amount(cfg.get("price"), "price", allow_zero=True)
        cliff = int(cfg.get("cliff", 0))
        if cliff < 0:
            raise ValidationError("cliff must be >= 0")
        sale_round = SaleRound(round_index=index, cap=cap, price=price, cliff=cliff, token_sold=0)
        db.session.add(sale_round)
        rounds.append(sale_round)

    if db.session.query(SaleState).filter_by(id=1).first() is None:
        db.session.add(SaleState(id=1, current_round=0, sale_active=False))

    db.session.commit()
    return rounds


def _require_round_index(round_index: int, allowed: range) -> int:
    if isinstance(round_index, bool) or not isinstance(round_index, int):
        raise ValidationError("round_index must be an integer")
    if round_index not in allowed:
        raise OutOfRangeError(
            f"round_index must be in [{allowed.start}, {allowed.stop - 1}]",
            details={"round_index": round_index},
        )
    return round_index


def get_sale_state() -> SaleState:
    state = db.session.query(SaleState).filter_by(id=1).first()
    if not state:
        raise InvalidStateError("Sale has not been initialized")
    return state


def _get_state_locked() -> SaleState:
    state = lock_for_update(db.session.query(SaleState).filter_by(id=1)).first()
    if not state:
        raise InvalidStateError("Sale has not been initialized")
    return state


def list_rounds() -> list[SaleRound]:
    return db.session.query(SaleRound).order_by(SaleRound.round_index).all()


def get_round(round_index: int) -> SaleRound:
    _require_round_index(round_index, CLAIM_ROUNDS)
    sale_round = db.session.query(SaleRound).filter_by(round_index=round_index).first()
    if not sale_round:
        raise InvalidStateError("Sale has not been initialized")
    return sale_round


def _get_round_locked(round_index: int) -> SaleRound:
    sale_round = lock_for_update(db.session.query(SaleRound).filter_by(round_index=round_index)).first()
    if not sale_round:
        raise InvalidStateError("Sale has not been initialized")
    return sale_round


def get_round_account(round_index: int, account: str) -> RoundAccount | None:
    return db.session.query(RoundAccount).filter_by(round_index=round_index, account=account).first()


def _get_or_create_round_account(round_index: int, account: str) -> RoundAccount:
    position = lock_for_update(
        db.session.query(RoundAccount).filter_by(round_index=round_index, account=account)
    ).first()
    if position is None:
        position = RoundAccount(
            round_index=round_index,
            account=account,
            whitelisted=False,
            bought=0,
            unlocked=0,
            vesting_epoch=0,
        )
        db.session.add(position)
        db.session.flush()
    return position


def account_summary(round_index: int, account: str) -> dict:
    """Read-only view of an account's position in one round, with its next unlock time."""
    sale_round = get_round(round_index)
    account = normalize_address(account, "account")
    position = get_round_account(round_index, account)

    summary = {
        "round_index": round_index,
        "account": account,
        "whitelisted": round_index == PUBLIC_ROUND or bool(position and position.whitelisted),
        "bought": "0",
        "unlocked": "0",
        "locked": "0",
        "vesting_epoch": 0,
        "next_unlock_at": None,
        "next_claim_amount": None,
    }
    if position is None:
        return summary

    summary.update(position.to_dict())
    summary["whitelisted"] = round_index == PUBLIC_ROUND or position.whitelisted
    if sale_round.is_closed and position.unlocked < position.bought:
        amount = vesting.sale_claim_amount(position.bought, round_index, position.vesting_epoch)
        # claim() refuses a tranche that would overdraw, so there is no next claim
        if position.unlocked + amount <= position.bought:
            unlock_at = vesting.sale_unlock_time(sale_round.tge_timestamp, sale_round.cliff, position.vesting_epoch)
            summary["next_unlock_at"] = time_utils.ts_to_utc_z(unlock_at)
            summary["next_claim_amount"] = amount_str(amount)
    return summary


# =============================================================================
# OWNER OPERATIONS
# =============================================================================

def activate_sale(caller: str) -> SaleState:
    """Re-arm purchasing for the current round."""
    def _op():
        require_owner(caller, "activate_sale")
        state = _get_state_locked()
        if state.is_ended:
            raise InvalidStateError("Sale has ended; all rounds are exhausted")

        if not state.sale_active:
            state.sale_active = True
            append_event(
                event_type="sale.activated",
                event_category="sale",
                entity_type="sale_state",
                entity_id=state.id,
                actor=caller,
                round_index=state.current_round,
            )
        db.session.commit()
        current_app.logger.info("Sale activated for round %s", state.current_round)
        return state

    return run_with_retry(_op)


def pause_sale(caller: str) -> SaleState:
    """Halt purchasing without closing the round."""
    def _op():
        require_owner(caller, "pause_sale")
        state = _get_state_locked()

        if state.sale_active:
            state.sale_active = False
            append_event(
                event_type="sale.paused",
                event_category="sale",
                entity_type="sale_state",
                entity_id=state.id,
                actor=caller,
                round_index=state.current_round,
            )
        db.session.commit()
        current_app.logger.info("Sale paused at round %s", state.current_round)
        return state

    return run_with_retry(_op)


def whitelist(caller: str, round_index: int, accounts: list[str]) -> list[RoundAccount]:
    """
    Mark accounts as allowed to buy in round_index.

    Only rounds 0-2 are gated; the public round cannot be whitelisted.
    """
    def _op():
        require_owner(caller, "whitelist")
        _require_round_index(round_index, WHITELIST_ROUNDS)
        addresses = coerce_address_list(accounts, "addresses")
        _get_round_locked(round_index)

        positions = []
        for address in dict.fromkeys(addresses):
            position = _get_or_create_round_account(round_index, address)
            if not position.whitelisted:
                position.whitelisted = True
                append_event(
                    event_type="sale.whitelisted",
                    event_category="sale",
                    entity_type="sale_round",
                    entity_id=round_index,
                    account=address,
                    actor=caller,
                    round_index=round_index,
                )
            positions.append(position)

        db.session.commit()
        return positions

    return run_with_retry(_op)


# =============================================================================
# PURCHASE
# =============================================================================

def purchase(account: str, amount_requested: int, value_offered: int) -> PurchaseResult:
    """
    Buy tokens in the current round.

    WHY: Core sale operation. The requested amount is clipped to what is
    left under the round cap; payment is taken for the clipped amount only.
    Reaching the cap closes the round, and closing the last round signals
    the end of the sale.

    Raises:
        InvalidStateError: sale inactive or ended
        NotEligibleError: account not whitelisted for a gated round
        InsufficientPaymentError: value_offered below the required payment
        TransferFailedError: payment ledger refused the transfer
    """
    account = normalize_address(account, "account")
    amount_requested = coerce_amount(amount_requested, "amount")
    value_offered = coerce_amount(value_offered, "value", allow_zero=True)

    def _op():
        now = time_utils.now_ts()
        state = _get_state_locked()
        if state.is_ended:
            raise InvalidStateError("Sale has ended; all rounds are exhausted")
        if not state.sale_active:
            raise InvalidStateError("Sale is not active", details={"round_index": state.current_round})

        round_index = state.current_round
        sale_round = _get_round_locked(round_index)
        if sale_round.is_closed:
            raise InvalidStateError("Round is already closed", details={"round_index": round_index})

        position = _get_or_create_round_account(round_index, account)
        if round_index != PUBLIC_ROUND and not position.whitelisted:
            raise NotEligibleError(
                "Account is not whitelisted for this round",
                details={"account": account, "round_index": round_index},
            )

        amount = min(amount_requested, sale_round.remaining)
        payment = amount * sale_round.price // (10 ** payment_ledger.decimals())
        if value_offered < payment:
            raise InsufficientPaymentError(
                "Offered value is below the required payment",
                details={"required": amount_str(payment), "offered": amount_str(value_offered)},
            )

        treasury = normalize_address(current_app.config["TREASURY_ADDRESS"], "TREASURY_ADDRESS")
        if not payment_ledger.transfer_from(account, treasury, payment):
            raise TransferFailedError(
                "Payment transfer failed",
                details={"payer": account, "amount": amount_str(payment)},
            )

        position.bought = position.bought + amount
        sale_round.token_sold = sale_round.token_sold + amount

        append_event(
            event_type="sale.purchase",
            event_category="sale",
            entity_type="sale_round",
            entity_id=round_index,
            account=account,
            actor=account,
            amount=amount,
            round_index=round_index,
            occurred_at=now,
            payload=f"requested={amount_requested},payment={payment}",
        )

        round_closed = False
        if sale_round.token_sold >= sale_round.cap:
            round_closed = True
            sale_round.tge_timestamp = now
            state.current_round = round_index + 1
            state.sale_active = False

            append_event(
                event_type="sale.round_closed",
                event_category="sale",
                entity_type="sale_round",
                entity_id=round_index,
                amount=sale_round.token_sold,
                round_index=round_index,
                occurred_at=now,
                note=f"Round {round_index} reached its cap",
            )

            if state.current_round > PUBLIC_ROUND:
                signal_end_token_sale(current_app.config["SALE_ENGINE_ADDRESS"], now)

        db.session.commit()

        if round_closed:
            current_app.logger.info("Sale round %s closed at %s", round_index, now)

        return PurchaseResult(
            account=account,
            round_index=round_index,
            amount_requested=amount_requested,
            amount=amount,
            payment=payment,
            round_closed=round_closed,
            sale_ended=state.is_ended,
        )

    return run_with_retry(_op)


# =============================================================================
# CLAIM & QUERIES
# =============================================================================

def claim(account: str, round_index: int) -> ClaimResult:
    """
    Pull the next vesting tranche for a closed round.

    The amount is vesting_bps(round, epoch) of the original purchase. It is
    not clipped to the remaining balance; a tranche that would push unlocked
    past bought is refused instead.
    """
    account = normalize_address(account, "account")
    _require_round_index(round_index, CLAIM_ROUNDS)

    def _op():
        now = time_utils.now_ts()
        sale_round = _get_round_locked(round_index)
        if not sale_round.is_closed:
            raise InvalidStateError("Round has not closed yet", details={"round_index": round_index})

        position = _get_or_create_round_account(round_index, account)
        if position.unlocked >= position.bought:
            raise AlreadySettledError(
                "Balance already fully unlocked",
                details={"account": account, "round_index": round_index},
            )

        if not vesting.is_sale_claim_open(now, sale_round.tge_timestamp, sale_round.cliff, position.vesting_epoch):
            unlock_at = vesting.sale_unlock_time(sale_round.tge_timestamp, sale_round.cliff, position.vesting_epoch)
            raise NotEligibleError(
                "Vesting period has not been reached",
                details={"unlock_at": time_utils.ts_to_utc_z(unlock_at), "vesting_epoch": position.vesting_epoch},
            )

        amount = vesting.sale_claim_amount(position.bought, round_index, position.vesting_epoch)
        if position.unlocked + amount > position.bought:
            raise AlreadySettledError(
                "Claim would exceed purchased balance",
                details={
                    "amount": amount_str(amount),
                    "remaining": amount_str(position.bought - position.unlocked),
                },
            )

        reserve = normalize_address(current_app.config["SALE_RESERVE_ADDRESS"], "SALE_RESERVE_ADDRESS")
        if not token_ledger.transfer(reserve, account, amount):
            raise TransferFailedError(
                "Token transfer failed",
                details={"from": reserve, "to": account, "amount": amount_str(amount)},
            )

        position.unlocked = position.unlocked + amount
        position.vesting_epoch = position.vesting_epoch + 1

        append_event(
            event_type="sale.claimed",
            event_category="sale",
            entity_type="sale_round",
            entity_id=round_index,
            account=account,
            actor=account,
            amount=amount,
            round_index=round_index,
            occurred_at=now,
            payload=f"vesting_epoch={position.vesting_epoch}",
        )

        db.session.commit()
        return ClaimResult(
            account=account,
            round_index=round_index,
            amount=amount,
            vesting_epoch=position.vesting_epoch,
            unlocked=position.unlocked,
            bought=position.bought,
        )

    return run_with_retry(_op)


def locked_balance(account: str, round_index: int) -> int:
    """
    bought - unlocked for a whitelisted account.

    Only the gated rounds (0-2) are queryable; the public round is not.
    """
    account = normalize_address(account, "account")
    _require_round_index(round_index, WHITELIST_ROUNDS)

    position = get_round_account(round_index, account)
    if position is None or not position.whitelisted:
        raise NotEligibleError(
            "Account is not whitelisted for this round",
            details={"account": account, "round_index": round_index},
        )
    return position.bought - position.unlocked
