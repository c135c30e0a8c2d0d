# Overview: Service-layer operations for post-launch allocation vesting; encapsulates business logic and database work.

"""
Allocation Engine

WHY: Six fixed cohorts (team, ecosystem, advisor, liquidity, marketing,
reserve) receive their allocation in epochs after the token-generation
event (TGE). Each group has its own cliff, unlock delay, initial and
steady unlock percentages.

DESIGN PRINCIPLES:
- Participants are frozen once the TGE fires
- First write wins: a participant's balance is never increased
- distribute() pushes to every live member and advances the group epoch;
  claim() pulls for one account and advances only that account's epoch
- Both paths share one amount calculator and clamp so that
  unlocked_balance never exceeds balance
- distribute() is linear in group size and has no pagination
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..errors import (
    AlreadySettledError,
    InvalidStateError,
    NotEligibleError,
    OutOfRangeError,
    UnauthorizedError,
    ValidationError,
)
from ..models import AllocationGroup, AllocationParticipant, AllocationState
from ..models.allocation import GROUP_CODES, BPS_DENOMINATOR
from ..models.types import amount_str
from ..validation import normalize_address, coerce_address_list, coerce_amount_list
from .. import time_utils
from . import token_ledger, vesting
from .concurrency import lock_for_update, run_with_retry
from .ledger_service import append_event
from .permission_service import require_owner


@dataclass(frozen=True)
class AllocationClaimResult:
    account: str
    group_code: str
    amount: int
    epoch: int
    unlocked_balance: int
    balance: int

    def to_dict(self) -> dict:
        return {
            "account": self.account,
            "group_code": self.group_code,
            "amount": amount_str(self.amount),
            "epoch": self.epoch,
            "unlocked_balance": amount_str(self.unlocked_balance),
            "balance": amount_str(self.balance),
        }


@dataclass(frozen=True)
class DistributionResult:
    group_code: str
    epoch: int
    recipients: int
    skipped: int
    total_amount: int

    def to_dict(self) -> dict:
        return {
            "group_code": self.group_code,
            "epoch": self.epoch,
            "recipients": self.recipients,
            "skipped": self.skipped,
            "total_amount": amount_str(self.total_amount),
        }


# =============================================================================
# BOOTSTRAP & LOOKUPS
# =============================================================================

def initialize_allocation(group_configs: list[dict] | None = None) -> list[AllocationGroup]:
    """
    Create the six groups and the global allocation state.

    Idempotent: groups are fixed at construction, so existing rows are
    returned unchanged. The sale identity defaults to SALE_ENGINE_ADDRESS.
    """
    if group_configs is None:
        group_configs = current_app.config["ALLOCATION_GROUPS"]

    existing = db.session.query(AllocationGroup).order_by(AllocationGroup.group_index).all()
    if existing:
        return existing

    if len(group_configs) != len(GROUP_CODES):
        raise ValidationError(f"Exactly {len(GROUP_CODES)} allocation groups are required")

    groups = []
    for index, cfg in enumerate(group_configs):
        code = cfg.get("code", GROUP_CODES[index]).upper()
        if code != GROUP_CODES[index]:
            raise ValidationError(f"Group {index} must be {GROUP_CODES[index]}, got {code}")

        initial_bps = int(cfg["initial_unlock_bps"])
        steady_bps = int(cfg["steady_unlock_bps"])
        if not 0 <= initial_bps <= BPS_DENOMINATOR:
            raise ValidationError(f"{code}: initial_unlock_bps must be in [0, {BPS_DENOMINATOR}]")
        if not 0 < steady_bps <= BPS_DENOMINATOR:
            raise ValidationError(f"{code}: steady_unlock_bps must be in (0, {BPS_DENOMINATOR}]")
        cliff = int(cfg.get("cliff", 0))
        unlock_delay = int(cfg["unlock_delay"])
        if cliff < 0 or unlock_delay < 0:
            raise ValidationError(f"{code}: cliff and unlock_delay must be >= 0")

        group = AllocationGroup(
            group_index=index,
            code=code,
            cliff=cliff,
            unlock_delay=unlock_delay,
            initial_unlock_bps=initial_bps,
            steady_unlock_bps=steady_bps,
            current_epoch=0,
            next_position=0,
        )
        db.session.add(group)
        groups.append(group)

    if db.session.query(AllocationState).filter_by(id=1).first() is None:
        sale_identity = current_app.config.get("SALE_ENGINE_ADDRESS")
        db.session.add(AllocationState(
            id=1,
            token_sale_address=normalize_address(sale_identity) if sale_identity else None,
        ))

    db.session.commit()
    return groups


def resolve_group_index(group: int | str) -> int:
    """Accept a group index (0-5, or its digit string) or a group code."""
    if isinstance(group, bool):
        raise ValidationError("group must be an index or a code")
    if isinstance(group, str):
        key = group.strip().upper()
        if key.isascii() and key.isdigit():
            group = int(key)
        elif key in GROUP_CODES:
            return GROUP_CODES.index(key)
        else:
            raise OutOfRangeError(f"Unknown allocation group: {group}", details={"group": group})
    if not isinstance(group, int):
        raise ValidationError("group must be an index or a code")
    if not 0 <= group < len(GROUP_CODES):
        raise OutOfRangeError(
            f"group index must be in [0, {len(GROUP_CODES) - 1}]",
            details={"group": group},
        )
    return group


def get_allocation_state() -> AllocationState:
    state = db.session.query(AllocationState).filter_by(id=1).first()
    if not state:
        raise InvalidStateError("Allocation has not been initialized")
    return state


def _get_state_locked() -> AllocationState:
    state = lock_for_update(db.session.query(AllocationState).filter_by(id=1)).first()
    if not state:
        raise InvalidStateError("Allocation has not been initialized")
    return state


def list_groups() -> list[AllocationGroup]:
    return db.session.query(AllocationGroup).order_by(AllocationGroup.group_index).all()


def get_group(group: int | str) -> AllocationGroup:
    index = resolve_group_index(group)
    row = db.session.query(AllocationGroup).filter_by(group_index=index).first()
    if not row:
        raise InvalidStateError("Allocation has not been initialized")
    return row


def _get_group_locked(group: int | str) -> AllocationGroup:
    index = resolve_group_index(group)
    row = lock_for_update(db.session.query(AllocationGroup).filter_by(group_index=index)).first()
    if not row:
        raise InvalidStateError("Allocation has not been initialized")
    return row


def get_participant(group: int | str, account: str) -> AllocationParticipant | None:
    index = resolve_group_index(group)
    account = normalize_address(account, "account")
    return db.session.query(AllocationParticipant).filter_by(group_index=index, account=account).first()


def _get_participant_locked(group_index: int, account: str) -> AllocationParticipant | None:
    return lock_for_update(
        db.session.query(AllocationParticipant).filter_by(group_index=group_index, account=account)
    ).first()


def _live_participants(group_index: int) -> list[AllocationParticipant]:
    """Members in slot order; removed slots (holes) are not returned."""
    return (
        db.session.query(AllocationParticipant)
        .filter(AllocationParticipant.group_index == group_index)
        .filter(AllocationParticipant.position.isnot(None))
        .order_by(AllocationParticipant.position)
        .all()
    )


def list_slots(group: int | str) -> list[str | None]:
    """The group's address list in insertion order, with None at removed slots."""
    row = get_group(group)
    slots: list[str | None] = [None] * row.next_position
    for participant in _live_participants(row.group_index):
        slots[participant.position] = participant.account
    return slots


def vesting_amount(participant: AllocationParticipant, group: AllocationGroup) -> int:
    """Amount due at the participant's current epoch, before clamping."""
    return vesting.allocation_vesting_amount(
        participant.balance,
        participant.epoch,
        group.initial_unlock_bps,
        group.steady_unlock_bps,
    )


def _due_amount(participant: AllocationParticipant, group: AllocationGroup) -> int:
    return vesting.clamp_to_remaining(
        vesting_amount(participant, group),
        participant.balance,
        participant.unlocked_balance,
    )


def participant_summary(group: int | str, account: str) -> dict:
    """Read-only view of one participant, with the amount due next and when."""
    row = get_group(group)
    account = normalize_address(account, "account")
    participant = get_participant(row.group_index, account)
    if participant is None or participant.balance == 0:
        raise NotEligibleError(
            "Account is not a participant of this group",
            details={"account": account, "group": row.code},
        )

    state = get_allocation_state()
    summary = participant.to_dict()
    summary["group_code"] = row.code
    summary["next_amount"] = amount_str(_due_amount(participant, row))
    summary["next_unlock_at"] = None
    if state.tge_passed and participant.unlocked_balance < participant.balance:
        unlock_at = vesting.allocation_unlock_time(
            participant.epoch, row.cliff, state.tge_timestamp, row.unlock_delay
        )
        summary["next_unlock_at"] = time_utils.ts_to_utc_z(unlock_at)
    return summary


# =============================================================================
# PARTICIPANT MANAGEMENT (before TGE)
# =============================================================================

def add_participants(caller: str, group: int | str, accounts: list[str], balances: list[int]) -> list[AllocationParticipant]:
    """
    Register allocations for a group.

    First write wins: an account that already holds a non-zero balance is
    left unchanged, whatever balance the later call carries.
    """
    def _op():
        require_owner(caller, "add_participants")
        state = _get_state_locked()
        if state.tge_passed:
            raise InvalidStateError("Participants are frozen after TGE")

        row = _get_group_locked(group)
        addresses = coerce_address_list(accounts, "addresses")
        amounts = coerce_amount_list(balances, "balances")
        if len(addresses) != len(amounts):
            raise ValidationError(
                "addresses and balances must have the same length",
                details={"addresses": len(addresses), "balances": len(amounts)},
            )

        added = []
        for address, balance in zip(addresses, amounts):
            participant = _get_participant_locked(row.group_index, address)
            if participant is not None and participant.balance > 0:
                continue

            if participant is None:
                participant = AllocationParticipant(group_index=row.group_index, account=address)
                db.session.add(participant)
            participant.balance = balance
            participant.unlocked_balance = 0
            participant.epoch = 0
            participant.position = row.next_position
            row.next_position = row.next_position + 1
            db.session.flush()

            append_event(
                event_type="allocation.participant_added",
                event_category="allocation",
                entity_type="allocation_group",
                entity_id=row.group_index,
                account=address,
                actor=caller,
                amount=balance,
                group_code=row.code,
                payload=f"position={participant.position}",
            )
            added.append(participant)

        db.session.commit()
        return added

    return run_with_retry(_op)


def remove_participant(caller: str, group: int | str, account: str) -> AllocationParticipant:
    """
    Clear a participant's allocation.

    The participant's slot is left empty rather than compacted, so the
    group's address list keeps a hole at that position.
    """
    def _op():
        require_owner(caller, "remove_participant")
        state = _get_state_locked()
        if state.tge_passed:
            raise InvalidStateError("Participants are frozen after TGE")

        row = _get_group_locked(group)
        address = normalize_address(account, "account")
        participant = _get_participant_locked(row.group_index, address)
        if participant is None or participant.balance == 0:
            raise NotEligibleError(
                "Account is not a participant of this group",
                details={"account": address, "group": row.code},
            )

        old_position = participant.position
        old_balance = participant.balance
        participant.balance = 0
        participant.unlocked_balance = 0
        participant.epoch = 0
        participant.position = None

        append_event(
            event_type="allocation.participant_removed",
            event_category="allocation",
            entity_type="allocation_group",
            entity_id=row.group_index,
            account=address,
            actor=caller,
            amount=old_balance,
            group_code=row.code,
            payload=f"position={old_position}",
        )

        db.session.commit()
        return participant

    return run_with_retry(_op)


# =============================================================================
# ONE-SHOT TRANSITIONS
# =============================================================================

def set_tge_passed(caller: str) -> AllocationState:
    """Anchor every group's cliff at now. Can only happen once."""
    def _op():
        require_owner(caller, "set_tge_passed")
        state = _get_state_locked()
        if state.tge_passed:
            raise InvalidStateError("TGE has already passed")

        now = time_utils.now_ts()
        state.tge_timestamp = now
        append_event(
            event_type="allocation.tge_passed",
            event_category="allocation",
            entity_type="allocation_state",
            entity_id=state.id,
            actor=caller,
            occurred_at=now,
        )
        db.session.commit()
        current_app.logger.info("TGE passed at %s", now)
        return state

    return run_with_retry(_op)


def set_mainnet_launched(caller: str) -> AllocationState:
    """Informational launch timestamp. Requires TGE; can only happen once."""
    def _op():
        require_owner(caller, "set_mainnet_launched")
        state = _get_state_locked()
        if not state.tge_passed:
            raise InvalidStateError("TGE must pass before mainnet launch")
        if state.mainnet_launched:
            raise InvalidStateError("Mainnet has already launched")

        now = time_utils.now_ts()
        state.mainnet_launch_timestamp = now
        append_event(
            event_type="allocation.mainnet_launched",
            event_category="allocation",
            entity_type="allocation_state",
            entity_id=state.id,
            actor=caller,
            occurred_at=now,
        )
        db.session.commit()
        current_app.logger.info("Mainnet launched at %s", now)
        return state

    return run_with_retry(_op)


def set_token_sale_address(caller: str, address: str) -> AllocationState:
    """Register the identity allowed to signal end_token_sale."""
    def _op():
        require_owner(caller, "set_token_sale_address")
        state = _get_state_locked()
        state.token_sale_address = normalize_address(address, "address")
        append_event(
            event_type="allocation.token_sale_address_set",
            event_category="allocation",
            entity_type="allocation_state",
            entity_id=state.id,
            account=state.token_sale_address,
            actor=caller,
        )
        db.session.commit()
        return state

    return run_with_retry(_op)


def signal_end_token_sale(caller: str, now: int) -> None:
    """
    End-of-sale signal inside an open transaction; the caller commits.

    Used directly by the sale engine when its last round closes, so a
    misregistered sale identity rolls back the closing purchase.
    """
    state = _get_state_locked()
    identity = normalize_address(caller, "caller") if caller else None
    if not identity or identity != state.token_sale_address:
        raise UnauthorizedError(
            "Only the registered token sale may end the sale",
            details={"caller": caller},
        )

    token_ledger.end_token_sale(now)
    append_event(
        event_type="sale.ended",
        event_category="sale",
        entity_type="allocation_state",
        entity_id=state.id,
        actor=identity,
        occurred_at=now,
        note="All sale rounds exhausted",
    )
    current_app.logger.info("Token sale ended at %s", now)


def end_token_sale(caller: str) -> None:
    """Informational end-of-sale signal; restricted to the registered sale identity."""
    def _op():
        signal_end_token_sale(caller, time_utils.now_ts())
        db.session.commit()

    return run_with_retry(_op)


# =============================================================================
# DISTRIBUTION & CLAIM
# =============================================================================

def distribute(group: int | str) -> DistributionResult:
    """
    Push the current group epoch's tranche to every live member.

    Anyone may call. Removed slots are skipped, as are members whose own
    epoch is already ahead of the group's (they claimed it themselves).
    Cost is linear in the number of members.
    """
    def _op():
        now = time_utils.now_ts()
        state = _get_state_locked()
        if not state.tge_passed:
            raise InvalidStateError("TGE has not passed")

        row = _get_group_locked(group)
        if now < state.tge_timestamp + row.cliff:
            raise NotEligibleError(
                "Group cliff has not been reached",
                details={"group": row.code, "unlock_at": time_utils.ts_to_utc_z(state.tge_timestamp + row.cliff)},
            )
        if row.is_exhausted:
            raise AlreadySettledError(
                "Group distribution is exhausted",
                details={"group": row.code, "current_epoch": row.current_epoch},
            )
        if not vesting.is_available_period(row.current_epoch, row.cliff, state.tge_timestamp, row.unlock_delay, now):
            unlock_at = vesting.allocation_unlock_time(row.current_epoch, row.cliff, state.tge_timestamp, row.unlock_delay)
            raise NotEligibleError(
                "Distribution period has not been reached",
                details={"group": row.code, "current_epoch": row.current_epoch, "unlock_at": time_utils.ts_to_utc_z(unlock_at)},
            )

        epoch = row.current_epoch
        recipients = 0
        skipped = 0
        total = 0
        for participant in _live_participants(row.group_index):
            if participant.balance == 0 or participant.epoch > epoch:
                skipped += 1
                continue

            amount = _due_amount(participant, row)
            if amount > 0:
                token_ledger.mint(participant.account, amount)
                participant.unlocked_balance = participant.unlocked_balance + amount
                total += amount
                recipients += 1
            participant.epoch = participant.epoch + 1

        row.current_epoch = epoch + 1

        append_event(
            event_type="allocation.distributed",
            event_category="allocation",
            entity_type="allocation_group",
            entity_id=row.group_index,
            amount=total,
            group_code=row.code,
            occurred_at=now,
            payload=f"epoch={epoch},recipients={recipients},skipped={skipped}",
        )

        db.session.commit()
        current_app.logger.info(
            "Distributed epoch %s of %s to %s members (%s skipped)",
            epoch, row.code, recipients, skipped,
        )
        return DistributionResult(
            group_code=row.code,
            epoch=epoch,
            recipients=recipients,
            skipped=skipped,
            total_amount=total,
        )

    return run_with_retry(_op)


def claim(account: str, group: int | str) -> AllocationClaimResult:
    """
    Pull the caller's next tranche.

    Uses the caller's own epoch for eligibility and leaves the group's
    current_epoch untouched.
    """
    account = normalize_address(account, "account")

    def _op():
        now = time_utils.now_ts()
        row = _get_group_locked(group)
        participant = _get_participant_locked(row.group_index, account)
        if participant is None or participant.unlocked_balance >= participant.balance:
            raise AlreadySettledError(
                "Allocation already fully unlocked",
                details={"account": account, "group": row.code},
            )

        state = _get_state_locked()
        if not state.tge_passed:
            raise InvalidStateError("TGE has not passed")

        if not vesting.is_available_period(participant.epoch, row.cliff, state.tge_timestamp, row.unlock_delay, now):
            unlock_at = vesting.allocation_unlock_time(participant.epoch, row.cliff, state.tge_timestamp, row.unlock_delay)
            raise NotEligibleError(
                "Vesting period has not been reached",
                details={"epoch": participant.epoch, "unlock_at": time_utils.ts_to_utc_z(unlock_at)},
            )

        amount = _due_amount(participant, row)
        if amount > 0:
            token_ledger.mint(account, amount)
        participant.unlocked_balance = participant.unlocked_balance + amount
        participant.epoch = participant.epoch + 1

        append_event(
            event_type="allocation.claimed",
            event_category="allocation",
            entity_type="allocation_group",
            entity_id=row.group_index,
            account=account,
            actor=account,
            amount=amount,
            group_code=row.code,
            occurred_at=now,
            payload=f"epoch={participant.epoch}",
        )

        db.session.commit()
        return AllocationClaimResult(
            account=account,
            group_code=row.code,
            amount=amount,
            epoch=participant.epoch,
            unlocked_balance=participant.unlocked_balance,
            balance=participant.balance,
        )

    return run_with_retry(_op)
