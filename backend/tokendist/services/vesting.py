# Overview: Pure vesting arithmetic shared by the sale and allocation engines.

"""
Vesting arithmetic

All percentages are basis points (10000 = 100%) and every division is
integer floor division. No function here touches the database or the clock;
callers pass `now` in.
"""

from __future__ import annotations

from ..models.allocation import BPS_DENOMINATOR
from ..models.sale import ROUND_COUNT
from ..time_utils import MONTH


# Sale vesting table: round -> (epoch 0, epoch 1, epoch >= 2), in bps of the
# account's original bought balance (not of the remaining balance).
SALE_VESTING_BPS = {
    0: (1000, 900, 900),
    1: (1000, 900, 900),
    2: (1500, 1000, 750),
    3: (5000, 1000, 1000),
}


def sale_vesting_bps(round_index: int, vesting_epoch: int) -> int:
    """Percentage of bought released at vesting_epoch for round_index."""
    if round_index not in SALE_VESTING_BPS:
        raise ValueError(f"round_index must be in [0, {ROUND_COUNT - 1}]")
    if vesting_epoch < 0:
        raise ValueError("vesting_epoch must be >= 0")
    table = SALE_VESTING_BPS[round_index]
    return table[min(vesting_epoch, len(table) - 1)]


def sale_claim_amount(bought: int, round_index: int, vesting_epoch: int) -> int:
    """Unclamped sale payout for one claim."""
    return bought * sale_vesting_bps(round_index, vesting_epoch) // BPS_DENOMINATOR


def sale_unlock_time(tge_timestamp: int, cliff: int, vesting_epoch: int) -> int:
    """Earliest time the claim for vesting_epoch may be made."""
    return tge_timestamp + cliff + vesting_epoch * MONTH


def is_sale_claim_open(now: int, tge_timestamp: int, cliff: int, vesting_epoch: int) -> bool:
    return now >= tge_timestamp + cliff and now >= sale_unlock_time(tge_timestamp, cliff, vesting_epoch)


def allocation_vesting_amount(balance: int, epoch: int, initial_unlock_bps: int, steady_unlock_bps: int) -> int:
    """Epoch 0 releases the initial percentage, every later epoch the steady one."""
    bps = initial_unlock_bps if epoch == 0 else steady_unlock_bps
    return balance * bps // BPS_DENOMINATOR


def clamp_to_remaining(amount: int, balance: int, unlocked_balance: int) -> int:
    """Cap amount so unlocked_balance never exceeds balance."""
    remaining = balance - unlocked_balance
    if remaining <= 0:
        return 0
    return min(amount, remaining)


def is_available_period(epoch_number: int, cliff: int, tge_timestamp: int, unlock_delay: int, now: int) -> bool:
    """Strictly after tge + cliff + unlock_delay * epoch_number."""
    return now > tge_timestamp + cliff + unlock_delay * epoch_number


def allocation_unlock_time(epoch_number: int, cliff: int, tge_timestamp: int, unlock_delay: int) -> int:
    """First second at which is_available_period is true."""
    return tge_timestamp + cliff + unlock_delay * epoch_number + 1
