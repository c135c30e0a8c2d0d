"""
Vesting arithmetic tests.

Pure functions; no app or database needed.
"""

import pytest

from tokendist.services import vesting
from tokendist.time_utils import DAY, MONTH


TGE = 1_700_000_000


class TestSaleVestingTable:

    @pytest.mark.parametrize(
        "round_index,epoch,expected",
        [
            (0, 0, 1000), (0, 1, 900), (0, 2, 900), (0, 7, 900),
            (1, 0, 1000), (1, 1, 900), (1, 5, 900),
            (2, 0, 1500), (2, 1, 1000), (2, 2, 750), (2, 12, 750),
            (3, 0, 5000), (3, 1, 1000), (3, 4, 1000),
        ],
    )
    def test_table_lookup(self, round_index, epoch, expected):
        assert vesting.sale_vesting_bps(round_index, epoch) == expected

    def test_lookup_is_pure(self):
        first = vesting.sale_vesting_bps(2, 1)
        vesting.sale_vesting_bps(2, 5)
        assert vesting.sale_vesting_bps(2, 1) == first

    def test_unknown_round_rejected(self):
        with pytest.raises(ValueError):
            vesting.sale_vesting_bps(4, 0)

    def test_negative_epoch_rejected(self):
        with pytest.raises(ValueError):
            vesting.sale_vesting_bps(0, -1)

    def test_claim_amount_uses_original_bought(self):
        # 10% of 100, then 9% of the same 100
        assert vesting.sale_claim_amount(100, 0, 0) == 10
        assert vesting.sale_claim_amount(100, 0, 1) == 9

    def test_claim_amount_floors(self):
        assert vesting.sale_claim_amount(15, 2, 2) == 1  # 15 * 7.5% = 1.125


class TestSaleUnlockWindow:

    def test_first_unlock_at_cliff(self):
        assert vesting.sale_unlock_time(TGE, 60 * DAY, 0) == TGE + 60 * DAY

    def test_later_epochs_add_months(self):
        assert vesting.sale_unlock_time(TGE, 60 * DAY, 3) == TGE + 60 * DAY + 3 * MONTH

    def test_window_boundaries(self):
        cliff = 60 * DAY
        assert not vesting.is_sale_claim_open(TGE + cliff - 1, TGE, cliff, 0)
        assert vesting.is_sale_claim_open(TGE + cliff, TGE, cliff, 0)
        assert not vesting.is_sale_claim_open(TGE + cliff + MONTH - 1, TGE, cliff, 1)
        assert vesting.is_sale_claim_open(TGE + cliff + MONTH, TGE, cliff, 1)

    def test_zero_cliff_opens_at_tge(self):
        assert vesting.is_sale_claim_open(TGE, TGE, 0, 0)


class TestAllocationVesting:

    def test_initial_then_steady(self):
        assert vesting.allocation_vesting_amount(1000, 0, 2000, 1000) == 200
        assert vesting.allocation_vesting_amount(1000, 1, 2000, 1000) == 100
        assert vesting.allocation_vesting_amount(1000, 8, 2000, 1000) == 100

    def test_clamp_to_remaining(self):
        assert vesting.clamp_to_remaining(100, 1000, 950) == 50
        assert vesting.clamp_to_remaining(100, 1000, 500) == 100
        assert vesting.clamp_to_remaining(100, 1000, 1000) == 0

    def test_available_period_is_strict(self):
        cliff, delay = 90 * DAY, 30 * DAY
        boundary = TGE + cliff + delay * 2
        assert not vesting.is_available_period(2, cliff, TGE, delay, boundary)
        assert vesting.is_available_period(2, cliff, TGE, delay, boundary + 1)

    def test_unlock_time_is_first_open_second(self):
        cliff, delay = 90 * DAY, 30 * DAY
        unlock_at = vesting.allocation_unlock_time(1, cliff, TGE, delay)
        assert not vesting.is_available_period(1, cliff, TGE, delay, unlock_at - 1)
        assert vesting.is_available_period(1, cliff, TGE, delay, unlock_at)
