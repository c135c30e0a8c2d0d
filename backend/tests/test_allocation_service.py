"""
Allocation engine tests.

Covers participant management before TGE, the one-shot transitions,
distribute() over live and removed slots, per-account claims and the
end-of-sale signal.
"""

import pytest

from tokendist.errors import (
    AlreadySettledError,
    InvalidStateError,
    NotEligibleError,
    OutOfRangeError,
    UnauthorizedError,
    ValidationError,
)
from tokendist.services import allocation_service, token_ledger, ledger_service
from tokendist.time_utils import DAY


OWNER = "0xowner"
SALE_ENGINE = "0xsaleengine"
ALICE = "0xalice"
BOB = "0xbob"
CAROL = "0xcarol"

# TEAM in the test config: 90 day cliff, 30 day delay, 20% then 10%
TEAM_CLIFF = 90 * DAY
TEAM_DELAY = 30 * DAY


def team_window(tge: int, epoch: int) -> int:
    """First second the TEAM window for epoch is open."""
    return tge + TEAM_CLIFF + TEAM_DELAY * epoch + 1


# =============================================================================
# PARTICIPANT MANAGEMENT
# =============================================================================


class TestParticipants:

    def test_add_assigns_positions_in_order(self, seeded):
        added = allocation_service.add_participants(OWNER, "TEAM", [ALICE, BOB], [1000, 500])

        assert [p.position for p in added] == [0, 1]
        assert allocation_service.list_slots("TEAM") == [ALICE, BOB]
        assert allocation_service.get_group("TEAM").next_position == 2

    def test_first_write_wins(self, seeded):
        """A second add for the same address is a no-op."""
        allocation_service.add_participants(OWNER, "TEAM", [ALICE], [1000])
        added = allocation_service.add_participants(OWNER, "TEAM", [ALICE], [5000])

        assert added == []
        participant = allocation_service.get_participant("TEAM", ALICE)
        assert participant.balance == 1000
        assert allocation_service.list_slots("TEAM") == [ALICE]

    def test_groups_are_independent(self, seeded):
        allocation_service.add_participants(OWNER, "TEAM", [ALICE], [1000])
        allocation_service.add_participants(OWNER, "ADVISOR", [ALICE], [300])

        assert allocation_service.get_participant(0, ALICE).balance == 1000
        assert allocation_service.get_participant(2, ALICE).balance == 300

    def test_remove_leaves_hole(self, seeded):
        allocation_service.add_participants(OWNER, "TEAM", [ALICE, BOB, CAROL], [100, 200, 300])
        removed = allocation_service.remove_participant(OWNER, "TEAM", BOB)

        assert removed.balance == 0
        assert removed.position is None
        assert allocation_service.list_slots("TEAM") == [ALICE, None, CAROL]

    def test_readd_after_remove_takes_new_slot(self, seeded):
        allocation_service.add_participants(OWNER, "TEAM", [ALICE], [100])
        allocation_service.remove_participant(OWNER, "TEAM", ALICE)
        added = allocation_service.add_participants(OWNER, "TEAM", [ALICE], [300])

        assert added[0].balance == 300
        assert allocation_service.list_slots("TEAM") == [None, ALICE]

    def test_remove_unknown_participant(self, seeded):
        with pytest.raises(NotEligibleError):
            allocation_service.remove_participant(OWNER, "TEAM", ALICE)

    def test_add_requires_owner(self, seeded):
        with pytest.raises(UnauthorizedError):
            allocation_service.add_participants(ALICE, "TEAM", [ALICE], [1000])
        assert allocation_service.get_participant("TEAM", ALICE) is None

    def test_remove_requires_owner(self, seeded):
        allocation_service.add_participants(OWNER, "TEAM", [ALICE], [1000])
        with pytest.raises(UnauthorizedError):
            allocation_service.remove_participant(BOB, "TEAM", ALICE)

    def test_length_mismatch_rejected(self, seeded):
        with pytest.raises(ValidationError):
            allocation_service.add_participants(OWNER, "TEAM", [ALICE, BOB], [1000])

    def test_zero_balance_rejected(self, seeded):
        with pytest.raises(ValidationError):
            allocation_service.add_participants(OWNER, "TEAM", [ALICE], [0])

    def test_frozen_after_tge(self, seeded):
        allocation_service.add_participants(OWNER, "TEAM", [ALICE], [1000])
        allocation_service.set_tge_passed(OWNER)

        with pytest.raises(InvalidStateError):
            allocation_service.add_participants(OWNER, "TEAM", [BOB], [1000])
        with pytest.raises(InvalidStateError):
            allocation_service.remove_participant(OWNER, "TEAM", ALICE)

    @pytest.mark.parametrize(
        "group,expected",
        [("TEAM", 0), ("team", 0), ("3", 3), (5, 5), ("RESERVE", 5)],
    )
    def test_resolve_group(self, group, expected):
        assert allocation_service.resolve_group_index(group) == expected

    @pytest.mark.parametrize("group", [6, -1, "7", "FOUNDERS", "²", "٣"])
    def test_unknown_group_out_of_range(self, group):
        with pytest.raises(OutOfRangeError):
            allocation_service.resolve_group_index(group)


# =============================================================================
# ONE-SHOT TRANSITIONS
# =============================================================================


class TestTransitions:

    def test_tge_is_one_shot(self, seeded, clock):
        state = allocation_service.set_tge_passed(OWNER)
        assert state.tge_timestamp == clock.now

        clock.advance(DAY)
        with pytest.raises(InvalidStateError):
            allocation_service.set_tge_passed(OWNER)
        assert allocation_service.get_allocation_state().tge_timestamp == clock.now - DAY

    def test_mainnet_requires_tge(self, seeded):
        with pytest.raises(InvalidStateError):
            allocation_service.set_mainnet_launched(OWNER)

    def test_mainnet_is_one_shot(self, seeded):
        allocation_service.set_tge_passed(OWNER)
        state = allocation_service.set_mainnet_launched(OWNER)
        assert state.mainnet_launched

        with pytest.raises(InvalidStateError):
            allocation_service.set_mainnet_launched(OWNER)

    def test_transitions_require_owner(self, seeded):
        with pytest.raises(UnauthorizedError):
            allocation_service.set_tge_passed(ALICE)
        with pytest.raises(UnauthorizedError):
            allocation_service.set_token_sale_address(ALICE, ALICE)
        assert not allocation_service.get_allocation_state().tge_passed


# =============================================================================
# DISTRIBUTE
# =============================================================================


class TestDistribute:

    def test_requires_tge(self, seeded):
        allocation_service.add_participants(OWNER, "TEAM", [ALICE], [1000])
        with pytest.raises(InvalidStateError):
            allocation_service.distribute("TEAM")

    def test_respects_cliff_and_strict_window(self, seeded, clock):
        allocation_service.add_participants(OWNER, "TEAM", [ALICE], [1000])
        tge = allocation_service.set_tge_passed(OWNER).tge_timestamp

        clock.set(tge + TEAM_CLIFF - 1)
        with pytest.raises(NotEligibleError):
            allocation_service.distribute("TEAM")

        # Cliff reached but the epoch-0 window opens strictly after it
        clock.set(tge + TEAM_CLIFF)
        with pytest.raises(NotEligibleError):
            allocation_service.distribute("TEAM")

        clock.set(team_window(tge, 0))
        result = allocation_service.distribute("TEAM")
        assert result.epoch == 0
        assert result.total_amount == 200
        assert token_ledger.balance_of(ALICE) == 200

    def test_pushes_to_every_member_and_advances_epoch(self, seeded, clock):
        allocation_service.add_participants(OWNER, "TEAM", [ALICE, BOB], [1000, 500])
        tge = allocation_service.set_tge_passed(OWNER).tge_timestamp

        clock.set(team_window(tge, 0))
        allocation_service.distribute("TEAM")
        assert token_ledger.balance_of(ALICE) == 200
        assert token_ledger.balance_of(BOB) == 100
        assert allocation_service.get_group("TEAM").current_epoch == 1

        # Same window again: group epoch 1 is not open yet
        with pytest.raises(NotEligibleError):
            allocation_service.distribute("TEAM")

        clock.set(team_window(tge, 1))
        allocation_service.distribute("TEAM")
        assert token_ledger.balance_of(ALICE) == 300
        assert token_ledger.balance_of(BOB) == 150

    def test_skips_removed_slot(self, seeded, clock):
        """Distribute over a group with a hole does not fail or pay the hole."""
        allocation_service.add_participants(OWNER, "TEAM", [ALICE, BOB, CAROL], [1000, 1000, 1000])
        allocation_service.remove_participant(OWNER, "TEAM", BOB)
        tge = allocation_service.set_tge_passed(OWNER).tge_timestamp

        clock.set(team_window(tge, 0))
        result = allocation_service.distribute("TEAM")

        assert result.recipients == 2
        assert token_ledger.balance_of(ALICE) == 200
        assert token_ledger.balance_of(BOB) == 0
        assert token_ledger.balance_of(CAROL) == 200

    def test_skips_member_who_claimed_ahead(self, seeded, clock):
        allocation_service.add_participants(OWNER, "TEAM", [ALICE, BOB], [1000, 1000])
        tge = allocation_service.set_tge_passed(OWNER).tge_timestamp

        clock.set(team_window(tge, 0))
        allocation_service.claim(ALICE, "TEAM")
        result = allocation_service.distribute("TEAM")

        assert result.skipped == 1
        assert token_ledger.balance_of(ALICE) == 200
        assert token_ledger.balance_of(BOB) == 200

        clock.set(team_window(tge, 1))
        allocation_service.distribute("TEAM")
        assert token_ledger.balance_of(ALICE) == 300
        assert allocation_service.get_participant("TEAM", ALICE).epoch == 2

    def test_exhausts_after_full_schedule(self, seeded, clock):
        allocation_service.add_participants(OWNER, "TEAM", [ALICE], [1000])
        tge = allocation_service.set_tge_passed(OWNER).tge_timestamp
        clock.set(team_window(tge, 20))

        totals = [allocation_service.distribute("TEAM").total_amount for _ in range(9)]
        assert totals == [200] + [100] * 8
        assert allocation_service.get_group("TEAM").is_exhausted

        with pytest.raises(AlreadySettledError):
            allocation_service.distribute("TEAM")

        participant = allocation_service.get_participant("TEAM", ALICE)
        assert participant.unlocked_balance == participant.balance == 1000

    def test_zero_cliff_group(self, seeded, clock):
        allocation_service.add_participants(OWNER, "LIQUIDITY", [ALICE], [1000])
        tge = allocation_service.set_tge_passed(OWNER).tge_timestamp

        clock.set(tge + 1)
        result = allocation_service.distribute("LIQUIDITY")
        assert result.total_amount == 500

    def test_records_event(self, seeded, clock):
        allocation_service.add_participants(OWNER, "TEAM", [ALICE], [1000])
        tge = allocation_service.set_tge_passed(OWNER).tge_timestamp
        clock.set(team_window(tge, 0))
        allocation_service.distribute("TEAM")

        events, total = ledger_service.list_events(event_type="allocation.distributed", group_code="TEAM")
        assert total == 1
        assert events[0].amount == 200


# =============================================================================
# CLAIM
# =============================================================================


class TestClaim:

    def test_claim_reports_group_position(self, seeded, clock):
        allocation_service.add_participants(OWNER, "TEAM", [ALICE], [1000])
        tge = allocation_service.set_tge_passed(OWNER).tge_timestamp
        clock.set(team_window(tge, 0))

        result = allocation_service.claim(ALICE, "TEAM")
        assert result.to_dict() == {
            "account": ALICE,
            "group_code": "TEAM",
            "amount": "200",
            "epoch": 1,
            "unlocked_balance": "200",
            "balance": "1000",
        }

    def test_claim_schedule(self, seeded, clock):
        """20% / 10% on 1000: 200, then 100 per window, 1000 after nine claims."""
        allocation_service.add_participants(OWNER, "TEAM", [ALICE], [1000])
        tge = allocation_service.set_tge_passed(OWNER).tge_timestamp

        clock.set(team_window(tge, 0))
        assert allocation_service.claim(ALICE, "TEAM").amount == 200

        with pytest.raises(NotEligibleError):
            allocation_service.claim(ALICE, "TEAM")

        clock.set(team_window(tge, 1))
        assert allocation_service.claim(ALICE, "TEAM").amount == 100

        clock.set(team_window(tge, 30))
        for _ in range(7):
            allocation_service.claim(ALICE, "TEAM")

        participant = allocation_service.get_participant("TEAM", ALICE)
        assert participant.unlocked_balance == 1000
        assert token_ledger.balance_of(ALICE) == 1000

        with pytest.raises(AlreadySettledError):
            allocation_service.claim(ALICE, "TEAM")

    def test_last_claim_is_clamped(self, seeded, clock):
        allocation_service.add_participants(OWNER, "TEAM", [ALICE], [1005])
        tge = allocation_service.set_tge_passed(OWNER).tge_timestamp
        clock.set(team_window(tge, 30))

        amounts = [allocation_service.claim(ALICE, "TEAM").amount for _ in range(10)]
        assert amounts == [201] + [100] * 8 + [4]

        participant = allocation_service.get_participant("TEAM", ALICE)
        assert participant.unlocked_balance == participant.balance

    def test_claim_leaves_group_epoch(self, seeded, clock):
        allocation_service.add_participants(OWNER, "TEAM", [ALICE], [1000])
        tge = allocation_service.set_tge_passed(OWNER).tge_timestamp
        clock.set(team_window(tge, 0))

        allocation_service.claim(ALICE, "TEAM")
        assert allocation_service.get_group("TEAM").current_epoch == 0

    def test_claim_after_distribute_waits_for_next_window(self, seeded, clock):
        allocation_service.add_participants(OWNER, "TEAM", [ALICE], [1000])
        tge = allocation_service.set_tge_passed(OWNER).tge_timestamp
        clock.set(team_window(tge, 0))
        allocation_service.distribute("TEAM")

        with pytest.raises(NotEligibleError):
            allocation_service.claim(ALICE, "TEAM")

    def test_claim_before_tge(self, seeded):
        allocation_service.add_participants(OWNER, "TEAM", [ALICE], [1000])
        with pytest.raises(InvalidStateError):
            allocation_service.claim(ALICE, "TEAM")

    def test_non_participant_is_settled(self, seeded):
        allocation_service.set_tge_passed(OWNER)
        with pytest.raises(AlreadySettledError):
            allocation_service.claim(BOB, "TEAM")

    def test_participant_summary(self, seeded, clock):
        allocation_service.add_participants(OWNER, "TEAM", [ALICE], [1000])
        summary = allocation_service.participant_summary("TEAM", ALICE)
        assert summary["next_amount"] == "200"
        assert summary["next_unlock_at"] is None

        allocation_service.set_tge_passed(OWNER)
        summary = allocation_service.participant_summary("TEAM", ALICE)
        assert summary["next_unlock_at"] is not None


# =============================================================================
# END OF SALE SIGNAL
# =============================================================================


class TestEndTokenSale:

    def test_only_sale_identity(self, seeded):
        with pytest.raises(UnauthorizedError):
            allocation_service.end_token_sale(OWNER)
        assert not token_ledger.get_supply().sale_ended

    def test_sale_identity_flags_supply(self, seeded):
        allocation_service.end_token_sale(SALE_ENGINE)
        allocation_service.end_token_sale(SALE_ENGINE)

        assert token_ledger.get_supply().sale_ended
        events, total = ledger_service.list_events(event_type="sale.ended")
        assert total == 2

    def test_reregistered_identity(self, seeded):
        allocation_service.set_token_sale_address(OWNER, BOB)

        with pytest.raises(UnauthorizedError):
            allocation_service.end_token_sale(SALE_ENGINE)
        allocation_service.end_token_sale(BOB)
        assert token_ledger.get_supply().sale_ended
