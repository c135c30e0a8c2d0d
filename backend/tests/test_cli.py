"""CLI command tests via Flask's CLI test runner."""

import pytest

from tokendist.services import sale_service, allocation_service, token_ledger, payment_ledger
from tokendist.models import SaleRound


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


class TestSystemCommands:

    def test_init_is_idempotent(self, runner, db_session, clock):
        result = runner.invoke(args=["system", "init"])
        assert result.exit_code == 0
        assert "PASS Sale rounds: 4" in result.output
        assert "TEAM, ECOSYSTEM, ADVISOR, LIQUIDITY, MARKETING, RESERVE" in result.output

        result = runner.invoke(args=["system", "init"])
        assert result.exit_code == 0
        assert db_session.query(SaleRound).count() == 4


class TestSaleCommands:

    def test_status(self, runner, seeded):
        result = runner.invoke(args=["sale", "status"])
        assert result.exit_code == 0
        assert "Sale: round 0, active: No" in result.output

    def test_status_before_init(self, runner, db_session):
        result = runner.invoke(args=["sale", "status"])
        assert "FAIL" in result.output

    def test_whitelist_and_activate(self, runner, seeded):
        result = runner.invoke(args=["sale", "whitelist", "0", "0xAlice", "0xbob"])
        assert "PASS Whitelisted 2 address(es) for round 0" in result.output
        assert sale_service.get_round_account(0, "0xalice").whitelisted

        result = runner.invoke(args=["sale", "activate"])
        assert "PASS Sale active for round 0" in result.output
        assert sale_service.get_sale_state().sale_active

        result = runner.invoke(args=["sale", "pause"])
        assert "PASS Sale paused" in result.output

    def test_whitelist_public_round_fails(self, runner, seeded):
        result = runner.invoke(args=["sale", "whitelist", "3", "0xalice"])
        assert "FAIL" in result.output


class TestAllocationCommands:

    def test_add_tge_and_distribute(self, runner, seeded, clock):
        result = runner.invoke(args=[
            "allocation", "add", "LIQUIDITY",
            "--address", "0xalice", "--balance", "1000",
            "--address", "0xbob", "--balance", "400",
        ])
        assert "PASS Added 2 participant(s) to LIQUIDITY" in result.output

        result = runner.invoke(args=["allocation", "tge"])
        assert "PASS TGE passed" in result.output

        result = runner.invoke(args=["allocation", "distribute", "LIQUIDITY"])
        assert "FAIL" in result.output

        clock.advance(1)
        result = runner.invoke(args=["allocation", "distribute", "LIQUIDITY"])
        assert "PASS LIQUIDITY epoch 0: 700 to 2 member(s)" in result.output
        assert token_ledger.balance_of("0xbob") == 200

    def test_duplicate_add_warns(self, runner, seeded):
        allocation_service.add_participants("0xowner", "TEAM", ["0xalice"], [1000])
        result = runner.invoke(args=["allocation", "add", "TEAM", "--address", "0xalice", "--balance", "5"])
        assert "WARN" in result.output

    def test_mainnet(self, runner, seeded):
        result = runner.invoke(args=["allocation", "mainnet"])
        assert "FAIL" in result.output

        runner.invoke(args=["allocation", "tge"])
        result = runner.invoke(args=["allocation", "mainnet"])
        assert "PASS Mainnet launched" in result.output

    def test_status(self, runner, seeded):
        result = runner.invoke(args=["allocation", "status"])
        assert result.exit_code == 0
        assert "TGE: not passed" in result.output
        assert "RESERVE" in result.output


class TestLedgerCommands:

    def test_fund_reserve(self, runner, seeded):
        result = runner.invoke(args=["ledger", "fund-reserve", "1000"])
        assert "PASS" in result.output
        assert token_ledger.balance_of("0xsalereserve") == 1000

    def test_fund_reserve_rejects_decimals(self, runner, seeded):
        result = runner.invoke(args=["ledger", "fund-reserve", "10.5"])
        assert "FAIL" in result.output
        assert token_ledger.balance_of("0xsalereserve") == 0

    def test_credit_payment_and_events(self, runner, seeded):
        result = runner.invoke(args=["ledger", "credit-payment", "0xALICE", "50"])
        assert "PASS 0xalice payment balance: 50" in result.output
        assert payment_ledger.balance_of("0xalice") == 50

        result = runner.invoke(args=["ledger", "events", "--category", "ledger"])
        assert "ledger.payment_credited" in result.output
        assert "Showing 1 of 1" in result.output

    def test_events_empty(self, runner, seeded):
        result = runner.invoke(args=["ledger", "events"])
        assert "No events found." in result.output
