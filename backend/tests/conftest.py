"""
Pytest fixtures for token distribution backend tests.

Provides an in-memory app, per-test table wipe, a controllable clock,
bootstrapped rounds/groups and test client helpers.
"""

import pytest
from tokendist import create_app
from tokendist.extensions import db
from tokendist.services import sale_service, allocation_service, token_ledger, payment_ledger
from tokendist.time_utils import DAY


OWNER = "0xowner"
TREASURY = "0xtreasury"
RESERVE = "0xsalereserve"
SALE_ENGINE = "0xsaleengine"
ALICE = "0xalice"
BOB = "0xbob"
CAROL = "0xcarol"

START_TS = 1_700_000_000

TEST_ROUNDS = [
    {"cap": 100, "price": 1, "cliff": 60 * DAY},
    {"cap": 200, "price": 2, "cliff": 30 * DAY},
    {"cap": 300, "price": 3, "cliff": 10 * DAY},
    {"cap": 50, "price": 4, "cliff": 0},
]

TEST_GROUPS = [
    {"code": "TEAM", "cliff": 90 * DAY, "unlock_delay": 30 * DAY,
     "initial_unlock_bps": 2000, "steady_unlock_bps": 1000},
    {"code": "ECOSYSTEM", "cliff": 30 * DAY, "unlock_delay": 30 * DAY,
     "initial_unlock_bps": 1000, "steady_unlock_bps": 500},
    {"code": "ADVISOR", "cliff": 60 * DAY, "unlock_delay": 30 * DAY,
     "initial_unlock_bps": 1000, "steady_unlock_bps": 1000},
    {"code": "LIQUIDITY", "cliff": 0, "unlock_delay": 30 * DAY,
     "initial_unlock_bps": 5000, "steady_unlock_bps": 5000},
    {"code": "MARKETING", "cliff": 0, "unlock_delay": 7 * DAY,
     "initial_unlock_bps": 2500, "steady_unlock_bps": 2500},
    {"code": "RESERVE", "cliff": 365 * DAY, "unlock_delay": 90 * DAY,
     "initial_unlock_bps": 1000, "steady_unlock_bps": 1500},
]


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'OWNER_ADDRESS': OWNER,
        'TREASURY_ADDRESS': TREASURY,
        'SALE_RESERVE_ADDRESS': RESERVE,
        'SALE_ENGINE_ADDRESS': SALE_ENGINE,
        'TOKEN_DECIMALS': 0,
        'PAYMENT_ASSET_DECIMALS': 0,
        'SALE_ROUNDS': TEST_ROUNDS,
        'ALLOCATION_GROUPS': TEST_GROUPS,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


class Clock:
    """Settable stand-in for time_utils.now_ts."""

    def __init__(self, now: int):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now

    def set(self, ts: int) -> int:
        self.now = ts
        return self.now


@pytest.fixture(scope='function')
def clock(monkeypatch):
    """Freeze the host clock at START_TS; tests move it explicitly."""
    fake = Clock(START_TS)
    monkeypatch.setattr("tokendist.time_utils.now_ts", fake)
    return fake


@pytest.fixture(scope='function')
def seeded(db_session, clock):
    """Rounds, groups and singleton state rows from the test config."""
    sale_service.initialize_sale()
    allocation_service.initialize_allocation()
    return db_session


@pytest.fixture(scope='function')
def active_sale(seeded):
    sale_service.activate_sale(OWNER)
    return seeded


@pytest.fixture(scope='function')
def fund_payment(db_session):
    """Deposit payment asset into an account."""
    def _fund(account: str, amount: int) -> None:
        payment_ledger.credit(account, amount)
        db_session.commit()
    return _fund


@pytest.fixture(scope='function')
def fund_reserve(db_session):
    """Mint tokens into the sale reserve so claims can be paid."""
    def _fund(amount: int) -> None:
        token_ledger.mint(RESERVE, amount)
        db_session.commit()
    return _fund


def caller_headers(address: str) -> dict:
    """Helper to create caller identity headers."""
    return {'X-Caller-Address': address}


@pytest.fixture
def owner_headers():
    return caller_headers(OWNER)


@pytest.fixture
def alice_headers():
    return caller_headers(ALICE)


@pytest.fixture
def bob_headers():
    return caller_headers(BOB)
