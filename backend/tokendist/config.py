# backend/tokendist/config.py
from __future__ import annotations
import os

from .time_utils import DAY


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/tokendist.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///tokendist.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Identities (addresses are compared lower-cased)
    OWNER_ADDRESS = os.environ.get("OWNER_ADDRESS", "0xowner")
    TREASURY_ADDRESS = os.environ.get("TREASURY_ADDRESS", "0xtreasury")
    # Holds the tokens that sale claims are paid out of
    SALE_RESERVE_ADDRESS = os.environ.get("SALE_RESERVE_ADDRESS", "0xsalereserve")
    # Identity the sale engine uses when signalling end_token_sale
    SALE_ENGINE_ADDRESS = os.environ.get("SALE_ENGINE_ADDRESS", "0xsaleengine")

    TOKEN_DECIMALS = int(os.environ.get("TOKEN_DECIMALS", "18"))
    PAYMENT_ASSET_DECIMALS = int(os.environ.get("PAYMENT_ASSET_DECIMALS", "18"))

    # Sale rounds, index order. Required payment for a purchase is
    # amount * price // 10**PAYMENT_ASSET_DECIMALS, so with both assets at
    # 18 decimals the price is payment base units per whole token.
    SALE_ROUNDS = [
        {"cap": 50_000_000 * 10**18, "price": 15 * 10**15, "cliff": 60 * DAY},   # 0.015
        {"cap": 75_000_000 * 10**18, "price": 20 * 10**15, "cliff": 45 * DAY},   # 0.020
        {"cap": 100_000_000 * 10**18, "price": 30 * 10**15, "cliff": 30 * DAY},  # 0.030
        {"cap": 25_000_000 * 10**18, "price": 40 * 10**15, "cliff": 0},          # 0.040
    ]

    # Allocation groups, index order. Percentages in basis points (10000 = 100%).
    ALLOCATION_GROUPS = [
        {"code": "TEAM", "cliff": 365 * DAY, "unlock_delay": 30 * DAY,
         "initial_unlock_bps": 500, "steady_unlock_bps": 500},
        {"code": "ECOSYSTEM", "cliff": 90 * DAY, "unlock_delay": 30 * DAY,
         "initial_unlock_bps": 1000, "steady_unlock_bps": 500},
        {"code": "ADVISOR", "cliff": 180 * DAY, "unlock_delay": 30 * DAY,
         "initial_unlock_bps": 1000, "steady_unlock_bps": 1000},
        {"code": "LIQUIDITY", "cliff": 0, "unlock_delay": 30 * DAY,
         "initial_unlock_bps": 5000, "steady_unlock_bps": 1000},
        {"code": "MARKETING", "cliff": 30 * DAY, "unlock_delay": 30 * DAY,
         "initial_unlock_bps": 2000, "steady_unlock_bps": 1000},
        {"code": "RESERVE", "cliff": 730 * DAY, "unlock_delay": 90 * DAY,
         "initial_unlock_bps": 1000, "steady_unlock_bps": 1500},
    ]
