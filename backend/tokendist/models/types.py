from __future__ import annotations

from sqlalchemy.types import String, TypeDecorator


class TokenAmount(TypeDecorator):
    """
    Arbitrary-precision non-negative integer stored as a decimal string.

    Token amounts in base units (10**18 per token) overflow BIGINT and
    SQLite's NUMERIC affinity would coerce them to REAL, so amounts are
    persisted as text and round-trip as Python ints.
    """

    impl = String(80)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(int(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return int(value)


def amount_str(value: int | None) -> str | None:
    """JSON form of an amount; strings keep precision for JS clients."""
    if value is None:
        return None
    return str(value)
