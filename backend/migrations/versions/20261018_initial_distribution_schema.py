"""Initial token distribution schema: sale rounds, allocation groups, ledgers

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_initial"
down_revision = None
branch_labels = None
depends_on = None


# Token amounts are stored as decimal strings (see models.types.TokenAmount)
AMOUNT = sa.String(length=80)


def _timestamps(*names):
    return [
        sa.Column(name, sa.DateTime(timezone=True), nullable=False, server_default=sa.text("(CURRENT_TIMESTAMP)"))
        for name in names
    ]


def upgrade():
    # --- Sale engine ---------------------------------------------------------
    op.create_table(
        "sale_rounds",
        sa.Column("round_index", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("cap", AMOUNT, nullable=False),
        sa.Column("price", AMOUNT, nullable=False),
        sa.Column("cliff", sa.BigInteger(), nullable=False),
        sa.Column("token_sold", AMOUNT, nullable=False),
        sa.Column("tge_timestamp", sa.BigInteger(), nullable=True),
        *_timestamps("created_at"),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.CheckConstraint("round_index >= 0 AND round_index < 4", name="ck_sale_rounds_index"),
        sa.PrimaryKeyConstraint("round_index"),
    )

    op.create_table(
        "sale_round_accounts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("round_index", sa.Integer(), nullable=False),
        sa.Column("account", sa.String(length=64), nullable=False),
        sa.Column("whitelisted", sa.Boolean(), nullable=False),
        sa.Column("bought", AMOUNT, nullable=False),
        sa.Column("unlocked", AMOUNT, nullable=False),
        sa.Column("vesting_epoch", sa.Integer(), nullable=False),
        *_timestamps("created_at", "updated_at"),
        sa.ForeignKeyConstraint(["round_index"], ["sale_rounds.round_index"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("round_index", "account", name="uq_sale_round_accounts_round_account"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sale_round_accounts", schema=None) as batch_op:
        batch_op.create_index("ix_sale_round_accounts_round_index", ["round_index"], unique=False)
        batch_op.create_index("ix_sale_round_accounts_account", ["account"], unique=False)

    op.create_table(
        "sale_state",
        sa.Column("id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("current_round", sa.Integer(), nullable=False),
        sa.Column("sale_active", sa.Boolean(), nullable=False),
        *_timestamps("updated_at"),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    # --- Allocation engine ---------------------------------------------------
    op.create_table(
        "allocation_groups",
        sa.Column("group_index", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("code", sa.String(length=16), nullable=False),
        sa.Column("cliff", sa.BigInteger(), nullable=False),
        sa.Column("unlock_delay", sa.BigInteger(), nullable=False),
        sa.Column("initial_unlock_bps", sa.Integer(), nullable=False),
        sa.Column("steady_unlock_bps", sa.Integer(), nullable=False),
        sa.Column("current_epoch", sa.Integer(), nullable=False),
        sa.Column("next_position", sa.Integer(), nullable=False),
        *_timestamps("created_at"),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.CheckConstraint("group_index >= 0 AND group_index < 6", name="ck_allocation_groups_index"),
        sa.PrimaryKeyConstraint("group_index"),
    )
    with op.batch_alter_table("allocation_groups", schema=None) as batch_op:
        batch_op.create_index("ix_allocation_groups_code", ["code"], unique=True)

    op.create_table(
        "allocation_participants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("group_index", sa.Integer(), nullable=False),
        sa.Column("account", sa.String(length=64), nullable=False),
        sa.Column("balance", AMOUNT, nullable=False),
        sa.Column("unlocked_balance", AMOUNT, nullable=False),
        sa.Column("epoch", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=True),
        *_timestamps("created_at", "updated_at"),
        sa.ForeignKeyConstraint(["group_index"], ["allocation_groups.group_index"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("group_index", "account", name="uq_allocation_participants_group_account"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("allocation_participants", schema=None) as batch_op:
        batch_op.create_index("ix_allocation_participants_group_index", ["group_index"], unique=False)
        batch_op.create_index("ix_allocation_participants_account", ["account"], unique=False)
        batch_op.create_index("ix_allocation_participants_group_position", ["group_index", "position"], unique=False)

    op.create_table(
        "allocation_state",
        sa.Column("id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("tge_timestamp", sa.BigInteger(), nullable=True),
        sa.Column("mainnet_launch_timestamp", sa.BigInteger(), nullable=True),
        sa.Column("token_sale_address", sa.String(length=64), nullable=True),
        *_timestamps("updated_at"),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    # --- Boundary ledgers ----------------------------------------------------
    for table in ("token_balances", "payment_balances"):
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("account", sa.String(length=64), nullable=False),
            sa.Column("balance", AMOUNT, nullable=False),
            *_timestamps("updated_at"),
            sa.PrimaryKeyConstraint("id"),
            sqlite_autoincrement=True,
        )
        with op.batch_alter_table(table, schema=None) as batch_op:
            batch_op.create_index(f"ix_{table}_account", ["account"], unique=True)

    op.create_table(
        "token_supply",
        sa.Column("id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("total_minted", AMOUNT, nullable=False),
        sa.Column("sale_ended", sa.Boolean(), nullable=False),
        sa.Column("sale_ended_at", sa.BigInteger(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    # --- Audit ---------------------------------------------------------------
    op.create_table(
        "distribution_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("event_category", sa.String(length=32), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("account", sa.String(length=64), nullable=True),
        sa.Column("actor", sa.String(length=64), nullable=True),
        sa.Column("amount", AMOUNT, nullable=True),
        sa.Column("round_index", sa.Integer(), nullable=True),
        sa.Column("group_code", sa.String(length=16), nullable=True),
        sa.Column("occurred_at", sa.BigInteger(), nullable=False),
        *_timestamps("created_at"),
        sa.Column("note", sa.String(length=255), nullable=True),
        sa.Column("payload", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("distribution_events", schema=None) as batch_op:
        for column in ("event_type", "event_category", "account", "round_index", "group_code", "occurred_at"):
            batch_op.create_index(f"ix_distribution_events_{column}", [column], unique=False)
        batch_op.create_index(
            "ix_distribution_events_category_occurred", ["event_category", "occurred_at"], unique=False
        )

    op.create_table(
        "security_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("caller", sa.String(length=64), nullable=True),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("resource", sa.String(length=128), nullable=True),
        sa.Column("action", sa.String(length=64), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("ip_address", sa.String(length=45), nullable=True),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        sa.Column("occurred_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("security_events", schema=None) as batch_op:
        for column in ("caller", "event_type", "success", "occurred_at"):
            batch_op.create_index(f"ix_security_events_{column}", [column], unique=False)
        batch_op.create_index("ix_security_events_caller_type", ["caller", "event_type"], unique=False)


def downgrade():
    op.drop_table("security_events")
    op.drop_table("distribution_events")
    op.drop_table("token_supply")
    op.drop_table("payment_balances")
    op.drop_table("token_balances")
    op.drop_table("allocation_state")
    op.drop_table("allocation_participants")
    op.drop_table("allocation_groups")
    op.drop_table("sale_state")
    op.drop_table("sale_round_accounts")
    op.drop_table("sale_rounds")
