"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18

Initial schema: users, transactions and mixing_steps.
"""

from collections.abc import Sequence

import sqlalchemy as sa
import sqlmodel

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

TRANSACTION_STATUS = sa.Enum(
    "PENDING",
    "CONFIRMED",
    "PROCESSING",
    "COMPLETED",
    "FAILED",
    "REFUNDED",
    "DELETED",
    name="transactionstatus",
)
PRIVACY_LEVEL = sa.Enum("LOW", "MEDIUM", "HIGH", name="privacylevel")
STEP_NAME = sa.Enum(
    "DEPOSIT", "SWAP", "LIGHTNING", "CASHU", "MIXING", "REDEEM", "WITHDRAWAL", name="stepname"
)
STEP_STATUS = sa.Enum("PENDING", "IN_PROGRESS", "COMPLETED", "FAILED", name="stepstatus")


def upgrade() -> None:
    """Create initial database schema."""
    # Users table
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("address", sqlmodel.sql.sqltypes.AutoString(length=128), nullable=False),
        sa.Column("nonce", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("last_active_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_address"), "users", ["address"], unique=True)

    # Transactions table
    op.create_table(
        "transactions",
        sa.Column("id", sqlmodel.sql.sqltypes.AutoString(length=64), nullable=False),
        sa.Column("depositor", sqlmodel.sql.sqltypes.AutoString(length=128), nullable=False),
        sa.Column("recipient", sqlmodel.sql.sqltypes.AutoString(length=128), nullable=False),
        sa.Column("token_address", sqlmodel.sql.sqltypes.AutoString(length=128), nullable=False),
        sa.Column("token_symbol", sqlmodel.sql.sqltypes.AutoString(length=20), nullable=False),
        sa.Column("gross_amount", sqlmodel.sql.sqltypes.AutoString(length=64), nullable=False),
        sa.Column("amount", sqlmodel.sql.sqltypes.AutoString(length=64), nullable=False),
        sa.Column("fee", sqlmodel.sql.sqltypes.AutoString(length=64), nullable=False),
        sa.Column("payment_handle", sqlmodel.sql.sqltypes.AutoString(length=512), nullable=False),
        sa.Column("status", TRANSACTION_STATUS, nullable=False),
        sa.Column("privacy_level", PRIVACY_LEVEL, nullable=False),
        sa.Column("privacy_settings", sa.JSON(), nullable=False),
        sa.Column("progress", sa.Integer(), nullable=False),
        sa.Column("transaction_hash", sqlmodel.sql.sqltypes.AutoString(length=128), nullable=True),
        sa.Column("error", sqlmodel.sql.sqltypes.AutoString(length=1024), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["depositor"], ["users.address"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("payment_handle"),
    )
    op.create_index(op.f("ix_transactions_depositor"), "transactions", ["depositor"])
    op.create_index(op.f("ix_transactions_token_symbol"), "transactions", ["token_symbol"])
    op.create_index(op.f("ix_transactions_status"), "transactions", ["status"])
    op.create_index(op.f("ix_transactions_privacy_level"), "transactions", ["privacy_level"])
    op.create_index(op.f("ix_transactions_created_at"), "transactions", ["created_at"])

    # Mixing steps table
    op.create_table(
        "mixing_steps",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("transaction_id", sqlmodel.sql.sqltypes.AutoString(length=64), nullable=False),
        sa.Column("step_name", STEP_NAME, nullable=False),
        sa.Column("step_description", sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False),
        sa.Column("status", STEP_STATUS, nullable=False),
        sa.Column("progress", sa.Integer(), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("error", sqlmodel.sql.sqltypes.AutoString(length=1024), nullable=True),
        sa.ForeignKeyConstraint(["transaction_id"], ["transactions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("transaction_id", "step_name", name="uq_transaction_step"),
    )
    op.create_index(op.f("ix_mixing_steps_transaction_id"), "mixing_steps", ["transaction_id"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index(op.f("ix_mixing_steps_transaction_id"), table_name="mixing_steps")
    op.drop_table("mixing_steps")
    for column in ("created_at", "privacy_level", "status", "token_symbol", "depositor"):
        op.drop_index(op.f(f"ix_transactions_{column}"), table_name="transactions")
    op.drop_table("transactions")
    op.drop_index(op.f("ix_users_address"), table_name="users")
    op.drop_table("users")
    for enum in (STEP_STATUS, STEP_NAME, PRIVACY_LEVEL, TRANSACTION_STATUS):
        enum.drop(op.get_bind(), checkfirst=True)
