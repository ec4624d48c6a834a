"""Initial schema: users, rides, wallets, transactions, withdrawals.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("role", sa.String(40), nullable=False),
        sa.Column("status", sa.String(40), nullable=False, server_default="active"),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("phone", sa.String(40), nullable=True),
        sa.Column("email", sa.String(255), unique=True, nullable=True),
        _timestamp("created_at"),
        sa.CheckConstraint("role IN ('driver', 'requester')", name="ck_users_role"),
    )

    # ── rides ─────────────────────────────────────────────────────────
    op.create_table(
        "rides",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("requester_id", sa.String(128), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("requester_name", sa.String(120), nullable=True),
        sa.Column("requester_phone", sa.String(40), nullable=True),
        sa.Column("origin_address", sa.String(500), nullable=False),
        sa.Column("destination_address", sa.String(500), nullable=False),
        sa.Column("city", sa.String(120), nullable=True),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("is_product", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("product_description", sa.String(500), nullable=True),
        sa.Column("product_size", sa.String(60), nullable=True),
        sa.Column("product_weight", sa.Numeric(10, 3), nullable=True),
        sa.Column("status", sa.String(40), nullable=False, server_default="pending"),
        sa.Column("driver_id", sa.String(128), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("driver_name", sa.String(120), nullable=True),
        sa.Column("driver_phone", sa.String(40), nullable=True),
        _timestamp("created_at", nullable=False),
        _timestamp("updated_at", nullable=False),
        _timestamp("accepted_at"),
        _timestamp("started_at"),
        _timestamp("completed_at"),
        _timestamp("cancelled_at"),
        sa.CheckConstraint("price > 0", name="ck_rides_price_positive"),
    )
    op.create_index("idx_rides_status_created", "rides", ["status", "created_at"])
    op.create_index("idx_rides_requester", "rides", ["requester_id"])
    op.create_index("idx_rides_driver", "rides", ["driver_id"])
    op.create_index("idx_rides_city", "rides", ["city"])

    # ── wallets ───────────────────────────────────────────────────────
    op.create_table(
        "wallets",
        sa.Column("driver_id", sa.String(128), sa.ForeignKey("users.id"), primary_key=True),
        sa.Column("balance", sa.Numeric(18, 2), nullable=False, server_default="0"),
        _timestamp("updated_at", nullable=False),
        sa.CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),
    )

    # ── withdrawals ───────────────────────────────────────────────────
    op.create_table(
        "withdrawals",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("driver_id", sa.String(128), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("driver_name", sa.String(120), nullable=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("bank", sa.String(120), nullable=False),
        sa.Column("agency", sa.String(40), nullable=False),
        sa.Column("account", sa.String(40), nullable=False),
        sa.Column("status", sa.String(40), nullable=False, server_default="pending"),
        _timestamp("created_at", nullable=False),
        _timestamp("cancelled_at"),
        sa.CheckConstraint("amount > 0", name="ck_withdrawals_amount_positive"),
    )
    op.create_index("idx_withdrawals_driver", "withdrawals", ["driver_id"])

    # ── transactions (append-only ledger) ─────────────────────────────
    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("driver_id", sa.String(128), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", sa.String(40), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("balance", sa.Numeric(18, 2), nullable=False),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("ride_id", sa.String(32), sa.ForeignKey("rides.id"), nullable=True),
        sa.Column(
            "withdrawal_id", sa.String(32), sa.ForeignKey("withdrawals.id"), nullable=True
        ),
        sa.Column("status", sa.String(40), nullable=True),
        _timestamp("created_at", nullable=False),
    )
    op.create_index(
        "idx_transactions_driver_created", "transactions", ["driver_id", "created_at"]
    )
    op.create_index("idx_transactions_withdrawal", "transactions", ["withdrawal_id"])


def downgrade() -> None:
    op.drop_table("transactions")
    op.drop_table("withdrawals")
    op.drop_table("wallets")
    op.drop_table("rides")
    op.drop_table("users")
