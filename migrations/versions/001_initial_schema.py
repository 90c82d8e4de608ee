"""Initial schema: accounts, locations and tiers, trips, reservations, credit ledger, payments, audit.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

ENUM_TYPES = (
    "accountrole",
    "accountstatus",
    "tripstatus",
    "reservationstatus",
    "ledgerentrytype",
    "paymentstatus",
)


def upgrade() -> None:
    # ── accounts / riders ─────────────────────────────────────────────
    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column(
            "role",
            sa.Enum("USER", "ADMIN", name="accountrole"),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum("ACTIVE", "SUSPENDED", name="accountstatus"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    op.create_table(
        "riders",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "account_id", sa.Integer, sa.ForeignKey("accounts.id"), nullable=False
        ),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("phone", sa.String(40), nullable=True),
    )
    op.create_index("idx_riders_account", "riders", ["account_id"])

    # ── locations / pricing tiers ─────────────────────────────────────
    op.create_table(
        "locations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("address", sa.String(255), nullable=False),
        sa.Column("default_duration_minutes", sa.Integer, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    op.create_table(
        "pricing_tiers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "location_id", sa.Integer, sa.ForeignKey("locations.id"), nullable=False
        ),
        sa.Column("passenger_count", sa.Integer, nullable=False),
        sa.Column("cost_per_person", sa.Integer, nullable=False),
        sa.UniqueConstraint(
            "location_id", "passenger_count", name="uq_tier_location_count"
        ),
    )

    # ── trips / reservations ──────────────────────────────────────────
    op.create_table(
        "trips",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "destination_id", sa.Integer, sa.ForeignKey("locations.id"), nullable=False
        ),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("max_passengers", sa.Integer, nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "SCHEDULED",
                "IN_PROGRESS",
                "COMPLETED",
                "CANCELLED",
                name="tripstatus",
            ),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_trips_status", "trips", ["status"])
    op.create_index("idx_trips_start", "trips", ["start_time"])

    op.create_table(
        "reservations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("trip_id", sa.Integer, sa.ForeignKey("trips.id"), nullable=False),
        sa.Column(
            "account_id", sa.Integer, sa.ForeignKey("accounts.id"), nullable=False
        ),
        sa.Column("rider_id", sa.Integer, sa.ForeignKey("riders.id"), nullable=True),
        sa.Column(
            "pickup_location_id",
            sa.Integer,
            sa.ForeignKey("locations.id"),
            nullable=False,
        ),
        sa.Column(
            "dropoff_location_id",
            sa.Integer,
            sa.ForeignKey("locations.id"),
            nullable=False,
        ),
        sa.Column("passenger_count", sa.Integer, nullable=False),
        sa.Column("credits_cost", sa.Integer, nullable=False),
        sa.Column("original_cost", sa.Integer, nullable=True),
        sa.Column(
            "status",
            sa.Enum("CONFIRMED", "CANCELLED", name="reservationstatus"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "idx_reservations_trip_status", "reservations", ["trip_id", "status"]
    )
    op.create_index("idx_reservations_account", "reservations", ["account_id"])

    # ── credit ledger ─────────────────────────────────────────────────
    op.create_table(
        "credit_balances",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "account_id",
            sa.Integer,
            sa.ForeignKey("accounts.id"),
            unique=True,
            nullable=False,
        ),
        sa.Column("credits", sa.Integer, nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "account_id", sa.Integer, sa.ForeignKey("accounts.id"), nullable=False
        ),
        sa.Column(
            "type",
            sa.Enum(
                "PURCHASE",
                "USAGE",
                "REFUND",
                "REFUND_ADJUSTMENT",
                "ADMIN_ADJUSTMENT",
                name="ledgerentrytype",
            ),
            nullable=False,
        ),
        sa.Column("amount", sa.Integer, nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_ledger_account", "ledger_entries", ["account_id"])
    op.create_index("idx_ledger_type", "ledger_entries", ["type"])

    # ── packages / payments ───────────────────────────────────────────
    op.create_table(
        "credit_packages",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), unique=True, nullable=False),
        sa.Column("credits", sa.Integer, nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    op.create_table(
        "payment_transactions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "account_id", sa.Integer, sa.ForeignKey("accounts.id"), nullable=False
        ),
        sa.Column(
            "package_id",
            sa.Integer,
            sa.ForeignKey("credit_packages.id"),
            nullable=True,
        ),
        sa.Column("merchant_txn_id", sa.String(64), unique=True, nullable=False),
        sa.Column("gateway_payment_id", sa.String(64), nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING", "COMPLETED", "FAILED", "CANCELLED", name="paymentstatus"
            ),
            nullable=False,
        ),
        sa.Column("credits", sa.Integer, nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("signature", sa.String(64), nullable=True),
        sa.Column("itn_data", sa.JSON, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "idx_payments_merchant_txn", "payment_transactions", ["merchant_txn_id"]
    )
    op.create_index("idx_payments_status", "payment_transactions", ["status"])

    # ── audit ─────────────────────────────────────────────────────────
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("account_id", sa.Integer, nullable=True),
        sa.Column("action", sa.String(40), nullable=False),
        sa.Column("resource", sa.String(40), nullable=False),
        sa.Column("resource_id", sa.String(64), nullable=True),
        sa.Column("new_values", sa.JSON, nullable=True),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("success", sa.Boolean, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_audit_resource", "audit_logs", ["resource", "resource_id"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("payment_transactions")
    op.drop_table("credit_packages")
    op.drop_table("ledger_entries")
    op.drop_table("credit_balances")
    op.drop_table("reservations")
    op.drop_table("trips")
    op.drop_table("pricing_tiers")
    op.drop_table("locations")
    op.drop_table("riders")
    op.drop_table("accounts")
    if op.get_bind().dialect.name == "postgresql":
        for name in ENUM_TYPES:
            op.execute(f"DROP TYPE IF EXISTS {name}")
