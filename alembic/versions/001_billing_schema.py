"""Create vendors, subscription groups, invoices, credits, orders and job runs."""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "001_billing_schema"
down_revision = None
branch_labels = None
depends_on = None


def _id() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
    )


def _status(name: str, default: str | None = None) -> sa.Column:
    return sa.Column(
        name,
        sa.String(length=32),
        nullable=False,
        server_default=sa.text(f"'{default}'") if default else None,
    )


def upgrade() -> None:
    op.create_table(
        "vendors",
        _id(),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), nullable=False),
        _created_at(),
    )
    op.create_index("ix_vendors_owner_id", "vendors", ["owner_id"])

    op.create_table(
        "vendor_slot_prices",
        _id(),
        sa.Column("vendor_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("vendors.id"), nullable=False),
        _status("slot"),
        sa.Column("price_per_meal", sa.Numeric(10, 2), nullable=False),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created_at(),
        sa.UniqueConstraint("vendor_id", "slot", name="uq_vendor_slot_price"),
    )
    op.create_index("ix_vendor_slot_prices_vendor_id", "vendor_slot_prices", ["vendor_id"])

    op.create_table(
        "vendor_holidays",
        _id(),
        sa.Column("vendor_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("vendors.id"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("slot", sa.String(length=32), nullable=True),
        sa.Column("reason", sa.String(), nullable=True),
        _created_at(),
        sa.UniqueConstraint("vendor_id", "date", "slot", name="uq_vendor_holiday"),
    )
    op.create_index("ix_vendor_holidays_vendor_id", "vendor_holidays", ["vendor_id"])

    op.create_table(
        "coupons",
        _id(),
        sa.Column("code", sa.String(), nullable=False, unique=True),
        _status("discount_type"),
        sa.Column("discount_value", sa.Numeric(10, 2), nullable=False),
        sa.Column("min_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("max_discount", sa.Numeric(10, 2), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created_at(),
    )

    op.create_table(
        "subscription_groups",
        _id(),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("vendor_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("vendors.id"), nullable=False),
        _status("period"),
        _status("status", "active"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("renewal_date", sa.Date(), nullable=False),
        sa.Column("coupon_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("coupons.id"), nullable=True),
        sa.Column("paused_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("ix_subscription_groups_customer_id", "subscription_groups", ["customer_id"])
    op.create_index("ix_subscription_groups_vendor_id", "subscription_groups", ["vendor_id"])
    op.create_index("ix_subscription_groups_renewal_date", "subscription_groups", ["renewal_date"])

    op.create_table(
        "subscriptions",
        _id(),
        sa.Column(
            "group_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("subscription_groups.id"),
            nullable=False,
        ),
        _status("slot"),
        sa.Column("weekdays", sa.JSON(), nullable=False),
        _status("status", "active"),
        sa.Column("skip_limit", sa.Integer(), nullable=False, server_default=sa.text("4")),
        sa.Column("skips_used", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("max_pause_days", sa.Integer(), nullable=False, server_default=sa.text("30")),
        sa.Column("paused_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("ix_subscriptions_group_id", "subscriptions", ["group_id"])

    op.create_table(
        "invoices",
        _id(),
        sa.Column(
            "group_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("subscription_groups.id"),
            nullable=False,
        ),
        sa.Column("cycle_start", sa.Date(), nullable=False),
        sa.Column("cycle_end", sa.Date(), nullable=False),
        sa.Column("gross_amount", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("discount_amount", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("credits_applied", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _status("status", "pending"),
        sa.Column("payment_attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_payment_error", sa.String(), nullable=True),
        sa.Column("razorpay_order_id", sa.String(), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("orders_generated_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.UniqueConstraint("group_id", "cycle_start", name="uq_invoice_group_cycle"),
    )
    op.create_index("ix_invoices_group_id", "invoices", ["group_id"])
    op.create_index("ix_invoices_status", "invoices", ["status"])

    op.create_table(
        "invoice_line_items",
        _id(),
        sa.Column("invoice_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column(
            "subscription_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("subscriptions.id"),
            nullable=False,
        ),
        _status("slot"),
        sa.Column("scheduled_meals", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("holiday_meals", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("credits_applied", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("billable_meals", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("price_per_meal", sa.Numeric(10, 2), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        _created_at(),
    )
    op.create_index("ix_invoice_line_items_invoice_id", "invoice_line_items", ["invoice_id"])
    op.create_index("ix_invoice_line_items_subscription_id", "invoice_line_items", ["subscription_id"])

    op.create_table(
        "credits",
        _id(),
        sa.Column(
            "subscription_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("subscriptions.id"),
            nullable=True,
        ),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("slot", sa.String(length=32), nullable=True),
        _status("reason"),
        sa.Column("meal_count", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("amount", sa.Numeric(10, 2), nullable=True),
        _status("status", "available"),
        sa.Column("expires_at", sa.Date(), nullable=True),
        sa.Column(
            "consumed_invoice_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("invoices.id"),
            nullable=True,
        ),
        sa.Column("consumed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        _created_at(),
    )
    op.create_index("ix_credits_subscription_id", "credits", ["subscription_id"])
    op.create_index("ix_credits_customer_id", "credits", ["customer_id"])
    op.create_index("ix_credits_status", "credits", ["status"])

    op.create_table(
        "orders",
        _id(),
        sa.Column(
            "subscription_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("subscriptions.id"),
            nullable=False,
        ),
        sa.Column(
            "group_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("subscription_groups.id"),
            nullable=False,
        ),
        sa.Column("invoice_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("invoices.id"), nullable=False),
        sa.Column("service_date", sa.Date(), nullable=False),
        _status("slot"),
        _status("status", "scheduled"),
        sa.Column("status_reason", sa.String(), nullable=True),
        _created_at(),
        sa.UniqueConstraint(
            "subscription_id", "service_date", "slot", name="uq_order_subscription_date_slot"
        ),
    )
    op.create_index("ix_orders_group_id", "orders", ["group_id"])
    op.create_index("ix_orders_invoice_id", "orders", ["invoice_id"])
    op.create_index("ix_orders_service_date", "orders", ["service_date"])

    op.create_table(
        "job_runs",
        _id(),
        _status("job_type"),
        _status("status", "running"),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("cursor", sa.String(), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("run_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("ix_job_runs_job_type", "job_runs", ["job_type"])


def downgrade() -> None:
    op.drop_table("job_runs")
    op.drop_table("orders")
    op.drop_table("credits")
    op.drop_table("invoice_line_items")
    op.drop_table("invoices")
    op.drop_table("subscriptions")
    op.drop_table("subscription_groups")
    op.drop_table("coupons")
    op.drop_table("vendor_holidays")
    op.drop_table("vendor_slot_prices")
    op.drop_table("vendors")
