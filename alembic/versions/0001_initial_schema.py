"""Initial OrderDesk schema.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def _money(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, sa.Numeric(18, 2, asdecimal=True), **kwargs)


def _enum(name: str, **kwargs) -> sa.Column:
    # Enums are stored as their string values (non-native).
    return sa.Column(name, sa.String(length=32), **kwargs)


def upgrade() -> None:
    op.create_table(
        "users",
        *_timestamps(),
        sa.Column("username", sa.String(length=100), nullable=False, unique=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
    )

    op.create_table(
        "api_keys",
        *_timestamps(),
        sa.Column("name", sa.String(length=120), nullable=False, unique=True),
        sa.Column("prefix", sa.String(length=32), nullable=False),
        sa.Column("key_hash", sa.String(length=128), nullable=False, unique=True),
        _enum("scope", nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_api_keys_prefix", "api_keys", ["prefix"])
    op.create_index("ix_api_keys_user_id", "api_keys", ["user_id"])

    op.create_table(
        "companies",
        *_timestamps(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("slug", sa.String(length=100), nullable=False, unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
    )

    op.create_table(
        "company_members",
        *_timestamps(),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        _enum("role", nullable=False),
        sa.Column("department", sa.String(length=120), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.UniqueConstraint("company_id", "user_id", name="uq_company_member_user"),
    )
    op.create_index("ix_company_members_company_id", "company_members", ["company_id"])
    op.create_index("ix_company_members_user_id", "company_members", ["user_id"])

    op.create_table(
        "vendors",
        *_timestamps(),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("contact_email", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_vendors_company_id", "vendors", ["company_id"])

    op.create_table(
        "vendor_members",
        *_timestamps(),
        sa.Column("vendor_id", sa.Integer(), sa.ForeignKey("vendors.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.UniqueConstraint("vendor_id", "user_id", name="uq_vendor_member_user"),
    )
    op.create_index("ix_vendor_members_vendor_id", "vendor_members", ["vendor_id"])
    op.create_index("ix_vendor_members_user_id", "vendor_members", ["user_id"])

    op.create_table(
        "product_types",
        *_timestamps(),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        _money("base_price", nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.CheckConstraint("base_price >= 0", name="ck_product_type_price_non_negative"),
    )
    op.create_index("ix_product_types_company_id", "product_types", ["company_id"])

    op.create_table(
        "product_variants",
        *_timestamps(),
        sa.Column(
            "product_type_id", sa.Integer(), sa.ForeignKey("product_types.id"), nullable=False
        ),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("color", sa.String(length=60), nullable=True),
        _money("price_modifier", nullable=False),
        sa.Column("available_sizes", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_product_variants_product_type_id", "product_variants", ["product_type_id"])

    op.create_table(
        "cart_items",
        *_timestamps(),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column(
            "product_type_id", sa.Integer(), sa.ForeignKey("product_types.id"), nullable=False
        ),
        sa.Column(
            "product_variant_id", sa.Integer(), sa.ForeignKey("product_variants.id"), nullable=False
        ),
        sa.Column("size", sa.String(length=8), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_cart_item_quantity_positive"),
    )
    op.create_index("ix_cart_items_user_id", "cart_items", ["user_id"])
    op.create_index("ix_cart_items_company_id", "cart_items", ["company_id"])

    op.create_table(
        "budget_periods",
        *_timestamps(),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        _enum("period_type", nullable=False),
        sa.Column("period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("period_end", sa.DateTime(timezone=True), nullable=False),
        _money("budget_amount", nullable=False),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.CheckConstraint("budget_amount > 0", name="ck_budget_period_amount_positive"),
    )
    op.create_index("ix_budget_periods_company_id", "budget_periods", ["company_id"])

    op.create_table(
        "budgets",
        *_timestamps(),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column(
            "budget_period_id", sa.Integer(), sa.ForeignKey("budget_periods.id"), nullable=False
        ),
        _enum("period_type", nullable=False),
        sa.Column("period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("period_end", sa.DateTime(timezone=True), nullable=False),
        _money("total_budget", nullable=False),
        _money("allocated_budget", nullable=False),
        _money("spent_budget", nullable=False),
        _money("remaining_budget", nullable=False),
        _enum("status", nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.CheckConstraint("total_budget > 0", name="ck_budget_total_positive"),
    )
    op.create_index("ix_budgets_company_id", "budgets", ["company_id"])
    op.create_index("ix_budgets_company_status", "budgets", ["company_id", "status"])

    op.create_table(
        "employee_budgets",
        *_timestamps(),
        sa.Column("budget_id", sa.Integer(), sa.ForeignKey("budgets.id"), nullable=False),
        sa.Column(
            "member_id", sa.Integer(), sa.ForeignKey("company_members.id"), nullable=False
        ),
        _money("allocated_amount", nullable=False),
        _money("spent_amount", nullable=False),
        sa.Column("period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("period_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.UniqueConstraint("budget_id", "member_id", name="uq_employee_budget_member"),
        sa.CheckConstraint("allocated_amount > 0", name="ck_employee_budget_amount_positive"),
    )
    op.create_index("ix_employee_budgets_budget_id", "employee_budgets", ["budget_id"])
    op.create_index("ix_employee_budgets_member_id", "employee_budgets", ["member_id"])

    op.create_table(
        "orders",
        *_timestamps(),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("order_number", sa.String(length=40), nullable=False, unique=True),
        _money("total_amount", nullable=False),
        _enum("status", nullable=False),
        _enum("payment_source", nullable=True),
        sa.Column("budget_id", sa.Integer(), sa.ForeignKey("budgets.id"), nullable=True),
        sa.Column(
            "employee_budget_id", sa.Integer(), sa.ForeignKey("employee_budgets.id"), nullable=True
        ),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("approved_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("order_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("idempotency_key", sa.String(length=128), nullable=True, unique=True),
        sa.CheckConstraint("total_amount >= 0", name="ck_order_total_non_negative"),
    )
    op.create_index("ix_orders_company_id", "orders", ["company_id"])
    op.create_index("ix_orders_user_id", "orders", ["user_id"])
    op.create_index("ix_orders_budget_id", "orders", ["budget_id"])
    op.create_index("ix_orders_employee_budget_id", "orders", ["employee_budget_id"])
    op.create_index("ix_orders_company_status", "orders", ["company_id", "status"])

    op.create_table(
        "order_items",
        *_timestamps(),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column(
            "product_type_id", sa.Integer(), sa.ForeignKey("product_types.id"), nullable=False
        ),
        sa.Column(
            "product_variant_id", sa.Integer(), sa.ForeignKey("product_variants.id"), nullable=False
        ),
        sa.Column("size", sa.String(length=8), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        _money("unit_price", nullable=False),
        _money("line_total", nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_order_item_quantity_positive"),
    )
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"])

    op.create_table(
        "purchase_orders",
        *_timestamps(),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("vendor_id", sa.Integer(), sa.ForeignKey("vendors.id"), nullable=False),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=False, unique=True),
        sa.Column("po_number", sa.String(length=40), nullable=False, unique=True),
        _enum("status", nullable=False),
        _money("total_amount", nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_purchase_orders_company_id", "purchase_orders", ["company_id"])
    op.create_index("ix_purchase_orders_vendor_id", "purchase_orders", ["vendor_id"])

    op.create_table(
        "purchase_order_items",
        *_timestamps(),
        sa.Column(
            "purchase_order_id", sa.Integer(), sa.ForeignKey("purchase_orders.id"), nullable=False
        ),
        sa.Column("order_item_id", sa.Integer(), sa.ForeignKey("order_items.id"), nullable=False),
        sa.Column("size", sa.String(length=8), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        _money("unit_price", nullable=False),
        _enum("status", nullable=False),
    )
    op.create_index(
        "ix_purchase_order_items_purchase_order_id", "purchase_order_items", ["purchase_order_id"]
    )

    op.create_table(
        "notifications",
        *_timestamps(),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        _enum("type", nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])

    op.create_table(
        "scheduled_tasks",
        *_timestamps(),
        sa.Column("kind", sa.String(length=64), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        _enum("status", nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_scheduled_tasks_status", "scheduled_tasks", ["status", "id"])

    op.create_table(
        "audit_logs",
        *_timestamps(),
        sa.Column("actor", sa.String(length=100), nullable=False),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity", sa.String(length=100), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=True),
        sa.Column("old_values", sa.JSON(), nullable=True),
        sa.Column("new_values", sa.JSON(), nullable=True),
        sa.Column("at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity", "entity_id"])
    op.create_index("ix_audit_logs_company_id", "audit_logs", ["company_id"])

    op.create_table(
        "scheduler_locks",
        *_timestamps(),
        sa.Column("name", sa.String(length=64), nullable=False, unique=True),
        sa.Column("owner", sa.String(length=64), nullable=False),
        sa.Column("acquired_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    for table in (
        "scheduler_locks",
        "audit_logs",
        "scheduled_tasks",
        "notifications",
        "purchase_order_items",
        "purchase_orders",
        "order_items",
        "orders",
        "employee_budgets",
        "budgets",
        "budget_periods",
        "cart_items",
        "product_variants",
        "product_types",
        "vendor_members",
        "vendors",
        "company_members",
        "companies",
        "api_keys",
        "users",
    ):
        op.drop_table(table)
