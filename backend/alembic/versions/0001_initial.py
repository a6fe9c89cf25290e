"""initial schema: sellers, shoppers, orders, subscriptions and payments

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    ]


def _subscription_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer(), primary_key=True),
        *_timestamps(),
        sa.Column("external_id", sa.String(length=64), nullable=True),
        sa.Column("plan_name", sa.String(), nullable=False),
        sa.Column("value", sa.Float(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("cycle", sa.String(length=16), nullable=False, server_default="MONTHLY"),
        sa.Column("billing_type", sa.String(length=16), nullable=False, server_default="PIX"),
        sa.Column("next_due_date", sa.Date(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.DateTime(), nullable=True),
        sa.Column("meta_data", sa.JSON(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "sellers",
        sa.Column("id", sa.Integer(), primary_key=True),
        *_timestamps(),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("tax_id", sa.String(length=18), nullable=True),
        sa.Column("store_info", sa.JSON(), nullable=True),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("address_number", sa.String(length=16), nullable=True),
        sa.Column("province", sa.String(), nullable=True),
        sa.Column("postal_code", sa.String(length=9), nullable=True),
        sa.Column("payments_customer_id", sa.String(length=64), nullable=True),
        sa.Column("subaccount_api_key", sa.String(), nullable=True),
        sa.Column("app_status", sa.String(length=32), nullable=True),
        sa.Column("payments_status", sa.String(length=32), nullable=True),
        sa.Column("payments_last_update", sa.DateTime(), nullable=True),
        sa.Column("payments_next_due", sa.Date(), nullable=True),
    )
    op.create_index("ix_sellers_email", "sellers", ["email"])
    op.create_index("ix_sellers_tax_id", "sellers", ["tax_id"])
    op.create_index("ix_sellers_payments_customer_id", "sellers", ["payments_customer_id"])

    op.create_table(
        "shoppers",
        sa.Column("id", sa.Integer(), primary_key=True),
        *_timestamps(),
        sa.Column("seller_id", sa.Integer(), sa.ForeignKey("sellers.id"), nullable=True),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("tax_id", sa.String(length=18), nullable=True),
        sa.Column("mobile_phone", sa.String(length=32), nullable=True),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("address_number", sa.String(length=16), nullable=True),
        sa.Column("province", sa.String(), nullable=True),
        sa.Column("postal_code", sa.String(length=9), nullable=True),
        sa.Column("payments_customer_id", sa.String(length=64), nullable=True),
    )
    op.create_index("ix_shoppers_seller_id", "shoppers", ["seller_id"])
    op.create_index("ix_shoppers_email", "shoppers", ["email"])
    op.create_index("ix_shoppers_tax_id", "shoppers", ["tax_id"])
    op.create_index("ix_shoppers_payments_customer_id", "shoppers", ["payments_customer_id"])

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        *_timestamps(),
        sa.Column("seller_id", sa.Integer(), sa.ForeignKey("sellers.id"), nullable=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("price", sa.Float(), nullable=True),
        sa.Column("cycle", sa.String(length=16), nullable=True),
        sa.Column("subscription_price", sa.Float(), nullable=True),
        sa.Column("subscription_discount_percent", sa.Float(), nullable=True),
    )
    op.create_index("ix_products_seller_id", "products", ["seller_id"])

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        *_timestamps(),
        sa.Column("seller_id", sa.Integer(), sa.ForeignKey("sellers.id"), nullable=True),
        sa.Column("shopper_id", sa.Integer(), sa.ForeignKey("shoppers.id"), nullable=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=True),
        sa.Column("value", sa.Float(), nullable=True),
        sa.Column("cycle", sa.String(length=16), nullable=True),
        sa.Column("billing_type", sa.String(length=16), nullable=True),
        sa.Column("next_due_date", sa.Date(), nullable=True),
        sa.Column("external_id", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
    )
    op.create_index("ix_orders_seller_id", "orders", ["seller_id"])
    op.create_index("ix_orders_shopper_id", "orders", ["shopper_id"])
    op.create_index("ix_orders_external_id", "orders", ["external_id"])

    op.create_table(
        "seller_subscriptions",
        *_subscription_columns(),
        sa.Column("seller_id", sa.Integer(), sa.ForeignKey("sellers.id"), nullable=False),
        sa.Column("features", sa.JSON(), nullable=True),
    )
    op.create_index("ix_seller_subscriptions_seller_id", "seller_subscriptions", ["seller_id"])
    op.create_index("ix_seller_subscriptions_external_id", "seller_subscriptions", ["external_id"])
    op.create_index("ix_seller_subscriptions_status", "seller_subscriptions", ["status"])
    op.create_index("ix_seller_subscriptions_deleted_at", "seller_subscriptions", ["deleted_at"])

    op.create_table(
        "shopper_subscriptions",
        *_subscription_columns(),
        sa.Column("shopper_id", sa.Integer(), sa.ForeignKey("shoppers.id"), nullable=False),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=False),
    )
    op.create_index("ix_shopper_subscriptions_shopper_id", "shopper_subscriptions", ["shopper_id"])
    op.create_index("ix_shopper_subscriptions_external_id", "shopper_subscriptions", ["external_id"])
    op.create_index("ix_shopper_subscriptions_status", "shopper_subscriptions", ["status"])
    op.create_index("ix_shopper_subscriptions_deleted_at", "shopper_subscriptions", ["deleted_at"])
    op.create_index(
        "uq_shopper_subscriptions_order_active",
        "shopper_subscriptions",
        ["order_id"],
        unique=True,
        sqlite_where=sa.text("deleted_at IS NULL"),
        postgresql_where=sa.text("deleted_at IS NULL"),
    )

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        *_timestamps(),
        sa.Column("external_id", sa.String(length=64), nullable=False),
        sa.Column("payable_type", sa.String(length=32), nullable=False),
        sa.Column("payable_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("value", sa.Float(), nullable=True),
        sa.Column("net_value", sa.Float(), nullable=True),
        sa.Column("billing_type", sa.String(length=16), nullable=True),
        sa.Column("payment_date", sa.Date(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("invoice_url", sa.String(), nullable=True),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("transaction_data", sa.JSON(), nullable=True),
    )
    op.create_index("ix_payments_external_id", "payments", ["external_id"], unique=True)
    op.create_index("ix_payments_payable_id", "payments", ["payable_id"])


def downgrade() -> None:
    op.drop_table("payments")
    op.drop_index("uq_shopper_subscriptions_order_active", table_name="shopper_subscriptions")
    op.drop_table("shopper_subscriptions")
    op.drop_table("seller_subscriptions")
    op.drop_table("orders")
    op.drop_table("products")
    op.drop_table("shoppers")
    op.drop_table("sellers")
