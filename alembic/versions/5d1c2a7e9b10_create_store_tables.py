"""create_store_tables

Revision ID: 5d1c2a7e9b10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "5d1c2a7e9b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

order_status = sa.Enum(
    "pending_payment",
    "processing",
    "shipped",
    "delivered",
    "cancelled",
    name="store_order_status_enum",
)
payment_status = sa.Enum(
    "pending", "paid", "failed", "refunded", name="store_payment_status_enum"
)
address_type = sa.Enum("shipping", "billing", name="store_address_type_enum")
audit_entity_type = sa.Enum(
    "product", "category", "order", name="store_audit_entity_type_enum"
)


def upgrade() -> None:
    """Upgrade schema - Create catalog, cart, address, order and audit tables."""

    op.create_table(
        "store_categories",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_path", sa.String(512), nullable=True),
        sa.Column("sort_order", sa.Integer(), server_default="0", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug"),
    )

    op.create_table(
        "store_products",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("category_id", sa.Uuid(), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("sku", sa.String(100), nullable=False),
        sa.Column("brand", sa.String(100), nullable=True),
        sa.Column("movement_type", sa.String(100), nullable=True),
        sa.Column("image_path", sa.String(512), nullable=True),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("stock_quantity", sa.Integer(), server_default="0", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("stock_quantity >= 0", name="non_negative_stock"),
        sa.CheckConstraint("price >= 0", name="non_negative_price"),
        sa.ForeignKeyConstraint(
            ["category_id"], ["store_categories.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug"),
        sa.UniqueConstraint("sku"),
    )

    op.create_table(
        "store_addresses",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(255), nullable=True),
        sa.Column("type", address_type, nullable=False),
        sa.Column("first_name", sa.String(255), nullable=False),
        sa.Column("last_name", sa.String(255), nullable=False),
        sa.Column("company", sa.String(255), nullable=True),
        sa.Column("address_line_1", sa.String(255), nullable=False),
        sa.Column("address_line_2", sa.String(255), nullable=True),
        sa.Column("city", sa.String(255), nullable=False),
        sa.Column("state", sa.String(255), nullable=False),
        sa.Column("postal_code", sa.String(20), nullable=False),
        sa.Column("country", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column(
            "is_default", sa.Boolean(), server_default=sa.false(), nullable=False
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_store_addresses_user_id", "store_addresses", ["user_id"])
    op.create_index(
        "ix_store_addresses_user_type_default",
        "store_addresses",
        ["user_id", "type", "is_default"],
    )

    op.create_table(
        "store_carts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.String(255), nullable=True),
        sa.Column("session_id", sa.String(255), nullable=True),
        sa.Column(
            "total_amount", sa.Numeric(12, 2), server_default="0", nullable=False
        ),
        sa.Column("total_items", sa.Integer(), server_default="0", nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "(user_id IS NULL) <> (session_id IS NULL)",
            name="cart_exactly_one_owner",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id"),
    )
    op.create_index("ix_store_carts_session_id", "store_carts", ["session_id"])

    op.create_table(
        "store_cart_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("cart_id", sa.Uuid(), nullable=False),
        sa.Column("product_id", sa.Uuid(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("quantity > 0", name="positive_quantity"),
        sa.ForeignKeyConstraint(["cart_id"], ["store_carts.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["product_id"], ["store_products.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("cart_id", "product_id", name="unique_cart_product"),
    )

    op.create_table(
        "store_orders",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("order_number", sa.String(20), nullable=False),
        sa.Column("user_id", sa.String(255), nullable=True),
        sa.Column("guest_email", sa.String(255), nullable=True),
        sa.Column("shipping_address_id", sa.Uuid(), nullable=False),
        sa.Column("billing_address_id", sa.Uuid(), nullable=True),
        sa.Column("subtotal_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "shipping_cost", sa.Numeric(12, 2), server_default="0", nullable=False
        ),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("shipping_method_name", sa.String(100), nullable=True),
        sa.Column(
            "status", order_status, server_default="pending_payment", nullable=False
        ),
        sa.Column(
            "payment_status", payment_status, server_default="pending", nullable=False
        ),
        sa.Column("payment_gateway", sa.String(50), nullable=True),
        sa.Column("payment_id", sa.String(100), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("shipped_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "(user_id IS NULL) <> (guest_email IS NULL)",
            name="order_exactly_one_customer",
        ),
        sa.ForeignKeyConstraint(
            ["shipping_address_id"], ["store_addresses.id"], ondelete="RESTRICT"
        ),
        sa.ForeignKeyConstraint(
            ["billing_address_id"], ["store_addresses.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_store_orders_order_number", "store_orders", ["order_number"], unique=True
    )
    op.create_index("ix_store_orders_user_id", "store_orders", ["user_id"])
    op.create_index("ix_store_orders_payment_id", "store_orders", ["payment_id"])
    op.create_index(
        "ix_store_orders_user_created", "store_orders", ["user_id", "created_at"]
    )

    op.create_table(
        "store_order_items",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("order_id", sa.Uuid(), nullable=False),
        sa.Column("product_id", sa.Uuid(), nullable=True),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("price_per_unit", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("quantity > 0", name="positive_order_quantity"),
        sa.ForeignKeyConstraint(
            ["order_id"], ["store_orders.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["product_id"], ["store_products.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "store_audit_logs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("entity_type", audit_entity_type, nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("old_value", sa.JSON(), nullable=True),
        sa.Column("new_value", sa.JSON(), nullable=True),
        sa.Column("performed_by", sa.String(255), nullable=False),
        sa.Column("performed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_store_audit_logs_entity", "store_audit_logs", ["entity_type", "entity_id"]
    )
    op.create_index(
        "ix_store_audit_logs_performed_at", "store_audit_logs", ["performed_at"]
    )


def downgrade() -> None:
    """Downgrade schema - Drop store tables."""
    op.drop_table("store_audit_logs")
    op.drop_table("store_order_items")
    op.drop_table("store_orders")
    op.drop_table("store_cart_items")
    op.drop_table("store_carts")
    op.drop_table("store_addresses")
    op.drop_table("store_products")
    op.drop_table("store_categories")

    bind = op.get_bind()
    for enum_type in (audit_entity_type, address_type, payment_status, order_status):
        enum_type.drop(bind, checkfirst=True)
