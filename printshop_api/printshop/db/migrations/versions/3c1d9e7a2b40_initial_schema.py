"""Initial order engine schema.

- orders, items
- chat_orders
- order_pages, pool_assignments
- order_status_events
- materials, material_moves, material_reservations, product_materials
- notification_rules, notification_logs
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3c1d9e7a2b40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

NOW = sa.text("CURRENT_TIMESTAMP")


def upgrade() -> None:
    # Orders
    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("number", sa.Text(), nullable=True),
        sa.Column("status", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("source", sa.Text(), nullable=False, server_default="manual"),
        sa.Column("customer_name", sa.Text(), nullable=True),
        sa.Column("customer_phone", sa.Text(), nullable=True),
        sa.Column("customer_email", sa.Text(), nullable=True),
        sa.Column("prepayment_amount", sa.Float(), nullable=True),
        sa.Column("prepayment_status", sa.Text(), nullable=True),
        sa.Column("payment_method", sa.Text(), nullable=True),
        sa.Column("payment_url", sa.Text(), nullable=True),
        sa.Column("payment_id", sa.Text(), nullable=True),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
    )
    op.create_index("ix_orders_number", "orders", ["number"])
    op.create_index("ix_orders_user_id", "orders", ["user_id"])
    op.create_index("ix_orders_status_updated_at", "orders", ["status", "updated_at"])

    op.create_table(
        "items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "order_id",
            sa.Integer(),
            sa.ForeignKey("orders.id", ondelete="CASCADE", name="fk_items_order_id_orders"),
            nullable=False,
        ),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("params", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("price", sa.Float(), nullable=False, server_default="0"),
        sa.Column("quantity", sa.Float(), nullable=False, server_default="1"),
        sa.Column("printer_id", sa.Integer(), nullable=True),
        sa.Column("sides", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("sheets", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("waste", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("clicks", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_items_order_id", "items", ["order_id"])

    # Chat channel
    op.create_table(
        "chat_orders",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("chat_id", sa.Text(), nullable=True),
        sa.Column("username", sa.Text(), nullable=True),
        sa.Column("first_name", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("selected_size", sa.Text(), nullable=True),
        sa.Column("processing_options", sa.Text(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("total_price", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
    )
    op.create_index("ix_chat_orders_status_updated_at", "chat_orders", ["status", "updated_at"])

    # Order pool
    op.create_table(
        "order_pages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
    )
    op.create_index("ix_order_pages_user_id", "order_pages", ["user_id"])

    op.create_table(
        "pool_assignments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "page_id",
            sa.Integer(),
            sa.ForeignKey("order_pages.id", ondelete="CASCADE", name="fk_pool_assignments_page_id_order_pages"),
            nullable=False,
        ),
        sa.Column("order_type", sa.Text(), nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
    )
    op.create_index("ix_pool_assignments_page_id", "pool_assignments", ["page_id"])

    op.create_table(
        "order_status_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("order_type", sa.Text(), nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("from_status", sa.Integer(), nullable=True),
        sa.Column("to_status", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
    )
    op.create_index("ix_order_status_events_order_id", "order_status_events", ["order_id"])

    # Inventory
    op.create_table(
        "materials",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("unit", sa.Text(), nullable=True),
        sa.Column("quantity", sa.Float(), nullable=False, server_default="0"),
        sa.Column("min_quantity", sa.Float(), nullable=True),
    )

    op.create_table(
        "material_moves",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "material_id",
            sa.Integer(),
            sa.ForeignKey("materials.id", ondelete="CASCADE", name="fk_material_moves_material_id_materials"),
            nullable=False,
        ),
        sa.Column("delta", sa.Float(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("order_id", sa.Integer(), nullable=True),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
    )
    op.create_index("ix_material_moves_material_id", "material_moves", ["material_id"])

    op.create_table(
        "material_reservations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "material_id",
            sa.Integer(),
            sa.ForeignKey(
                "materials.id", ondelete="CASCADE", name="fk_material_reservations_material_id_materials"
            ),
            nullable=False,
        ),
        sa.Column(
            "order_id",
            sa.Integer(),
            sa.ForeignKey("orders.id", ondelete="CASCADE", name="fk_material_reservations_order_id_orders"),
            nullable=True,
        ),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_material_reservations_material_id", "material_reservations", ["material_id"])
    op.create_index("ix_material_reservations_order_id", "material_reservations", ["order_id"])

    op.create_table(
        "product_materials",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("preset_category", sa.Text(), nullable=False),
        sa.Column("preset_description", sa.Text(), nullable=False),
        sa.Column(
            "material_id",
            sa.Integer(),
            sa.ForeignKey("materials.id", ondelete="CASCADE", name="fk_product_materials_material_id_materials"),
            nullable=False,
        ),
        sa.Column("qty_per_item", sa.Float(), nullable=False),
    )
    op.create_index("ix_product_materials_preset_category", "product_materials", ["preset_category"])

    # Notifications
    op.create_table(
        "notification_rules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("order_type", sa.Text(), nullable=False),
        sa.Column("status_from", sa.Integer(), nullable=True),
        sa.Column("status_to", sa.Integer(), nullable=False),
        sa.Column("delay_hours", sa.Integer(), nullable=True),
        sa.Column("message_template", sa.Text(), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
    )

    op.create_table(
        "notification_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("order_type", sa.Text(), nullable=False),
        sa.Column(
            "rule_id",
            sa.Integer(),
            sa.ForeignKey("notification_rules.id", name="fk_notification_logs_rule_id_notification_rules"),
            nullable=False,
        ),
        sa.Column("message", sa.Text(), nullable=False, server_default=""),
        sa.Column("sent_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.UniqueConstraint("order_id", "order_type", "rule_id", name="uq_notification_logs_order_rule"),
    )
    op.create_index("ix_notification_logs_sent_at", "notification_logs", ["sent_at"])


def downgrade() -> None:
    # Drop tables in reverse dependency order
    op.drop_table("notification_logs")
    op.drop_table("notification_rules")
    op.drop_table("product_materials")
    op.drop_table("material_reservations")
    op.drop_table("material_moves")
    op.drop_table("materials")
    op.drop_table("order_status_events")
    op.drop_table("pool_assignments")
    op.drop_table("order_pages")
    op.drop_table("chat_orders")
    op.drop_table("items")
    op.drop_table("orders")
