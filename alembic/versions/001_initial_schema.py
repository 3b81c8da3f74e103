"""Initial schema: purchase_orders, timeline_entries, iot_events, alerts.

Revision ID: 001
Revises:
Create Date: 2026-10-12

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "purchase_orders",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("po_number", sa.String(64), nullable=False, unique=True, index=True),
        sa.Column("product_name", sa.String(256), nullable=False, server_default=""),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(32), nullable=False, index=True, server_default="yarn_sourcing"),
        sa.Column("risk_score", sa.Float(), nullable=False, server_default="0"),
        sa.Column("risk_level", sa.String(16), nullable=True),
        sa.Column("delay_probability", sa.Float(), nullable=False, server_default="0"),
        sa.Column("estimated_delay_days", sa.Float(), nullable=False, server_default="0"),
        sa.Column("qa_score", sa.Float(), nullable=True),
        sa.Column("organic_cotton", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("esg_certified", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("yarn_supplier", sa.String(256), nullable=True),
        sa.Column("factory", sa.String(256), nullable=True),
        sa.Column("shipment_vessel", sa.String(128), nullable=True),
        sa.Column("ai_insight", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        "timeline_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("po_id", sa.String(64), sa.ForeignKey("purchase_orders.id"), nullable=False, index=True),
        sa.Column("stage", sa.String(32), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="in_progress"),
        sa.Column("date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("location", sa.String(256), nullable=True),
        sa.Column("supplier", sa.String(256), nullable=True),
        sa.Column("insight", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        "iot_events",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("po_id", sa.String(64), nullable=True, index=True),
        sa.Column("metric_type", sa.String(64), nullable=False, index=True),
        sa.Column("metric_value", sa.Float(), nullable=False),
        sa.Column("metric_unit", sa.String(32), nullable=False, server_default=""),
        sa.Column("location", sa.String(256), nullable=False, server_default=""),
        sa.Column("source", sa.String(64), nullable=False, server_default="factory_machine"),
        sa.Column("status", sa.String(16), nullable=False, server_default="normal"),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, index=True),
    )
    op.create_table(
        "alerts",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("severity", sa.String(16), nullable=False),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("suggested_action", sa.Text(), nullable=True),
        sa.Column("affected_pos", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("created_date", sa.DateTime(timezone=True), server_default=sa.func.now(), index=True),
    )


def downgrade() -> None:
    op.drop_table("alerts")
    op.drop_table("iot_events")
    op.drop_table("timeline_entries")
    op.drop_table("purchase_orders")
