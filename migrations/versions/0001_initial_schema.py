"""initial schema: users/rbac, audit, products, crops

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-17 09:12:41.318204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create every table; skips tables that already exist."""
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    existing_tables = set(inspector.get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("username", sa.String(64), nullable=False, unique=True),
            sa.Column("email", sa.String(320), nullable=False, unique=True),
            sa.Column("password_hash", sa.String(255), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )

    if "roles" not in existing_tables:
        op.create_table(
            "roles",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("key", sa.String(64), nullable=False, unique=True),
            sa.Column("name", sa.String(128), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )

    if "permissions" not in existing_tables:
        op.create_table(
            "permissions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("key", sa.String(128), nullable=False, unique=True),
            sa.Column("name", sa.String(128), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )

    if "user_roles" not in existing_tables:
        op.create_table(
            "user_roles",
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
            sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
        )

    if "role_permissions" not in existing_tables:
        op.create_table(
            "role_permissions",
            sa.Column("role_id", sa.Integer(), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
            sa.Column(
                "permission_id", sa.Integer(), sa.ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True
            ),
        )

    if "audit_events" not in existing_tables:
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("request_id", sa.String(64), nullable=True),
            sa.Column("client_ip", sa.String(64), nullable=True),
            sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("actor_user_email", sa.String(320), nullable=True),
            sa.Column("action", sa.String(128), nullable=False),
            sa.Column("entity_type", sa.String(128), nullable=True),
            sa.Column("entity_id", sa.String(128), nullable=True),
            sa.Column("reason", sa.String(512), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
        )
        op.create_index("idx_audit_events_created_at", "audit_events", ["created_at"])
        op.create_index("idx_audit_events_action", "audit_events", ["action"])

    if "products" not in existing_tables:
        op.create_table(
            "products",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("unique_id", sa.String(64), nullable=False, unique=True),
            sa.Column("company", sa.String(255), nullable=False),
            sa.Column("brand", sa.String(255), nullable=False),
            sa.Column("product", sa.String(255), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("crop_name", sa.String(128), nullable=True),
            sa.Column("label_number", sa.String(64), nullable=True),
            sa.Column("mrp", sa.Numeric(10, 2), nullable=True),
            sa.Column("unit_sale_price", sa.Numeric(10, 2), nullable=True),
            sa.Column("net_qty", sa.String(64), nullable=True),
            sa.Column("pack_size", sa.String(64), nullable=True),
            sa.Column("no_of_pkts", sa.Numeric(12, 2), nullable=True),
            sa.Column("total_pkts", sa.Numeric(12, 2), nullable=True),
            sa.Column("remaining_quantity", sa.Numeric(12, 2), nullable=True),
            sa.Column("lot_batch", sa.String(128), nullable=True),
            sa.Column("lot_no", sa.String(128), nullable=True),
            sa.Column("stack_no", sa.String(128), nullable=True),
            sa.Column("mfg_date", sa.String(64), nullable=True),
            sa.Column("expiry_date", sa.String(64), nullable=True),
            sa.Column("date_of_test", sa.String(64), nullable=True),
            sa.Column("customer_care", sa.String(128), nullable=True),
            sa.Column("email", sa.String(320), nullable=True),
            sa.Column("company_address", sa.Text(), nullable=True),
            sa.Column("marketed_by", sa.String(255), nullable=True),
            sa.Column("location", sa.String(255), nullable=True),
            sa.Column("from_location", sa.String(255), nullable=True),
            sa.Column("to_location", sa.String(255), nullable=True),
            sa.Column("marketing_code", sa.String(64), nullable=True),
            sa.Column("unit_of_measure_code", sa.String(64), nullable=True),
            sa.Column("market_code", sa.String(64), nullable=True),
            sa.Column("prod_code", sa.String(64), nullable=True),
            sa.Column("stage_code", sa.String(64), nullable=True),
            sa.Column("normal_germination", sa.Numeric(6, 2), nullable=True),
            sa.Column("ger_ave", sa.Numeric(6, 2), nullable=True),
            sa.Column("got_percent", sa.Numeric(6, 2), nullable=True),
            sa.Column("got_ave", sa.Numeric(6, 2), nullable=True),
            sa.Column("gb", sa.String(64), nullable=True),
            sa.Column("brochure_url", sa.String(512), nullable=True),
            sa.Column("brochure_filename", sa.String(255), nullable=True),
            sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
            sa.Column("submission_date", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("approval_date", sa.DateTime(), nullable=True),
            sa.Column(
                "submitted_by_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
            ),
            sa.Column(
                "approved_by_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
            ),
            sa.Column("rejection_reason", sa.Text(), nullable=True),
        )
        op.create_index("idx_products_status", "products", ["status"])
        op.create_index("idx_products_submitted_by", "products", ["submitted_by_user_id"])
        op.create_index("idx_products_submission_date", "products", ["submission_date"])

    if "crops" not in existing_tables:
        op.create_table(
            "crops",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(128), nullable=False, unique=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )

    if "varieties" not in existing_tables:
        op.create_table(
            "varieties",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("crop_id", sa.Integer(), sa.ForeignKey("crops.id", ondelete="CASCADE"), nullable=False),
            sa.Column("code", sa.String(128), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.UniqueConstraint("crop_id", "code", name="uq_varieties_crop_code"),
        )
        op.create_index("ix_varieties_crop_id", "varieties", ["crop_id"])

    if "variety_urls" not in existing_tables:
        op.create_table(
            "variety_urls",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("crop_id", sa.Integer(), sa.ForeignKey("crops.id", ondelete="CASCADE"), nullable=False),
            sa.Column("variety_id", sa.Integer(), sa.ForeignKey("varieties.id", ondelete="CASCADE"), nullable=False),
            sa.Column("url", sa.String(1024), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.UniqueConstraint("crop_id", "variety_id", name="uq_variety_urls_crop_variety"),
        )


def downgrade() -> None:
    """Drop every table (reverse dependency order)."""
    for table in (
        "variety_urls",
        "varieties",
        "crops",
        "products",
        "audit_events",
        "role_permissions",
        "user_roles",
        "permissions",
        "roles",
        "users",
    ):
        op.drop_table(table)
