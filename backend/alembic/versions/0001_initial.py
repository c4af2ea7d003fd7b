"""initial control tower schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00

"""
from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(soft_delete: bool = True) -> list[sa.Column]:
    columns = [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]
    if soft_delete:
        columns.append(sa.Column("deleted_at", sa.DateTime(), nullable=True))
    return columns


def upgrade() -> None:
    op.create_table(
        "products",
        sa.Column("product_id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("product_owner", sa.String(100), nullable=True),
        sa.Column("engineering_owner", sa.String(100), nullable=True),
        sa.Column("delivery_lead", sa.String(100), nullable=True),
        sa.Column("next_release_date", sa.Date(), nullable=True),
        sa.Column("is_adapter", sa.Boolean(), nullable=False),
        sa.Column("adapter_services", sa.JSON(), nullable=False),
        sa.Column("notification_emails", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        "clients",
        sa.Column("client_id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("comments", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "deployments",
        sa.Column("deployment_id", sa.Uuid(), primary_key=True),
        sa.Column("product_id", sa.Uuid(), sa.ForeignKey("products.product_id"), nullable=False),
        sa.Column("product_name", sa.String(200), nullable=False),
        sa.Column("client_ids", sa.JSON(), nullable=False),
        sa.Column("client_names", sa.JSON(), nullable=False),
        sa.Column("client_id", sa.Uuid(), nullable=False),
        sa.Column("client_name", sa.String(200), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("deployment_type", sa.String(20), nullable=False),
        sa.Column("environment", sa.String(20), nullable=True),
        sa.Column("owner", sa.String(100), nullable=True),
        sa.Column("next_delivery_date", sa.Date(), nullable=True),
        sa.Column("feature_name", sa.String(200), nullable=True),
        sa.Column("release_items", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("equipment_sa_status", sa.String(20), nullable=False),
        sa.Column("equipment_se_status", sa.String(20), nullable=False),
        sa.Column("mapping_status", sa.String(20), nullable=False),
        sa.Column("construction_status", sa.String(20), nullable=False),
        sa.Column("status_history", sa.JSON(), nullable=False),
        sa.Column("blocked_comments", sa.JSON(), nullable=False),
        sa.Column("notification_emails", sa.JSON(), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        "checklist_templates",
        sa.Column("template_id", sa.Uuid(), primary_key=True),
        sa.Column("key", sa.String(50), nullable=False, unique=True),
        sa.Column("label", sa.String(200), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        "checklist_items",
        sa.Column("item_id", sa.Uuid(), primary_key=True),
        sa.Column(
            "deployment_id",
            sa.Uuid(),
            sa.ForeignKey("deployments.deployment_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("label", sa.String(200), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("is_completed", sa.Boolean(), nullable=False),
        *_timestamps(soft_delete=False),
    )
    op.create_index("ix_checklist_items_deployment_id", "checklist_items", ["deployment_id"])
    op.create_table(
        "approvals",
        sa.Column("approval_id", sa.Uuid(), primary_key=True),
        sa.Column("deployment_id", sa.Uuid(), sa.ForeignKey("deployments.deployment_id"), nullable=False),
        sa.Column("deployment_name", sa.String(200), nullable=True),
        sa.Column("product_id", sa.Uuid(), nullable=True),
        sa.Column("product_name", sa.String(200), nullable=True),
        sa.Column("client_id", sa.Uuid(), nullable=True),
        sa.Column("client_name", sa.String(200), nullable=True),
        sa.Column("requested_by", sa.String(100), nullable=False),
        sa.Column("requested_by_name", sa.String(100), nullable=True),
        sa.Column("requested_at", sa.DateTime(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("reviewed_by", sa.String(100), nullable=True),
        sa.Column("reviewed_by_name", sa.String(100), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(), nullable=True),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        *_timestamps(soft_delete=False),
    )
    op.create_index("ix_approvals_deployment_id", "approvals", ["deployment_id"])
    op.create_index("ix_approvals_status", "approvals", ["status"])
    op.create_table(
        "audit_logs",
        sa.Column("seq", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("audit_id", sa.Uuid(), nullable=False, unique=True),
        sa.Column("user_id", sa.String(100), nullable=True),
        sa.Column("user_name", sa.String(100), nullable=True),
        sa.Column("user_email", sa.String(255), nullable=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("resource_type", sa.String(50), nullable=True),
        sa.Column("resource_id", sa.String(100), nullable=True),
        sa.Column("resource_name", sa.String(200), nullable=True),
        sa.Column("changes", sa.JSON(), nullable=True),
        sa.Column("meta", sa.JSON(), nullable=False),
        sa.Column("occurred_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])
    op.create_index("ix_audit_logs_occurred_at", "audit_logs", ["occurred_at"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("approvals")
    op.drop_table("checklist_items")
    op.drop_table("checklist_templates")
    op.drop_table("deployments")
    op.drop_table("clients")
    op.drop_table("products")
