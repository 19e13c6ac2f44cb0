"""Initial Guest Sync schema.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa

revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # One row per GHL location; soft-deactivated on uninstall
    op.create_table(
        "tenant_connection",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("tenant_id", sa.String(100), nullable=False),
        sa.Column("company_id", sa.String(100)),
        sa.Column("location_name", sa.String(200)),
        sa.Column("user_email", sa.String(255)),
        sa.Column("access_token", sa.Text, nullable=False),
        sa.Column("refresh_token", sa.Text, nullable=False),
        sa.Column("token_expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("installed_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        *_timestamps(),
    )
    op.create_index("ix_tenant_connection_tenant_id", "tenant_connection", ["tenant_id"], unique=True)
    op.create_index("ix_tenant_connection_is_active", "tenant_connection", ["is_active"])

    # Access point MAC -> location
    op.create_table(
        "device_mapping",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("device_id", sa.String(32), nullable=False),
        sa.Column("tenant_id", sa.String(100), nullable=False),
        sa.Column("sub_venue_label", sa.String(200)),
        sa.Column("source_name", sa.String(200)),
        *_timestamps(),
    )
    op.create_index("ix_device_mapping_device_id", "device_mapping", ["device_id"], unique=True)
    op.create_index("ix_device_mapping_tenant_id", "device_mapping", ["tenant_id"])

    # Venue directory
    op.create_table(
        "venue",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("venue_id", sa.String(100), nullable=False),
        sa.Column("display_name", sa.String(200), nullable=False),
        sa.Column("group_name", sa.String(200)),
        sa.Column("address", sa.String(255)),
        sa.Column("owner_emails", sa.JSON),
        sa.Column("device_ids", sa.JSON),
        *_timestamps(),
    )
    op.create_index("ix_venue_venue_id", "venue", ["venue_id"], unique=True)

    # Append-only audit trail
    op.create_table(
        "sync_ledger",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("tenant_id", sa.String(100)),
        sa.Column("device_id", sa.String(32)),
        sa.Column("contact_email", sa.String(255)),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("reason", sa.String(255)),
        sa.Column("crm_contact_id", sa.String(100)),
        sa.Column("error_detail", sa.Text),
        sa.Column("sync_type", sa.String(20), nullable=False, server_default="webhook"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_sync_ledger_tenant_id", "sync_ledger", ["tenant_id"])
    op.create_index("ix_sync_ledger_created_at", "sync_ledger", ["created_at"])

    # Idempotence markers
    op.create_table(
        "synced_contact",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("tenant_id", sa.String(100), nullable=False),
        sa.Column("contact_email", sa.String(255), nullable=False),
        sa.Column("crm_contact_id", sa.String(100)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("tenant_id", "contact_email", name="uq_synced_contact_tenant_email"),
    )


def downgrade() -> None:
    op.drop_table("synced_contact")
    op.drop_index("ix_sync_ledger_created_at", table_name="sync_ledger")
    op.drop_index("ix_sync_ledger_tenant_id", table_name="sync_ledger")
    op.drop_table("sync_ledger")
    op.drop_index("ix_venue_venue_id", table_name="venue")
    op.drop_table("venue")
    op.drop_index("ix_device_mapping_tenant_id", table_name="device_mapping")
    op.drop_index("ix_device_mapping_device_id", table_name="device_mapping")
    op.drop_table("device_mapping")
    op.drop_index("ix_tenant_connection_is_active", table_name="tenant_connection")
    op.drop_index("ix_tenant_connection_tenant_id", table_name="tenant_connection")
    op.drop_table("tenant_connection")
