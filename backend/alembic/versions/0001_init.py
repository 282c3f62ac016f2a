"""registrations, app settings and audit log

Revision ID: 0001_init
Revises:
Create Date: 2025-01-10 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "registrations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("kit_number", sa.String(length=32), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("whatsapp_number", sa.String(length=64), nullable=False),
        sa.Column("car_number_plate", sa.String(length=64), nullable=False),
        sa.Column("house", sa.String(length=128), nullable=False),
        sa.Column("profession", sa.String(length=255), nullable=False),
        sa.Column("postal_address", sa.Text(), nullable=False),
        sa.Column("attend_gala", sa.String(length=32), nullable=False),
        sa.Column("morale", sa.String(length=255), nullable=False),
        sa.Column("excited_for_gala", sa.String(length=255), nullable=False),
        sa.Column("photo_url", sa.String(length=1024), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("kit_number"),
    )
    op.create_index("ix_registrations_id", "registrations", ["id"])
    op.create_index("ix_registrations_created_at", "registrations", ["created_at"])

    op.create_table(
        "app_settings",
        sa.Column("key", sa.String(length=128), primary_key=True),
        sa.Column("value", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("actor", sa.String(length=64), nullable=True),
        sa.Column("ip", sa.String(length=45), nullable=True),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("object_type", sa.String(length=64), nullable=True),
        sa.Column("object_id", sa.Integer(), nullable=True),
        sa.Column("meta_json", sa.JSON(), nullable=True),
    )
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_audit_log_created_at", table_name="audit_log")
    op.drop_table("audit_log")
    op.drop_table("app_settings")
    op.drop_index("ix_registrations_created_at", table_name="registrations")
    op.drop_index("ix_registrations_id", table_name="registrations")
    op.drop_table("registrations")
