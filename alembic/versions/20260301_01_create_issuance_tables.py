"""Create customers, templates and certificates tables.

Revision ID: 20260301_01
Revises:
Create Date: 2026-03-01 00:00:00
"""

# pylint: disable=invalid-name,missing-module-docstring

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "20260301_01"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade():
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not inspector.has_table("customers"):
        op.create_table(
            "customers",
            sa.Column("id", sa.CHAR(length=36), primary_key=True),
            sa.Column("email", sa.String(length=320), nullable=False),
            sa.Column("hashed_password", sa.String(length=1024), nullable=False),
            sa.Column(
                "is_active", sa.Boolean(), nullable=False, server_default=sa.true()
            ),
            sa.Column(
                "is_superuser", sa.Boolean(), nullable=False, server_default=sa.false()
            ),
            sa.Column(
                "is_verified", sa.Boolean(), nullable=False, server_default=sa.false()
            ),
            sa.Column("company_name", sa.String(length=255), nullable=False),
            sa.Column("api_key", sa.String(length=128), nullable=False),
            sa.Column("hashed_api_secret", sa.String(length=1024), nullable=False),
            sa.Column("contact_person", sa.String(length=255), nullable=True),
            sa.Column("phone", sa.String(length=64), nullable=True),
            *_timestamps(),
            sa.UniqueConstraint("company_name", name="uq_customers_company_name"),
        )
        op.create_index("ix_customers_email", "customers", ["email"], unique=True)
        op.create_index("ix_customers_api_key", "customers", ["api_key"], unique=True)

    if not inspector.has_table("templates"):
        op.create_table(
            "templates",
            sa.Column("id", sa.CHAR(length=36), primary_key=True),
            sa.Column(
                "customer_id",
                sa.CHAR(length=36),
                sa.ForeignKey("customers.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("content", sa.JSON(), nullable=False),
            sa.Column("placeholders", sa.JSON(), nullable=False),
            sa.Column("styling", sa.JSON(), nullable=True),
            sa.Column(
                "is_active", sa.Boolean(), nullable=False, server_default=sa.true()
            ),
            *_timestamps(),
        )
        op.create_index("ix_templates_customer_id", "templates", ["customer_id"])

    if not inspector.has_table("certificates"):
        op.create_table(
            "certificates",
            sa.Column("id", sa.CHAR(length=36), primary_key=True),
            sa.Column("certificate_number", sa.String(length=64), nullable=False),
            sa.Column(
                "template_id",
                sa.CHAR(length=36),
                sa.ForeignKey("templates.id", ondelete="RESTRICT"),
                nullable=False,
            ),
            sa.Column(
                "customer_id",
                sa.CHAR(length=36),
                sa.ForeignKey("customers.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("data", sa.JSON(), nullable=False),
            sa.Column("signature", sa.String(length=128), nullable=False),
            sa.Column("verification_token", sa.String(length=255), nullable=False),
            sa.Column("file_path", sa.String(length=1024), nullable=True),
            sa.Column(
                "status", sa.String(length=20), nullable=False, server_default="draft"
            ),
            sa.Column("issued_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("metadata", sa.JSON(), nullable=True),
            *_timestamps(),
            sa.UniqueConstraint("signature", name="uq_certificates_signature"),
        )
        op.create_index(
            "ix_certificates_certificate_number",
            "certificates",
            ["certificate_number"],
            unique=True,
        )
        op.create_index(
            "ix_certificates_verification_token",
            "certificates",
            ["verification_token"],
            unique=True,
        )
        op.create_index("ix_certificates_template_id", "certificates", ["template_id"])
        op.create_index("ix_certificates_customer_id", "certificates", ["customer_id"])
        op.create_index("ix_certificates_status", "certificates", ["status"])
        op.create_index("ix_certificates_created_at", "certificates", ["created_at"])


def downgrade():
    op.drop_table("certificates")
    op.drop_table("templates")
    op.drop_index("ix_customers_api_key", table_name="customers")
    op.drop_index("ix_customers_email", table_name="customers")
    op.drop_table("customers")
