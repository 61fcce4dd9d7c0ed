"""Add contact_rate_windows table for the database rate limit backend.

Revision ID: 20261019_01
Revises:
Create Date: 2026-10-19 00:00:00
"""

# pylint: disable=invalid-name,missing-module-docstring

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "20261019_01"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create the rate window table unless create_all already did."""
    # No live connection to inspect when rendering SQL (--sql)
    if not op.get_context().as_sql:
        if sa.inspect(op.get_bind()).has_table("contact_rate_windows"):
            return

    op.create_table(
        "contact_rate_windows",
        sa.Column("identity", sa.String(length=255), primary_key=True),
        sa.Column("window_start_ms", sa.BigInteger(), nullable=False),
        sa.Column("submissions", sa.Text(), nullable=False, server_default="[]"),
    )
    op.create_index(
        "ix_contact_rate_windows_window_start_ms",
        "contact_rate_windows",
        ["window_start_ms"],
    )


def downgrade():
    """Drop the rate window table."""
    op.drop_index(
        "ix_contact_rate_windows_window_start_ms", table_name="contact_rate_windows"
    )
    op.drop_table("contact_rate_windows")
