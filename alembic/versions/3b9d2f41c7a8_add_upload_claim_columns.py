"""add_upload_claim_columns

Revision ID: 3b9d2f41c7a8
Revises:
Create Date: 2026-02-02 10:12:41.318022

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import context, op

# revision identifiers, used by Alembic.
revision: str = "3b9d2f41c7a8"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def uploads_table() -> str:
    return context.config.attributes.get("uploads_table", "uploads")


def upgrade() -> None:
    """Add worker claim columns and the batch selection index to the uploads table."""
    table = uploads_table()

    # Both nullable: existing rows are unclaimed
    op.add_column(table, sa.Column("claimed_by", sa.String(length=255), nullable=True))
    op.add_column(table, sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True))

    # Batch selection: WHERE status = 'processing' ORDER BY created_at
    op.create_index(f"ix_{table}_status_created_at", table, ["status", "created_at"])


def downgrade() -> None:
    """Remove worker claim columns and the batch selection index."""
    table = uploads_table()
    op.drop_index(f"ix_{table}_status_created_at", table_name=table)
    op.drop_column(table, "claimed_at")
    op.drop_column(table, "claimed_by")
