"""Add leads.google_review_requested_at

Revision ID: 8c2e4b7a91d5
Revises: 3f1a6c0d8e21
Create Date: 2026-10-18 14:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8c2e4b7a91d5'
down_revision: Union[str, Sequence[str], None] = '3f1a6c0d8e21'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.add_column('leads', sa.Column('google_review_requested_at', sa.DateTime(timezone=True), nullable=True))


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_column('leads', 'google_review_requested_at')
