"""add month, year and is_original to documents

Revision ID: f2b3c4d5e6a7
Revises: e1a2b3c4d5f6
Create Date: 2026-10-18 15:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'f2b3c4d5e6a7'
down_revision: Union[str, None] = 'e1a2b3c4d5f6'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column('documents', sa.Column('month', sa.String(length=20), nullable=True))
    op.add_column('documents', sa.Column('year', sa.String(length=4), nullable=True))
    op.add_column(
        'documents',
        sa.Column('is_original', sa.Boolean(), nullable=False, server_default=sa.false()),
    )


def downgrade() -> None:
    op.drop_column('documents', 'is_original')
    op.drop_column('documents', 'year')
    op.drop_column('documents', 'month')
