"""create documents, document_versions, products and product_variants tables

Revision ID: e1a2b3c4d5f6
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'e1a2b3c4d5f6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- documents ---
    # structured_data is JSON, not JSONB: section key order must survive storage.
    op.create_table(
        'documents',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('file_type', sa.String(length=10), nullable=False),
        sa.Column('file_path', sa.Text(), nullable=False),
        sa.Column('size', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('language', sa.String(length=50), nullable=True),
        sa.Column('is_processed', sa.Boolean(), nullable=False,
                  server_default=sa.false()),
        sa.Column('extracted_text', sa.Text(), nullable=True),
        sa.Column('translated_text', sa.Text(), nullable=True),
        sa.Column('structured_data', sa.JSON(), nullable=True),
        sa.Column('validation_confidence', sa.Float(), nullable=True),
        sa.Column('validation_issues', sa.JSON(), nullable=True),
        sa.Column('needs_review', sa.Boolean(), nullable=False,
                  server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True),
                  server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True),
                  server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )

    # --- document_versions ---
    op.create_table(
        'document_versions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('document_id', sa.Integer(), nullable=False),
        sa.Column('version_number', sa.Integer(), nullable=False),
        sa.Column('extracted_text', sa.Text(), nullable=True),
        sa.Column('structured_data', sa.JSON(), nullable=True),
        sa.Column('validation_confidence', sa.Float(), nullable=True),
        sa.Column('validation_issues', sa.JSON(), nullable=True),
        sa.Column('needs_review', sa.Boolean(), nullable=False,
                  server_default=sa.false()),
        sa.Column('change_description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True),
                  server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['document_id'], ['documents.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'uq_document_versions_document_version', 'document_versions',
        ['document_id', 'version_number'], unique=True,
    )

    # --- products ---
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True),
                  server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True),
                  server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )

    # --- product_variants ---
    op.create_table(
        'product_variants',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('document_id', sa.Integer(), nullable=False),
        sa.Column('version_number', sa.Integer(), nullable=True),
        sa.Column('locale', sa.String(length=50), nullable=True),
        sa.Column('copy_type', sa.String(length=50), nullable=False),
        sa.Column('headlines', sa.JSON(), nullable=True),
        sa.Column('advertising_copy', sa.Text(), nullable=True),
        sa.Column('key_feature_bullets', sa.JSON(), nullable=True),
        sa.Column('legal_references', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True),
                  server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True),
                  server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['document_id'], ['documents.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_product_variants_product', 'product_variants', ['product_id'])
    op.create_index('idx_product_variants_document', 'product_variants', ['document_id'])
    op.create_index('idx_product_variants_locale', 'product_variants', ['locale'])


def downgrade() -> None:
    op.drop_index('idx_product_variants_locale', table_name='product_variants')
    op.drop_index('idx_product_variants_document', table_name='product_variants')
    op.drop_index('idx_product_variants_product', table_name='product_variants')
    op.drop_table('product_variants')
    op.drop_table('products')
    op.drop_index('uq_document_versions_document_version', table_name='document_versions')
    op.drop_table('document_versions')
    op.drop_table('documents')
