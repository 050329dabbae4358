"""Create uploads, snapshot_records and master_list tables

Revision ID: a1c4e7d2b9f0
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1c4e7d2b9f0'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MANIFEST_COLUMNS = [
    'container', 'seal_number', 'carrier', 'mbl', 'mi', 'vessel', 'hb',
    'outer_quantity', 'pcs', 'wt_lbs', 'cnee', 'frl', 'file_no', 'dest',
    'volume', 'vbond', 'tdf',
]


def _manifest_columns(skip=()):
    return [sa.Column(name, sa.String(), nullable=True) for name in MANIFEST_COLUMNS if name not in skip]


def upgrade() -> None:
    """Create the ingestion tables."""
    op.create_table(
        'uploads',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('upload_id', sa.String(length=32), nullable=False),
        sa.Column('filename', sa.String(), nullable=False),
        sa.Column('row_count', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_uploads_id', 'uploads', ['id'])
    op.create_index('ix_uploads_upload_id', 'uploads', ['upload_id'], unique=True)
    op.create_index('ix_uploads_created_at', 'uploads', ['created_at'])

    op.create_table(
        'snapshot_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column(
            'upload_id',
            sa.String(length=32),
            sa.ForeignKey('uploads.upload_id', ondelete='CASCADE'),
            nullable=False,
        ),
        *_manifest_columns(),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_snapshot_records_id', 'snapshot_records', ['id'])
    op.create_index('ix_snapshot_records_upload_id', 'snapshot_records', ['upload_id'])
    op.create_index('ix_snapshot_records_hb', 'snapshot_records', ['hb'])
    op.create_index('ix_snapshot_records_mbl', 'snapshot_records', ['mbl'])
    op.create_index('ix_snapshot_records_container', 'snapshot_records', ['container'])

    op.create_table(
        'master_list',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('hb', sa.String(), nullable=False),
        *_manifest_columns(skip=('hb',)),
        sa.Column('first_seen_upload_id', sa.String(length=32), nullable=False),
        sa.Column('last_updated_upload_id', sa.String(length=32), nullable=False),
        sa.Column('last_update_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_master_list_id', 'master_list', ['id'])
    op.create_index('ix_master_list_hb', 'master_list', ['hb'], unique=True)
    op.create_index('ix_master_list_mbl', 'master_list', ['mbl'])
    op.create_index('ix_master_list_container', 'master_list', ['container'])
    op.create_index('ix_master_list_first_seen_upload_id', 'master_list', ['first_seen_upload_id'])
    op.create_index('ix_master_list_last_updated_upload_id', 'master_list', ['last_updated_upload_id'])


def downgrade() -> None:
    """Drop the ingestion tables."""
    op.drop_table('master_list')
    op.drop_table('snapshot_records')
    op.drop_table('uploads')
