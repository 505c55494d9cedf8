"""
Initial migration - Create ledger tables

Revision ID: 001_initial
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa

# Revision identifiers
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create all tables."""

    # Confirmed records
    op.create_table(
        'ledger_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('collection', sa.String(64), nullable=False),
        sa.Column('key', sa.String(128), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('collection', 'key', name='uq_ledger_record_collection_key'),
    )

    op.create_index('idx_ledger_record_collection', 'ledger_records', ['collection'])

    # Sequential id issuance
    op.create_table(
        'ledger_sequences',
        sa.Column('collection', sa.String(64), primary_key=True),
        sa.Column('last_id', sa.Integer(), nullable=False, server_default='0'),
    )

    # Submissions awaiting confirmation
    op.create_table(
        'ledger_submissions',
        sa.Column('handle', sa.String(36), primary_key=True),
        sa.Column('operations', sa.JSON(), nullable=False),
        sa.Column(
            'status',
            sa.Enum('PENDING', 'CONFIRMED', 'REJECTED', name='submissionstatus'),
            nullable=False,
            server_default='PENDING',
        ),
        sa.Column('error_kind', sa.String(32)),
        sa.Column('detail', sa.Text()),
        sa.Column('assigned_ids', sa.JSON()),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('confirmed_at', sa.DateTime(timezone=True)),
    )

    op.create_index('idx_ledger_submission_status', 'ledger_submissions', ['status'])
    op.create_index('idx_ledger_submission_submitted_at', 'ledger_submissions', ['submitted_at'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('ledger_submissions')
    op.drop_table('ledger_sequences')
    op.drop_table('ledger_records')
    op.execute("DROP TYPE IF EXISTS submissionstatus")
