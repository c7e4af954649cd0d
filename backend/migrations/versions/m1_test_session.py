"""create test_session table

Revision ID: m1_test_session
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa

revision = 'm1_test_session'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'test_session',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('url', sa.String(2048), nullable=False),
        sa.Column('metrics', sa.JSON(), nullable=True),
        sa.Column('browser_metrics', sa.JSON(), nullable=True),
        sa.Column('github', sa.JSON(), nullable=True),
        sa.Column('derived', sa.JSON(), nullable=True),
        sa.Column('ai', sa.JSON(), nullable=True),
        sa.Column('probes', sa.JSON(), nullable=True),
        sa.Column('chat_history', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    with op.batch_alter_table('test_session', schema=None) as batch_op:
        batch_op.create_index('ix_test_session_url', ['url'])
        batch_op.create_index('ix_test_session_created_at', ['created_at'])


def downgrade():
    with op.batch_alter_table('test_session', schema=None) as batch_op:
        batch_op.drop_index('ix_test_session_created_at')
        batch_op.drop_index('ix_test_session_url')
    op.drop_table('test_session')
