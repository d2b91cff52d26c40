"""create kv_entry for the report ledger and daily report records

Revision ID: 5b7e2d91c0af
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5b7e2d91c0af'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    if 'kv_entry' in insp.get_table_names():
        return
    op.create_table(
        'kv_entry',
        sa.Column('key', sa.String(length=255), primary_key=True),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('expires_at', sa.Float(), nullable=True),
    )
    with op.batch_alter_table('kv_entry') as batch_op:
        batch_op.create_index('ix_kv_entry_expires_at', ['expires_at'])


def downgrade():
    with op.batch_alter_table('kv_entry') as batch_op:
        batch_op.drop_index('ix_kv_entry_expires_at')
    op.drop_table('kv_entry')
