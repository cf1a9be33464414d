"""Create alerts table.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'alerts',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('owner_id', sa.String(), nullable=False),
        sa.Column('min_price', sa.Numeric(18, 4), nullable=True),
        sa.Column('max_price', sa.Numeric(18, 4), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='active'),
        sa.Column('last_triggered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_alerts_owner_id', 'alerts', ['owner_id'])
    op.create_index('ix_alerts_status', 'alerts', ['status'])


def downgrade() -> None:
    op.drop_index('ix_alerts_status', table_name='alerts')
    op.drop_index('ix_alerts_owner_id', table_name='alerts')
    op.drop_table('alerts')
