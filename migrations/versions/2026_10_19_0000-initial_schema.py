"""Initial schema

Revision ID: 001_initial
Revises: 
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create initial database schema:
    - routing_rules table: Stored rotation configurations
    - rate_windows table: Per-key counters for redirect admission control
    """
    bind = op.get_bind()
    inspector = inspect(bind)
    existing_tables = inspector.get_table_names()
    
    if 'routing_rules' not in existing_tables:
        op.create_table(
            'routing_rules',
            sa.Column('id', sa.String(length=64), nullable=False),
            sa.Column('primary_destination', sa.Text(), nullable=False),
            sa.Column('secondary_destinations', sa.JSON(), nullable=False),
            sa.Column('rotation_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column('status', sa.String(length=16), nullable=False, server_default='enabled'),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('id')
        )
        
        op.create_index('ix_routing_rules_status', 'routing_rules', ['status'])
        op.create_index('ix_routing_rules_created_at', 'routing_rules', ['created_at'])
    
    if 'rate_windows' not in existing_tables:
        op.create_table(
            'rate_windows',
            sa.Column('key', sa.String(length=255), nullable=False),
            sa.Column('window_start', sa.Float(), nullable=False),
            sa.Column('count', sa.Integer(), nullable=False, server_default='0'),
            sa.PrimaryKeyConstraint('key')
        )
        
        op.create_index('ix_rate_windows_window_start', 'rate_windows', ['window_start'])


def downgrade() -> None:
    """Drop all tables created by this migration."""
    op.drop_index('ix_rate_windows_window_start', table_name='rate_windows')
    op.drop_table('rate_windows')
    op.drop_index('ix_routing_rules_created_at', table_name='routing_rules')
    op.drop_index('ix_routing_rules_status', table_name='routing_rules')
    op.drop_table('routing_rules')
