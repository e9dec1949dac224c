"""create automation_rules table

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'automation_rules',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('workspace_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_enabled', sa.Boolean(), nullable=False),
        sa.Column('trigger', sa.String(length=100), nullable=False),
        sa.Column('conditions_operator', sa.Enum('AND', 'OR', name='logicaloperator'), nullable=False),
        sa.Column('actions_operator', sa.Enum('AND', 'OR', name='logicaloperator'), nullable=False),
        sa.Column('conditions', sa.JSON(), nullable=False),
        sa.Column('actions', sa.JSON(), nullable=False),
        sa.Column('message_analysis_rules', sa.JSON(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_automation_rules_id'), 'automation_rules', ['id'], unique=False)
    op.create_index(op.f('ix_automation_rules_workspace_id'), 'automation_rules', ['workspace_id'], unique=False)
    op.create_index('ix_automation_rules_workspace_trigger', 'automation_rules', ['workspace_id', 'trigger'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_automation_rules_workspace_trigger', table_name='automation_rules')
    op.drop_index(op.f('ix_automation_rules_workspace_id'), table_name='automation_rules')
    op.drop_index(op.f('ix_automation_rules_id'), table_name='automation_rules')
    op.drop_table('automation_rules')
