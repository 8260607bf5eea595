"""init_agent_routing

Revision ID: 3f2b8c1d9e47
Revises: 
Create Date: 2026-10-19 18:10:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f2b8c1d9e47'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema.
    
    Creates the routing tables:
    - agent / agent_capability: executors and their (type, name) capabilities
    - agent_team / agent_team_member: ordered team membership with role tags
    - module_agent_assignment: priority-ranked module bindings with soft delete
    - module_task_definition: module tasks and their required capabilities
    - agent_run: run lifecycle with a CHECK tying output/error to status
    """
    op.create_table(
        'agent',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('workspace_id', sa.String(36), nullable=False),
        sa.Column('user_id', sa.String(36), nullable=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='draft'),
        sa.Column('prompt', sa.Text(), nullable=False),
        sa.Column('llm_config', sa.JSON(), nullable=False),
        sa.Column('settings', sa.JSON(), nullable=False),
        sa.Column('usage_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_agent_workspace_id', 'agent', ['workspace_id'])

    op.create_table(
        'agent_capability',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('agent_id', sa.String(36), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('config', sa.JSON(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['agent_id'], ['agent.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_agent_capability_agent_id', 'agent_capability', ['agent_id'])

    op.create_table(
        'agent_team',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('workspace_id', sa.String(36), nullable=False),
        sa.Column('user_id', sa.String(36), nullable=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_agent_team_workspace_id', 'agent_team', ['workspace_id'])

    op.create_table(
        'agent_team_member',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('team_id', sa.String(36), nullable=False),
        sa.Column('agent_id', sa.String(36), nullable=False),
        sa.Column('role', sa.String(50), nullable=True),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['team_id'], ['agent_team.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['agent_id'], ['agent.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('team_id', 'agent_id', name='uq_team_member_team_agent'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_agent_team_member_team_id', 'agent_team_member', ['team_id'])

    op.create_table(
        'module_agent_assignment',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('agent_id', sa.String(36), nullable=True),
        sa.Column('team_id', sa.String(36), nullable=True),
        sa.Column('workspace_id', sa.String(36), nullable=False),
        sa.Column('module_type', sa.String(50), nullable=False),
        sa.Column('module_id', sa.String(36), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('capabilities', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['agent_id'], ['agent.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['team_id'], ['agent_team.id'], ondelete='CASCADE'),
        sa.CheckConstraint(
            '(agent_id IS NOT NULL AND team_id IS NULL) OR (agent_id IS NULL AND team_id IS NOT NULL)',
            name='ck_assignment_exactly_one_executor',
        ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_assignment_module_type_active', 'module_agent_assignment', ['module_type', 'is_active'])
    op.create_index('ix_assignment_workspace_id', 'module_agent_assignment', ['workspace_id'])

    op.create_table(
        'module_task_definition',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('module_type', sa.String(50), nullable=False),
        sa.Column('required_capabilities', sa.JSON(), nullable=False),
        sa.Column('is_system', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_module_task_definition_module_type', 'module_task_definition', ['module_type'])

    op.create_table(
        'agent_run',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('agent_id', sa.String(36), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('input', sa.JSON(), nullable=False),
        sa.Column('output', sa.JSON(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('metrics', sa.JSON(), nullable=True),
        sa.Column('started_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('completed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['agent_id'], ['agent.id'], ondelete='CASCADE'),
        sa.CheckConstraint(
            "(status = 'pending' AND output IS NULL AND error IS NULL)"
            " OR (status = 'completed' AND output IS NOT NULL AND error IS NULL)"
            " OR (status = 'failed' AND error IS NOT NULL AND output IS NULL)",
            name='ck_agent_run_terminal_payload',
        ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_agent_run_agent_id', 'agent_run', ['agent_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_agent_run_agent_id', table_name='agent_run')
    op.drop_table('agent_run')
    op.drop_index('ix_module_task_definition_module_type', table_name='module_task_definition')
    op.drop_table('module_task_definition')
    op.drop_index('ix_assignment_workspace_id', table_name='module_agent_assignment')
    op.drop_index('ix_assignment_module_type_active', table_name='module_agent_assignment')
    op.drop_table('module_agent_assignment')
    op.drop_index('ix_agent_team_member_team_id', table_name='agent_team_member')
    op.drop_table('agent_team_member')
    op.drop_index('ix_agent_team_workspace_id', table_name='agent_team')
    op.drop_table('agent_team')
    op.drop_index('ix_agent_capability_agent_id', table_name='agent_capability')
    op.drop_table('agent_capability')
    op.drop_index('ix_agent_workspace_id', table_name='agent')
    op.drop_table('agent')
