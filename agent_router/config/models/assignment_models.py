from sqlalchemy import Column, String, Text, Integer, Boolean, DateTime, ForeignKey, Index, JSON, CheckConstraint
from sqlalchemy.orm import relationship

from .base import Base, new_id, utcnow

class ModuleAgentAssignment(Base):
    """Priority-ranked binding of a module type (and optionally one module instance) to an agent or a team."""
    __tablename__ = 'module_agent_assignment'
    id = Column(String(36), primary_key=True, default=new_id)
    agent_id = Column(String(36), ForeignKey('agent.id', ondelete="CASCADE"), nullable=True,
                      comment="Bound agent (exactly one of agent_id/team_id is set)")
    team_id = Column(String(36), ForeignKey('agent_team.id', ondelete="CASCADE"), nullable=True,
                     comment="Bound team (exactly one of agent_id/team_id is set)")
    workspace_id = Column(String(36), nullable=False, comment="Workspace of the bound agent or team")
    module_type = Column(String(50), nullable=False, comment="Module type, e.g. email, contact, calendar")
    module_id = Column(String(36), nullable=True, comment="Optional specific module instance")
    is_active = Column(Boolean, nullable=False, default=True, comment="Soft-delete flag (False keeps history)")
    priority = Column(Integer, nullable=False, default=1, comment="Higher number wins")
    capabilities = Column(JSON, nullable=False, default=list, comment="Capabilities required by this binding")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    __table_args__ = (
        CheckConstraint(
            '(agent_id IS NOT NULL AND team_id IS NULL) OR (agent_id IS NULL AND team_id IS NOT NULL)',
            name='ck_assignment_exactly_one_executor',
        ),
        Index('ix_assignment_module_type_active', 'module_type', 'is_active'),
        Index('ix_assignment_workspace_id', 'workspace_id'),
    )

    agent = relationship("Agent", back_populates="assignments")
    team = relationship("AgentTeam", back_populates="assignments")

class ModuleTaskDefinition(Base):
    """A named task a module can request, with the capabilities it requires."""
    __tablename__ = 'module_task_definition'
    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    module_type = Column(String(50), nullable=False)
    required_capabilities = Column(JSON, nullable=False, default=list)
    is_system = Column(Boolean, nullable=False, default=False, comment="System-defined (True) or custom task")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    __table_args__ = (
        Index('ix_module_task_definition_module_type', 'module_type'),
    )
