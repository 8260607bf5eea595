from sqlalchemy import Column, String, Text, Integer, DateTime, ForeignKey, Index, JSON, Enum
from sqlalchemy.orm import relationship

from .base import Base, new_id, utcnow
from .enum_models import AgentStatus, enum_values

class Agent(Base):
    """A configured autonomous executor (instruction prompt + model config + capabilities) owned by a workspace."""
    __tablename__ = 'agent'
    id = Column(String(36), primary_key=True, default=new_id, comment="Primary key (UUID string) for the agent")
    workspace_id = Column(String(36), nullable=False, comment="Workspace that owns this agent")
    user_id = Column(String(36), nullable=True, comment="User who created the agent")
    name = Column(String(100), nullable=False, comment="Display name of the agent")
    description = Column(Text, nullable=True, comment="Optional description shown to users")
    type = Column(String(50), nullable=False, default="assistant", comment="Free-form agent type tag")
    status = Column(Enum(AgentStatus, values_callable=enum_values, native_enum=False, length=20, name="agent_status"),
                    nullable=False, default=AgentStatus.DRAFT, comment="Lifecycle status (draft/active/archived/training)")
    prompt = Column(Text, nullable=False, default="", comment="Free-text instruction prompt")
    llm_config = Column(JSON, nullable=False, default=dict,
                        comment="Model configuration: provider, model_name, temperature, max_tokens, system_message")
    settings = Column(JSON, nullable=False, default=dict, comment="Misc agent settings (requires_training, is_public)")
    usage_count = Column(Integer, nullable=False, default=0, comment="Number of successfully completed runs")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    __table_args__ = (
        Index('ix_agent_workspace_id', 'workspace_id'),
    )

    capabilities = relationship("AgentCapability", back_populates="agent", cascade="all, delete-orphan",
                                order_by="AgentCapability.position")
    team_memberships = relationship("AgentTeamMember", back_populates="agent", cascade="all, delete-orphan")
    assignments = relationship("ModuleAgentAssignment", back_populates="agent", cascade="all, delete-orphan")
    runs = relationship("AgentRun", back_populates="agent", cascade="all, delete-orphan")

class AgentCapability(Base):
    """A (type, name) capability attached to exactly one agent."""
    __tablename__ = 'agent_capability'
    id = Column(String(36), primary_key=True, default=new_id)
    agent_id = Column(String(36), ForeignKey('agent.id', ondelete="CASCADE"), nullable=False,
                      comment="FK to the agent owning this capability")
    type = Column(String(50), nullable=False, comment="Capability type, e.g. EMAIL, WEB, DATABASE")
    name = Column(String(100), nullable=False, comment="Capability name within its type, e.g. access, search")
    description = Column(Text, nullable=True)
    config = Column(JSON, nullable=False, default=dict)
    position = Column(Integer, nullable=False, default=0, comment="Ordering of capabilities within the agent")
    __table_args__ = (
        Index('ix_agent_capability_agent_id', 'agent_id'),
    )

    agent = relationship("Agent", back_populates="capabilities")
