from sqlalchemy import Column, String, Text, Integer, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import Base, new_id, utcnow

LEAD_ROLE = "lead"

class AgentTeam(Base):
    """A named group of agents; its capability set is the union of its members' capabilities."""
    __tablename__ = 'agent_team'
    id = Column(String(36), primary_key=True, default=new_id, comment="Primary key (UUID string) for the team")
    workspace_id = Column(String(36), nullable=False, comment="Workspace that owns this team")
    user_id = Column(String(36), nullable=True, comment="User who created the team")
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    __table_args__ = (
        Index('ix_agent_team_workspace_id', 'workspace_id'),
    )

    members = relationship("AgentTeamMember", back_populates="team", cascade="all, delete-orphan",
                           order_by="AgentTeamMember.position")
    assignments = relationship("ModuleAgentAssignment", back_populates="team", cascade="all, delete-orphan")

class AgentTeamMember(Base):
    """Membership of one agent in a team, with an optional role tag ('lead' marks the team lead)."""
    __tablename__ = 'agent_team_member'
    id = Column(String(36), primary_key=True, default=new_id)
    team_id = Column(String(36), ForeignKey('agent_team.id', ondelete="CASCADE"), nullable=False)
    agent_id = Column(String(36), ForeignKey('agent.id', ondelete="CASCADE"), nullable=False)
    role = Column(String(50), nullable=True, comment="Role tag within the team ('lead', 'member' or unset)")
    position = Column(Integer, nullable=False, default=0, comment="Insertion order; first member executes when no lead")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    __table_args__ = (
        UniqueConstraint('team_id', 'agent_id', name='uq_team_member_team_agent'),
        Index('ix_agent_team_member_team_id', 'team_id'),
    )

    team = relationship("AgentTeam", back_populates="members")
    agent = relationship("Agent", back_populates="team_memberships")
