from sqlalchemy import Column, String, DateTime, ForeignKey, Index, JSON, Text, Enum, CheckConstraint
from sqlalchemy.orm import relationship

from .base import Base, new_id, utcnow
from .enum_models import RunStatus, enum_values

class AgentRun(Base):
    """One execution attempt of one agent. Status moves from pending to a terminal state exactly once."""
    __tablename__ = 'agent_run'
    id = Column(String(36), primary_key=True, default=new_id)
    agent_id = Column(String(36), ForeignKey('agent.id', ondelete="CASCADE"), nullable=False,
                      comment="Executing agent (the team lead or first member for team dispatch)")
    status = Column(Enum(RunStatus, values_callable=enum_values, native_enum=False, length=20, name="run_status"),
                    nullable=False, default=RunStatus.PENDING)
    input = Column(JSON, nullable=False, default=dict, comment="Execution payload including taskContext")
    output = Column(JSON(none_as_null=True), nullable=True, comment="Structured output, set only when completed")
    error = Column(Text, nullable=True, comment="Error message, set only when failed")
    metrics = Column(JSON(none_as_null=True), nullable=True, comment="latency_ms, tokens_used")
    started_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    __table_args__ = (
        CheckConstraint(
            "(status = 'pending' AND output IS NULL AND error IS NULL)"
            " OR (status = 'completed' AND output IS NOT NULL AND error IS NULL)"
            " OR (status = 'failed' AND error IS NOT NULL AND output IS NULL)",
            name='ck_agent_run_terminal_payload',
        ),
        Index('ix_agent_run_agent_id', 'agent_id'),
    )

    agent = relationship("Agent", back_populates="runs")
