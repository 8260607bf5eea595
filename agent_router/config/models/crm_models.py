from sqlalchemy import Column, String, Text, Float, Boolean, DateTime, ForeignKey, Index, JSON
from sqlalchemy.orm import relationship

from .base import Base, new_id, utcnow

class EmailThread(Base):
    """Conversation grouping for emails."""
    __tablename__ = 'email_thread'
    id = Column(String(36), primary_key=True, default=new_id)
    workspace_id = Column(String(36), nullable=False)
    subject = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    emails = relationship("Email", back_populates="thread", cascade="all, delete-orphan",
                          order_by="Email.created_at")

class Email(Base):
    """A received or drafted email."""
    __tablename__ = 'email'
    id = Column(String(36), primary_key=True, default=new_id)
    workspace_id = Column(String(36), nullable=False)
    user_id = Column(String(36), nullable=True, comment="Mailbox owner")
    thread_id = Column(String(36), ForeignKey('email_thread.id', ondelete="CASCADE"), nullable=True)
    from_email = Column(String(255), nullable=True)
    to_emails = Column(JSON, nullable=False, default=list)
    subject = Column(String(255), nullable=True)
    body = Column(Text, nullable=True)
    is_draft = Column(Boolean, nullable=False, default=False)
    generated_by_agent_id = Column(String(36), nullable=True, comment="Agent that drafted this email, if any")
    sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    __table_args__ = (
        Index('ix_email_thread_id', 'thread_id'),
    )

    thread = relationship("EmailThread", back_populates="emails")

class Contact(Base):
    """CRM contact record."""
    __tablename__ = 'contact'
    id = Column(String(36), primary_key=True, default=new_id)
    workspace_id = Column(String(36), nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True)
    company = Column(String(255), nullable=True)
    title = Column(String(255), nullable=True)
    industry = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

class Lead(Base):
    """Sales lead detected by an agent."""
    __tablename__ = 'lead'
    id = Column(String(36), primary_key=True, default=new_id)
    workspace_id = Column(String(36), nullable=False)
    source_email_id = Column(String(36), ForeignKey('email.id', ondelete="SET NULL"), nullable=True)
    name = Column(String(255), nullable=False)
    company = Column(String(255), nullable=True)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    position = Column(String(255), nullable=True)
    value = Column(Float, nullable=True)
    confidence = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="new")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

class FollowUpTask(Base):
    """Action item extracted from an email."""
    __tablename__ = 'follow_up_task'
    id = Column(String(36), primary_key=True, default=new_id)
    workspace_id = Column(String(36), nullable=False)
    source_email_id = Column(String(36), ForeignKey('email.id', ondelete="SET NULL"), nullable=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True)
    priority = Column(String(10), nullable=False, default="MEDIUM")
    assigned_to = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

class CalendarEvent(Base):
    """Calendar event extracted from an email."""
    __tablename__ = 'calendar_event'
    id = Column(String(36), primary_key=True, default=new_id)
    workspace_id = Column(String(36), nullable=False)
    source_email_id = Column(String(36), ForeignKey('email.id', ondelete="SET NULL"), nullable=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)
    all_day = Column(Boolean, nullable=False, default=False)
    location = Column(String(255), nullable=True)
    meeting_link = Column(String(500), nullable=True)
    attendees = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
