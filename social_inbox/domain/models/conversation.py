"""Conversation — the thread between a connection and one external participant."""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func

from social_inbox.domain.models._ids import new_id
from social_inbox.infrastructure.database import Base


class Conversation(Base):
    __tablename__ = "social_conversations"
    __table_args__ = (
        UniqueConstraint("connection_id", "platform_conversation_id", name="uq_conversation_participant"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    workspace_id = Column(String(64), nullable=False, index=True)
    connection_id = Column(String(36), ForeignKey("social_connections.id"), nullable=False, index=True)
    contact_id = Column(String(64), nullable=True)
    platform = Column(String(20), nullable=False)
    platform_conversation_id = Column(String(128), nullable=False)
    platform_user_id = Column(String(128), nullable=True)
    platform_user_name = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default="active")  # active, archived

    message_count = Column(Integer, nullable=False, default=0)
    unread_count = Column(Integer, nullable=False, default=0)
    last_message_at = Column(DateTime(timezone=True), nullable=True)
    last_message_preview = Column(String(255), nullable=True)

    # WhatsApp customer service window; extended by inbound messages only
    last_inbound_at = Column(DateTime(timezone=True), nullable=True)
    session_expires_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Conversation {self.platform}:{self.platform_conversation_id}>"
