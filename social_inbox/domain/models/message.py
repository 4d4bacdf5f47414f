"""Social message — one inbound or outbound message on any platform."""

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.sql import func

from social_inbox.domain.models._ids import new_id
from social_inbox.infrastructure.database import Base


class Message(Base):
    __tablename__ = "social_messages"
    __table_args__ = (
        UniqueConstraint("platform", "external_id", name="uq_message_external_id"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    workspace_id = Column(String(64), nullable=True, index=True)
    connection_id = Column(String(36), ForeignKey("social_connections.id"), nullable=True)
    # Failed sends to a brand-new recipient have no thread yet
    conversation_id = Column(String(36), ForeignKey("social_conversations.id"), nullable=True, index=True)
    platform = Column(String(20), nullable=False)
    direction = Column(String(10), nullable=False)  # inbound, outbound
    message_type = Column(String(20), nullable=False, default="text")

    body = Column(Text, nullable=True)
    caption = Column(Text, nullable=True)
    media_url = Column(Text, nullable=True)
    media_id = Column(String(128), nullable=True)
    media_mime_type = Column(String(100), nullable=True)
    reaction_emoji = Column(String(16), nullable=True)
    reply_to_id = Column(String(255), nullable=True)

    template_name = Column(String(255), nullable=True)
    template_language = Column(String(20), nullable=True)
    template_parameters = Column(JSON, nullable=True)

    status = Column(String(20), nullable=False, default="sent")  # sent, delivered, read, failed
    error_code = Column(String(50), nullable=True)
    error_message = Column(Text, nullable=True)
    external_id = Column(String(255), nullable=True)

    sent_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
    status_updated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Message {self.direction} {self.message_type} - {self.status}>"
