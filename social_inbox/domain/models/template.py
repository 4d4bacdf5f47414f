"""WhatsApp message template — provider-approved skeleton with named slots."""

from sqlalchemy import Column, String, Text, DateTime, JSON, UniqueConstraint
from sqlalchemy.sql import func

from social_inbox.domain.models._ids import new_id
from social_inbox.infrastructure.database import Base


class Template(Base):
    __tablename__ = "whatsapp_templates"
    __table_args__ = (
        UniqueConstraint("connection_id", "name", "language", name="uq_template_name_language"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    workspace_id = Column(String(64), nullable=False, index=True)
    connection_id = Column(String(36), nullable=False, index=True)
    template_id = Column(String(64), nullable=True)
    name = Column(String(255), nullable=False)
    language = Column(String(20), nullable=False)
    category = Column(String(30), nullable=True)  # utility, marketing, authentication
    header_text = Column(Text, nullable=True)
    body_text = Column(Text, nullable=False)
    footer_text = Column(Text, nullable=True)
    variables = Column(JSON, nullable=False, default=list)  # [{"name": ..., "example": ...}] in slot order
    status = Column(String(20), nullable=False, default="pending")  # pending, approved, rejected, paused, disabled
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Template {self.name} ({self.language}) - {self.status}>"
