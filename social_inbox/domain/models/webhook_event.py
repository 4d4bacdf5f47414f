"""Raw webhook audit log — append-only, only the processed flag changes."""

from sqlalchemy import Column, Boolean, String, DateTime, JSON
from sqlalchemy.sql import func

from social_inbox.domain.models._ids import new_id
from social_inbox.infrastructure.database import Base


class WebhookEvent(Base):
    __tablename__ = "social_webhook_events"

    id = Column(String(36), primary_key=True, default=new_id)
    platform = Column(String(50), nullable=True, index=True)
    event_type = Column(String(50), nullable=False, default="webhook")
    payload = Column(JSON, nullable=False)
    processed = Column(Boolean, nullable=False, default=False)
    received_at = Column(DateTime(timezone=True), server_default=func.now())
    processed_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<WebhookEvent {self.platform} processed={self.processed}>"
