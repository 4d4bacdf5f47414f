"""Social connection — a workspace's credentials for one Meta messaging account."""

from sqlalchemy import Column, String, Text, DateTime, UniqueConstraint
from sqlalchemy.sql import func

from social_inbox.domain.models._ids import new_id
from social_inbox.infrastructure.database import Base


class Connection(Base):
    __tablename__ = "social_connections"
    __table_args__ = (
        UniqueConstraint("workspace_id", "platform", "platform_account_id", name="uq_connection_account"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(64), nullable=False, index=True)
    workspace_id = Column(String(64), nullable=False, index=True)
    platform = Column(String(20), nullable=False)  # whatsapp, messenger, instagram
    platform_account_id = Column(String(64), nullable=False)
    platform_account_name = Column(String(255), nullable=True)

    access_token = Column(Text, nullable=True)
    token_expires_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(20), nullable=False, default="active")  # active, disconnected, expired, error

    # Webhook routing keys
    phone_number_id = Column(String(64), nullable=True, index=True)
    whatsapp_business_id = Column(String(64), nullable=True)
    page_id = Column(String(64), nullable=True, index=True)
    page_name = Column(String(255), nullable=True)
    instagram_account_id = Column(String(64), nullable=True, index=True)

    last_error = Column(Text, nullable=True)
    last_sync_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Connection {self.platform}:{self.platform_account_id} - {self.status}>"
