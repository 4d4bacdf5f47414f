"""OAuth state — single-use token for an authorize redirect or account selection."""

from sqlalchemy import Column, String, DateTime, JSON
from sqlalchemy.sql import func

from social_inbox.infrastructure.database import Base


class OAuthState(Base):
    __tablename__ = "oauth_states"

    state = Column(String(128), primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    kind = Column(String(30), nullable=False)  # authorize, account_selection
    platform = Column(String(20), nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self):
        return f"<OAuthState {self.kind} {self.platform}>"
