"""Pydantic schemas for Conversation reads."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class ConversationRead(BaseModel):
    id: str
    workspace_id: str
    connection_id: str
    contact_id: Optional[str] = None
    platform: str
    platform_conversation_id: str
    platform_user_id: Optional[str] = None
    platform_user_name: Optional[str] = None
    status: str
    message_count: int = 0
    unread_count: int = 0
    last_message_at: Optional[datetime] = None
    last_message_preview: Optional[str] = None
    last_inbound_at: Optional[datetime] = None
    session_expires_at: Optional[datetime] = None
    # Derived at read time, never stored
    requires_template: bool = False
    session_state: Optional[str] = None

    model_config = {"from_attributes": True}
