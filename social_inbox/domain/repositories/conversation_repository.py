"""
Conversation Repository Interface.
"""

from datetime import datetime
from typing import List, Optional, Protocol

from social_inbox.domain.models.conversation import Conversation
from social_inbox.domain.repositories.base import BaseRepository


class ConversationRepository(BaseRepository[Conversation]):
    """Interface for Conversation-specific operations."""

    def get_by_key(self, connection_id: str, platform_conversation_id: str) -> Optional[Conversation]:
        ...

    def get_for_connection(self, id: str, connection_id: str) -> Optional[Conversation]:
        ...

    def insert_if_absent(self, values: dict) -> bool:
        """Insert unless (connection_id, platform_conversation_id) exists. True when inserted."""
        ...

    def record_message(
        self,
        id: str,
        at: datetime,
        preview: Optional[str],
        inbound: bool,
        window_until: Optional[datetime] = None,
    ) -> Conversation:
        """Bump counters and preview; extend the session window when ``window_until`` is given.

        Returns the conversation as stored after the update.
        """
        ...

    def list_for_workspace(self, workspace_id: str, platform: Optional[str] = None) -> List[Conversation]:
        """Non-archived conversations, most recent first."""
        ...


class ContactRepository(Protocol):
    """Read-only access to CRM contacts."""

    def match_phone_suffix(self, workspace_id: str, digits: str) -> Optional[str]:
        """Id of a contact whose phone contains the given digits."""
        ...
