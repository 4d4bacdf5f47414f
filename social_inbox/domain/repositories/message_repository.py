"""
Message Repository Interface.
"""

from typing import Iterable, List, Optional

from social_inbox.domain.models.message import Message
from social_inbox.domain.repositories.base import BaseRepository


class MessageRepository(BaseRepository[Message]):
    """Interface for Message-specific operations."""

    def exists(self, platform: str, external_id: str) -> bool:
        ...

    def insert_if_absent(self, values: dict) -> Optional[str]:
        """Insert unless (platform, external_id) exists. Returns the new id, or None for a duplicate."""
        ...

    def advance_status(
        self,
        platform: str,
        external_id: str,
        status: str,
        allowed_from: Iterable[str],
        values: dict,
    ) -> bool:
        """Move a message to ``status`` only from one of ``allowed_from``."""
        ...

    def list_for_conversation(self, conversation_id: str, limit: int = 100) -> List[Message]:
        ...
