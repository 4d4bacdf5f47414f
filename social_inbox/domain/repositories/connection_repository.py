"""
Connection Repository Interface.
"""

from datetime import datetime
from typing import List, Optional

from social_inbox.domain.models.connection import Connection
from social_inbox.domain.repositories.base import BaseRepository


class ConnectionRepository(BaseRepository[Connection]):
    """Interface for Connection-specific operations."""

    def get_active(self, id: str) -> Optional[Connection]:
        """Get a connection by id if it is active."""
        ...

    def find_active_by_route(self, platform: str, routing_column: str, value: str) -> Optional[Connection]:
        """Resolve the active connection a webhook item belongs to."""
        ...

    def list_active_for_user(
        self, user_id: str, platform: Optional[str] = None, workspace_id: Optional[str] = None
    ) -> List[Connection]:
        ...

    def upsert(self, values: dict) -> Connection:
        """Insert or refresh credentials on (workspace_id, platform, platform_account_id)."""
        ...

    def disconnect(self, id: str, user_id: str) -> bool:
        """Soft-disconnect a connection owned by the user."""
        ...

    def list_expiring(self, before: datetime) -> List[Connection]:
        """Active connections whose token expires before the given moment."""
        ...
