"""
Template Repository Interface.
"""

from typing import List, Optional

from social_inbox.domain.models.template import Template
from social_inbox.domain.repositories.base import BaseRepository


class TemplateRepository(BaseRepository[Template]):
    """Interface for Template-specific operations."""

    def find(self, connection_id: str, name: str, language: str) -> Optional[Template]:
        ...

    def list_approved(self, workspace_id: str, connection_id: Optional[str] = None) -> List[Template]:
        """Approved templates ordered by name."""
        ...

    def upsert(self, values: dict) -> None:
        """Insert or refresh on (connection_id, name, language)."""
        ...
