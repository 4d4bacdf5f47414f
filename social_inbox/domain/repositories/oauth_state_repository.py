"""
OAuth State Repository Interface.
"""

from datetime import datetime
from typing import Optional, Protocol

from social_inbox.domain.models.oauth_state import OAuthState


class OAuthStateRepository(Protocol):
    """Single-use OAuth states."""

    def add(self, values: dict) -> OAuthState:
        ...

    def get_valid(self, state: str, kind: str, user_id: str, now: datetime) -> Optional[OAuthState]:
        """Unexpired state of the given kind owned by the user."""
        ...

    def consume(self, state: str, kind: str, now: datetime) -> Optional[OAuthState]:
        """Delete the state and return it. Only one caller can win; expired states are deleted but not returned."""
        ...

    def purge_expired(self, now: datetime) -> int:
        ...
