"""
Webhook Event Repository Interface.
"""

from typing import Optional, Protocol

from social_inbox.domain.models.webhook_event import WebhookEvent


class WebhookEventRepository(Protocol):
    """Append-only audit log of raw webhook payloads."""

    def add(self, platform: Optional[str], event_type: str, payload: dict) -> WebhookEvent:
        ...

    def mark_processed(self, id: str) -> None:
        ...
