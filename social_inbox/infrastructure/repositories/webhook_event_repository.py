"""
SQLAlchemy Implementation of Webhook Event Repository.
"""

from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from social_inbox.core.clock import utcnow
from social_inbox.domain.models.webhook_event import WebhookEvent
from social_inbox.domain.repositories.webhook_event_repository import WebhookEventRepository


class SQLAlchemyWebhookEventRepository(WebhookEventRepository):
    def __init__(self, db: Session):
        self.db = db

    def add(self, platform: Optional[str], event_type: str, payload: dict) -> WebhookEvent:
        event = WebhookEvent(platform=platform, event_type=event_type[:50], payload=payload, processed=False)
        self.db.add(event)
        self.db.flush()
        return event

    def mark_processed(self, id: str) -> None:
        self.db.execute(
            update(WebhookEvent)
            .where(WebhookEvent.id == id)
            .values(processed=True, processed_at=utcnow())
            .execution_options(synchronize_session=False)
        )
