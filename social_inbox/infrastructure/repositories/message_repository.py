"""
SQLAlchemy Implementation of Message Repository.
"""

from typing import Iterable, List, Optional

from sqlalchemy import update

from social_inbox.core.clock import utcnow
from social_inbox.domain.models._ids import new_id
from social_inbox.domain.models.message import Message
from social_inbox.domain.repositories.message_repository import MessageRepository
from social_inbox.infrastructure.database import dialect_insert
from social_inbox.infrastructure.repositories.base_repository import SQLAlchemyRepository


class SQLAlchemyMessageRepository(SQLAlchemyRepository[Message], MessageRepository):
    """Message repository implementation using SQLAlchemy."""

    def exists(self, platform: str, external_id: str) -> bool:
        return (
            self.db.query(Message.id)
            .filter(Message.platform == platform, Message.external_id == external_id)
            .first()
        ) is not None

    def insert_if_absent(self, values: dict) -> Optional[str]:
        message_id = new_id()
        stmt = (
            dialect_insert(self.db, Message)
            .values(id=message_id, **values)
            .on_conflict_do_nothing(index_elements=["platform", "external_id"])
        )
        if self.db.execute(stmt).rowcount != 1:
            return None
        return message_id

    def advance_status(
        self,
        platform: str,
        external_id: str,
        status: str,
        allowed_from: Iterable[str],
        values: dict,
    ) -> bool:
        result = self.db.execute(
            update(Message)
            .where(
                Message.platform == platform,
                Message.external_id == external_id,
                Message.status.in_(list(allowed_from)),
            )
            .values(status=status, status_updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def list_for_conversation(self, conversation_id: str, limit: int = 100) -> List[Message]:
        return (
            self.db.query(Message)
            .filter(Message.conversation_id == conversation_id)
            .order_by(Message.created_at.asc(), Message.sent_at.asc())
            .limit(limit)
            .all()
        )
