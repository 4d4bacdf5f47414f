"""
SQLAlchemy Implementation of Conversation and Contact Repositories.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import case, func, update

from social_inbox.domain.models._ids import new_id
from social_inbox.domain.models.contact import Contact
from social_inbox.domain.models.conversation import Conversation
from social_inbox.domain.repositories.conversation_repository import (
    ContactRepository,
    ConversationRepository,
)
from social_inbox.infrastructure.database import dialect_insert
from social_inbox.infrastructure.repositories.base_repository import SQLAlchemyRepository

PREVIEW_MAX_LENGTH = 255


def _later_of(column, value: datetime):
    """Column value moved forward to ``value``, never back."""
    return case(
        (column.is_(None), value),
        (column < value, value),
        else_=column,
    )


class SQLAlchemyConversationRepository(SQLAlchemyRepository[Conversation], ConversationRepository):
    """Conversation repository implementation using SQLAlchemy."""

    def get_by_key(self, connection_id: str, platform_conversation_id: str) -> Optional[Conversation]:
        return (
            self.db.query(Conversation)
            .filter(
                Conversation.connection_id == connection_id,
                Conversation.platform_conversation_id == platform_conversation_id,
            )
            .first()
        )

    def get_for_connection(self, id: str, connection_id: str) -> Optional[Conversation]:
        return (
            self.db.query(Conversation)
            .filter(Conversation.id == id, Conversation.connection_id == connection_id)
            .first()
        )

    def insert_if_absent(self, values: dict) -> bool:
        stmt = (
            dialect_insert(self.db, Conversation)
            .values(id=new_id(), **values)
            .on_conflict_do_nothing(index_elements=["connection_id", "platform_conversation_id"])
        )
        return self.db.execute(stmt).rowcount == 1

    def record_message(
        self,
        id: str,
        at: datetime,
        preview: Optional[str],
        inbound: bool,
        window_until: Optional[datetime] = None,
    ) -> Conversation:
        values = {
            "message_count": Conversation.message_count + 1,
            "last_message_at": _later_of(Conversation.last_message_at, at),
            "updated_at": func.now(),
        }
        if preview is not None:
            # A late delivery of an older message keeps the newer preview
            values["last_message_preview"] = case(
                (Conversation.last_message_at.is_(None), preview[:PREVIEW_MAX_LENGTH]),
                (Conversation.last_message_at <= at, preview[:PREVIEW_MAX_LENGTH]),
                else_=Conversation.last_message_preview,
            )
        if inbound:
            values["unread_count"] = Conversation.unread_count + 1
            values["last_inbound_at"] = _later_of(Conversation.last_inbound_at, at)
        if window_until is not None:
            # Extend only; a late or replayed event never shortens the window
            values["session_expires_at"] = _later_of(Conversation.session_expires_at, window_until)

        self.db.execute(
            update(Conversation)
            .where(Conversation.id == id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return self.db.get(Conversation, id, populate_existing=True)

    def list_for_workspace(self, workspace_id: str, platform: Optional[str] = None) -> List[Conversation]:
        query = self.db.query(Conversation).filter(
            Conversation.workspace_id == workspace_id,
            Conversation.status != "archived",
        )
        if platform:
            query = query.filter(Conversation.platform == platform)
        return query.order_by(Conversation.last_message_at.desc().nullslast()).all()


class SQLAlchemyContactRepository(ContactRepository):
    def __init__(self, db):
        self.db = db

    def match_phone_suffix(self, workspace_id: str, digits: str) -> Optional[str]:
        row = (
            self.db.query(Contact.id)
            .filter(Contact.workspace_id == workspace_id, Contact.phone.ilike(f"%{digits}%"))
            .first()
        )
        return row[0] if row else None
