"""Conversation service — find-or-create threads and read them back."""

from typing import List, Optional

import structlog
from sqlalchemy.orm import Session

from social_inbox.application.platforms.base import digits_only
from social_inbox.application.services import session_window
from social_inbox.core.exceptions import NotFoundError
from social_inbox.domain.models.connection import Connection
from social_inbox.domain.models.conversation import Conversation
from social_inbox.domain.schemas.conversation import ConversationRead
from social_inbox.infrastructure.repositories.conversation_repository import (
    SQLAlchemyContactRepository,
    SQLAlchemyConversationRepository,
)

logger = structlog.get_logger(__name__)

PHONE_MATCH_DIGITS = 10


def match_contact(db: Session, workspace_id: str, sender_id: str) -> Optional[str]:
    """Best-effort CRM match on the last digits of a WhatsApp sender id."""
    digits = digits_only(sender_id)[-PHONE_MATCH_DIGITS:]
    if len(digits) < PHONE_MATCH_DIGITS:
        return None
    return SQLAlchemyContactRepository(db).match_phone_suffix(workspace_id, digits)


def get_or_create_conversation(
    db: Session,
    connection: Connection,
    key: str,
    participant_name: Optional[str] = None,
) -> Conversation:
    """
    Resolve the conversation for (connection, participant), creating it if needed.

    Safe under concurrent deliveries: the insert is ON CONFLICT DO NOTHING on
    (connection_id, platform_conversation_id) and the row is always re-read,
    so two racing requests end up on the same conversation.
    """
    repo = SQLAlchemyConversationRepository(db, Conversation)
    conversation = repo.get_by_key(connection.id, key)
    if conversation is not None:
        if participant_name and not conversation.platform_user_name:
            repo.update(conversation, {"platform_user_name": participant_name})
        return conversation

    contact_id = None
    if connection.platform == "whatsapp":
        contact_id = match_contact(db, connection.workspace_id, key)

    created = repo.insert_if_absent({
        "workspace_id": connection.workspace_id,
        "connection_id": connection.id,
        "platform": connection.platform,
        "platform_conversation_id": key,
        "platform_user_id": key,
        "platform_user_name": participant_name,
        "contact_id": contact_id,
        "status": "active",
        "message_count": 0,
        "unread_count": 0,
    })
    if created:
        logger.info(
            "Conversation created",
            platform=connection.platform,
            connection_id=connection.id,
            contact_matched=contact_id is not None,
        )
    return repo.get_by_key(connection.id, key)


def to_read(conversation: Conversation) -> ConversationRead:
    data = ConversationRead.model_validate(conversation)
    derived = session_window.describe(conversation)
    return data.model_copy(update=derived)


def list_conversations(db: Session, workspace_id: str, platform: Optional[str] = None) -> List[ConversationRead]:
    repo = SQLAlchemyConversationRepository(db, Conversation)
    return [to_read(c) for c in repo.list_for_workspace(workspace_id, platform)]


def get_conversation(db: Session, conversation_id: str) -> Conversation:
    conversation = SQLAlchemyConversationRepository(db, Conversation).get_by_id(conversation_id)
    if conversation is None:
        raise NotFoundError("Conversation not found")
    return conversation
