"""FastAPI dependencies — bearer auth, repositories and the Graph API client."""

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from social_inbox.application.services.auth_service import CurrentUser, user_from_token
from social_inbox.core.exceptions import AuthenticationError
from social_inbox.domain.models.conversation import Conversation
from social_inbox.domain.models.message import Message
from social_inbox.domain.repositories.conversation_repository import ConversationRepository
from social_inbox.domain.repositories.message_repository import MessageRepository
from social_inbox.infrastructure.database import get_db
from social_inbox.infrastructure.meta_graph import MetaGraphClient
from social_inbox.infrastructure.repositories.conversation_repository import SQLAlchemyConversationRepository
from social_inbox.infrastructure.repositories.message_repository import SQLAlchemyMessageRepository

# auto_error=False so a missing header renders through AuthenticationError (401)
security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> CurrentUser:
    """Extract and validate the current user from the bearer token."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Missing bearer token")
    return user_from_token(credentials.credentials)


def get_graph_client() -> MetaGraphClient:
    """Graph API client; overridden in tests with a mock transport."""
    return MetaGraphClient()


def get_conversation_repository(db: Session = Depends(get_db)) -> ConversationRepository:
    return SQLAlchemyConversationRepository(db, Conversation)


def get_message_repository(db: Session = Depends(get_db)) -> MessageRepository:
    return SQLAlchemyMessageRepository(db, Message)
