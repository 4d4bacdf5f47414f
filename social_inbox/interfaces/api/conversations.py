"""Conversation read endpoints for the unified inbox."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from social_inbox.application.services.auth_service import CurrentUser
from social_inbox.application.services.conversation_service import to_read
from social_inbox.core.exceptions import NotFoundError
from social_inbox.domain.repositories.conversation_repository import ConversationRepository
from social_inbox.domain.repositories.message_repository import MessageRepository
from social_inbox.domain.schemas.conversation import ConversationRead
from social_inbox.domain.schemas.message import MessageRead
from social_inbox.interfaces.api.deps import (
    get_conversation_repository,
    get_current_user,
    get_message_repository,
)

router = APIRouter(prefix="/social-conversations", tags=["Conversations"])


@router.get("", response_model=List[ConversationRead])
def list_conversations(
    workspace_id: str,
    platform: Optional[str] = None,
    repo: ConversationRepository = Depends(get_conversation_repository),
    _: CurrentUser = Depends(get_current_user),
):
    return [to_read(c) for c in repo.list_for_workspace(workspace_id, platform)]


@router.get("/{conversation_id}", response_model=ConversationRead)
def get_conversation(
    conversation_id: str,
    repo: ConversationRepository = Depends(get_conversation_repository),
    _: CurrentUser = Depends(get_current_user),
):
    conversation = repo.get_by_id(conversation_id)
    if conversation is None:
        raise NotFoundError("Conversation not found")
    return to_read(conversation)


@router.get("/{conversation_id}/messages", response_model=List[MessageRead])
def list_messages(
    conversation_id: str,
    limit: int = Query(100, ge=1, le=500),
    conversations: ConversationRepository = Depends(get_conversation_repository),
    messages: MessageRepository = Depends(get_message_repository),
    _: CurrentUser = Depends(get_current_user),
):
    if conversations.get_by_id(conversation_id) is None:
        raise NotFoundError("Conversation not found")
    return messages.list_for_conversation(conversation_id, limit)
