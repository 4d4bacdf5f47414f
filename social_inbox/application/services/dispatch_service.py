"""Dispatch service — sends one outbound message through the connection's platform.

Order of work for a send:
1. validate the request (no side effects on rejection)
2. one provider call, never retried
3. record the outcome: a ``failed`` message on provider rejection, or the
   conversation and a ``sent`` message on success

The provider call and the local write are not atomic. When the write fails
after the provider accepted the message, the send is still reported as a
success without a stored message.
"""

from typing import List, Optional, Tuple

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from social_inbox.application.platforms.base import MEDIA_TYPES, OutboundRequest, PlatformAdapter
from social_inbox.application.platforms.registry import get_adapter
from social_inbox.application.services import session_window, template_service
from social_inbox.application.services.conversation_service import get_or_create_conversation
from social_inbox.config import get_settings
from social_inbox.core.clock import utcnow
from social_inbox.core.exceptions import NotFoundError, ProviderError, ValidationError
from social_inbox.domain.models.connection import Connection
from social_inbox.domain.models.conversation import Conversation
from social_inbox.domain.models.message import Message
from social_inbox.domain.models.template import Template
from social_inbox.domain.schemas.message import MessageRead, SendMessageRequest, SendMessageResponse
from social_inbox.infrastructure.meta_graph import MetaGraphClient, provider_error
from social_inbox.infrastructure.repositories.connection_repository import SQLAlchemyConnectionRepository
from social_inbox.infrastructure.repositories.conversation_repository import SQLAlchemyConversationRepository
from social_inbox.infrastructure.repositories.message_repository import SQLAlchemyMessageRepository

settings = get_settings()
logger = structlog.get_logger(__name__)

PREVIEW_LENGTH = 100


def require_fields(request: SendMessageRequest) -> None:
    missing = [
        alias
        for alias, value in (
            ("connectionId", request.connection_id),
            ("recipientId", request.recipient_id),
            ("messageType", request.message_type),
        )
        if not value
    ]
    if missing:
        raise ValidationError("Missing required fields", details={"missing": missing})


def validate_for_platform(request: SendMessageRequest, adapter: PlatformAdapter) -> None:
    message_type = request.message_type
    if message_type not in adapter.supported_types:
        raise ValidationError(f"Message type '{message_type}' is not supported on {adapter.platform}")
    if message_type == "text" and not (request.content or "").strip():
        raise ValidationError("content is required for text messages")
    if message_type == "template" and not (request.template_name and request.template_language):
        raise ValidationError("templateName and templateLanguage are required for template messages")
    if message_type in MEDIA_TYPES and not request.media_url:
        raise ValidationError(f"mediaUrl is required for {message_type} messages")


def _preview(request: SendMessageRequest) -> str:
    if request.message_type == "template":
        return f"Template: {request.template_name}"
    text = request.content or request.caption or f"[{request.message_type}]"
    return text[:PREVIEW_LENGTH]


def _message_values(
    connection: Connection,
    request: SendMessageRequest,
    pairs: List[Tuple[str, str]],
    template: Optional[Template],
) -> dict:
    values = {
        "workspace_id": connection.workspace_id,
        "connection_id": connection.id,
        "platform": connection.platform,
        "direction": "outbound",
        "message_type": request.message_type,
        "body": request.content,
        "caption": request.caption,
        "media_url": request.media_url,
    }
    if request.message_type == "template":
        values.update({
            "template_name": request.template_name,
            "template_language": request.template_language,
            "template_parameters": [{"name": name, "value": value} for name, value in pairs],
        })
        if template is not None:
            values["body"] = template_service.render(template.body_text, dict(pairs))
    return values


def _record_failure(
    db: Session,
    connection: Connection,
    conversation: Optional[Conversation],
    values: dict,
    error: dict,
) -> None:
    """Persist a rejected send so the failure is visible in the inbox."""
    try:
        SQLAlchemyMessageRepository(db, Message).add({
            **values,
            "conversation_id": conversation.id if conversation else None,
            "status": "failed",
            "error_code": str(error.get("code")) if error.get("code") is not None else None,
            "error_message": error.get("message"),
            "status_updated_at": utcnow(),
        })
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not record failed message", connection_id=connection.id)


async def send_message(db: Session, graph: MetaGraphClient, request: SendMessageRequest) -> SendMessageResponse:
    require_fields(request)

    connection = SQLAlchemyConnectionRepository(db, Connection).get_active(request.connection_id)
    if connection is None:
        raise NotFoundError("Connection not found or inactive")

    adapter = get_adapter(connection.platform)
    validate_for_platform(request, adapter)

    sender_id = adapter.routing_key(connection)
    if not sender_id or not connection.access_token:
        raise ValidationError("Connection is missing its sender id or access token")

    conversations = SQLAlchemyConversationRepository(db, Conversation)
    conversation_key = adapter.conversation_key(request.recipient_id)
    if request.conversation_id:
        conversation = conversations.get_for_connection(request.conversation_id, connection.id)
        if conversation is None:
            raise NotFoundError("Conversation not found")
    else:
        conversation = conversations.get_by_key(connection.id, conversation_key)

    pairs = request.variable_pairs()
    template = None
    if request.message_type == "template":
        template = template_service.find_template(
            db, connection.id, request.template_name, request.template_language
        )
        if template is not None and not template_service.is_sendable(template):
            raise ValidationError(
                f"Template '{request.template_name}' is not approved",
                details={"status": template.status},
            )

    requires_template = session_window.requires_template(
        connection.platform, conversation.session_expires_at if conversation else None
    )
    if requires_template and request.message_type != "template" and settings.ENFORCE_SESSION_WINDOW:
        raise ValidationError(
            "The 24h session window is closed; send an approved template",
            details={"requiresTemplate": True},
        )

    outbound = OutboundRequest(
        recipient_id=request.recipient_id,
        message_type=request.message_type,
        content=request.content,
        template_name=request.template_name,
        template_language=request.template_language,
        parameters=template_service.ordered_parameters(template, pairs),
        media_url=request.media_url,
        caption=request.caption,
    )
    response = await graph.send_message(sender_id, connection.access_token, adapter.build_outbound_payload(outbound))

    values = _message_values(connection, request, pairs, template)
    error = provider_error(response)
    if error:
        logger.warning(
            "Provider rejected message",
            platform=connection.platform,
            connection_id=connection.id,
            code=error.get("code"),
        )
        _record_failure(db, connection, conversation, values, error)
        raise ProviderError("Failed to send message", details=error)

    external_id = adapter.extract_message_id(response)
    sent_at = utcnow()
    conversation_id = conversation.id if conversation else None
    try:
        if conversation is None:
            conversation = get_or_create_conversation(db, connection, conversation_key)
            conversation_id = conversation.id
        message = SQLAlchemyMessageRepository(db, Message).add({
            **values,
            "conversation_id": conversation.id,
            "status": "sent",
            "external_id": external_id,
            "sent_at": sent_at,
        })
        conversations.record_message(conversation.id, at=sent_at, preview=_preview(request), inbound=False)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            "Message sent but not recorded",
            platform=adapter.platform,
            external_id=external_id,
        )
        return SendMessageResponse(
            messageId=external_id,
            conversationId=conversation_id,
            message=None,
            requiresTemplate=requires_template,
        )

    logger.info(
        "Message sent",
        platform=connection.platform,
        message_type=request.message_type,
        conversation_id=conversation.id,
    )
    return SendMessageResponse(
        messageId=external_id,
        conversationId=conversation.id,
        message=MessageRead.model_validate(message),
        requiresTemplate=requires_template,
    )
