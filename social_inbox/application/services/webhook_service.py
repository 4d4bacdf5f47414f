"""Webhook service — verifies Meta webhooks and turns their items into messages.

Delivery is at-least-once and unordered, so every write here is idempotent:
- messages are deduplicated on (platform, external_id)
- conversations are created with insert-on-conflict and re-read
- statuses only move forward (sent -> delivered -> read, anything -> failed)
- the session window only extends

Each item is committed on its own. A failing item is rolled back and
reported as ``Failed``; its siblings are unaffected.
"""

import hashlib
import hmac
from typing import List, Optional

import structlog
from sqlalchemy.orm import Session

from social_inbox.application.platforms.base import (
    IgnoredItem,
    InboundItem,
    InboundMessage,
    MalformedItem,
    PlatformAdapter,
    StatusUpdate,
)
from social_inbox.application.platforms.registry import get_adapter, platform_for_object
from social_inbox.application.services import session_window
from social_inbox.application.services.conversation_service import get_or_create_conversation
from social_inbox.application.services.results import Failed, Ok, Outcome, Skipped, summarize
from social_inbox.config import get_settings
from social_inbox.core.clock import utcnow
from social_inbox.domain.models.connection import Connection
from social_inbox.domain.models.conversation import Conversation
from social_inbox.domain.models.message import Message
from social_inbox.infrastructure.meta_graph import MetaGraphClient
from social_inbox.infrastructure.repositories.connection_repository import SQLAlchemyConnectionRepository
from social_inbox.infrastructure.repositories.conversation_repository import SQLAlchemyConversationRepository
from social_inbox.infrastructure.repositories.message_repository import SQLAlchemyMessageRepository
from social_inbox.infrastructure.repositories.webhook_event_repository import SQLAlchemyWebhookEventRepository

settings = get_settings()
logger = structlog.get_logger(__name__)

SIGNATURE_PREFIX = "sha256="

# Statuses a message may hold before moving to the key status
STATUS_PREDECESSORS = {
    "delivered": ("sent",),
    "read": ("sent", "delivered"),
    "failed": ("sent", "delivered", "read"),
}
STATUS_TIMESTAMPS = {"delivered": "delivered_at", "read": "read_at"}


def verify_subscription(mode: Optional[str], token: Optional[str]) -> bool:
    """Meta's GET handshake: ``hub.mode=subscribe`` with our verify token."""
    if mode != "subscribe" or not token or not settings.META_VERIFY_TOKEN:
        return False
    return hmac.compare_digest(token, settings.META_VERIFY_TOKEN)


def verify_signature(raw_body: bytes, signature_header: Optional[str], secret: str) -> bool:
    """Check ``X-Hub-Signature-256`` against an HMAC-SHA256 of the raw request body."""
    if not signature_header or not signature_header.startswith(SIGNATURE_PREFIX):
        return False
    expected = hmac.new(secret.encode(), raw_body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature_header[len(SIGNATURE_PREFIX):])


async def handle_webhook(db: Session, payload: dict, graph: MetaGraphClient) -> dict:
    """Store the raw event, route it by ``object`` and process every item."""
    webhook_object = str(payload.get("object") or "unknown")
    platform = platform_for_object(webhook_object)

    events = SQLAlchemyWebhookEventRepository(db)
    event = events.add(platform, webhook_object, payload)
    db.commit()

    outcomes: List[Outcome] = []
    if platform is None:
        logger.info("Ignoring webhook for unsupported object", object=webhook_object)
    else:
        adapter = get_adapter(platform)
        for item in adapter.normalize_inbound(payload):
            outcomes.append(await process_item(db, adapter, item, graph))

    events.mark_processed(event.id)
    db.commit()

    summary = summarize(outcomes)
    logger.info("Webhook processed", platform=platform, event_id=event.id, **summary)
    return summary


async def process_item(
    db: Session,
    adapter: PlatformAdapter,
    item: InboundItem,
    graph: MetaGraphClient,
) -> Outcome:
    if isinstance(item, IgnoredItem):
        return Skipped(item.reason)
    if isinstance(item, MalformedItem):
        logger.warning("Malformed webhook item", platform=adapter.platform, error=item.error)
        return Failed(item.error)

    try:
        if isinstance(item, StatusUpdate):
            outcome = apply_status(db, adapter, item)
        else:
            outcome = await store_inbound(db, adapter, item, graph)
        db.commit()
        return outcome
    except Exception as e:
        db.rollback()
        logger.exception("Webhook item failed", platform=adapter.platform, error=str(e))
        return Failed(str(e))


def resolve_connection(db: Session, adapter: PlatformAdapter, routing_key: Optional[str]) -> Optional[Connection]:
    if not routing_key:
        return None
    repo = SQLAlchemyConnectionRepository(db, Connection)
    return repo.find_active_by_route(adapter.platform, adapter.routing_column, routing_key)


async def store_inbound(
    db: Session,
    adapter: PlatformAdapter,
    item: InboundMessage,
    graph: MetaGraphClient,
) -> Outcome:
    connection = resolve_connection(db, adapter, item.routing_key)
    if connection is None:
        logger.info("No active connection for webhook item", platform=adapter.platform, routing_key=item.routing_key)
        return Skipped("no connection")

    messages = SQLAlchemyMessageRepository(db, Message)
    # Redelivery: skip the media lookup, the insert below would be a no-op anyway
    if messages.exists(adapter.platform, item.external_id):
        return Skipped("duplicate")

    if item.media_id and not item.media_url and connection.access_token:
        item.media_url = await graph.get_media_url(item.media_id, connection.access_token)

    conversation = get_or_create_conversation(
        db, connection, adapter.conversation_key(item.sender_id), item.sender_name
    )

    received_at = utcnow()
    message_id = messages.insert_if_absent({
        "workspace_id": connection.workspace_id,
        "connection_id": connection.id,
        "conversation_id": conversation.id,
        "platform": adapter.platform,
        "direction": "inbound",
        "message_type": item.message_type,
        "body": item.body,
        "caption": item.caption,
        "media_url": item.media_url,
        "media_id": item.media_id,
        "media_mime_type": item.media_mime_type,
        "reaction_emoji": item.reaction_emoji,
        "reply_to_id": item.reply_to_id,
        "status": "delivered",
        "external_id": item.external_id,
        "sent_at": item.sent_at or received_at,
    })
    if message_id is None:
        return Skipped("duplicate")

    window_until = session_window.extended_expiry(received_at) if adapter.has_session_window else None
    SQLAlchemyConversationRepository(db, Conversation).record_message(
        conversation.id,
        at=item.sent_at or received_at,
        preview=item.preview,
        inbound=True,
        window_until=window_until,
    )
    logger.info(
        "Inbound message stored",
        platform=adapter.platform,
        message_type=item.message_type,
        conversation_id=conversation.id,
    )
    return Ok(message_id)


def apply_status(db: Session, adapter: PlatformAdapter, item: StatusUpdate) -> Outcome:
    allowed_from = STATUS_PREDECESSORS.get(item.status)
    if allowed_from is None:
        return Skipped(f"status {item.status} not tracked")

    if resolve_connection(db, adapter, item.routing_key) is None:
        return Skipped("no connection")

    values = {}
    column = STATUS_TIMESTAMPS.get(item.status)
    if column:
        values[column] = item.at or utcnow()
    if item.status == "failed":
        values["error_code"] = item.error_code
        values["error_message"] = item.error_message

    messages = SQLAlchemyMessageRepository(db, Message)
    if not messages.advance_status(adapter.platform, item.external_id, item.status, allowed_from, values):
        return Skipped("stale or unknown message")
    return Ok(item.status)
