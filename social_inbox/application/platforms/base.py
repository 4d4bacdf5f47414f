"""
Platform adapter contract and the normalized shapes adapters produce.

Webhook payloads are turned into ``InboundItem``s before any database work,
and outbound requests are turned into provider payloads by the same
adapter, so the webhook and dispatch services never branch on platform.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, FrozenSet, List, Optional, Protocol, Union

from social_inbox.domain.models.connection import Connection

MEDIA_TYPES = frozenset({"image", "video", "audio", "document", "file"})


@dataclass
class InboundMessage:
    routing_key: Optional[str]
    sender_id: str
    external_id: str
    message_type: str
    sender_name: Optional[str] = None
    body: Optional[str] = None
    caption: Optional[str] = None
    media_id: Optional[str] = None
    media_url: Optional[str] = None
    media_mime_type: Optional[str] = None
    reaction_emoji: Optional[str] = None
    reply_to_id: Optional[str] = None
    sent_at: Optional[datetime] = None

    @property
    def preview(self) -> str:
        return self.body or self.caption or f"[{self.message_type}]"


@dataclass
class StatusUpdate:
    routing_key: Optional[str]
    external_id: str
    status: str
    at: Optional[datetime] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None


@dataclass
class IgnoredItem:
    """Events we receive but do not store (echoes, receipts, postbacks)."""
    reason: str


@dataclass
class MalformedItem:
    error: str
    raw: Any = None


InboundItem = Union[InboundMessage, StatusUpdate, IgnoredItem, MalformedItem]


@dataclass
class OutboundRequest:
    recipient_id: str
    message_type: str
    content: Optional[str] = None
    template_name: Optional[str] = None
    template_language: Optional[str] = None
    parameters: List[str] = field(default_factory=list)
    media_url: Optional[str] = None
    caption: Optional[str] = None


class PlatformAdapter(Protocol):
    platform: str
    # Connection column matched against the webhook routing key
    routing_column: str
    supported_types: FrozenSet[str]
    # Only WhatsApp has a customer service window
    has_session_window: bool

    def normalize_inbound(self, payload: dict) -> List[InboundItem]:
        ...

    def build_outbound_payload(self, request: OutboundRequest) -> dict:
        ...

    def routing_key(self, connection: Connection) -> Optional[str]:
        ...

    def conversation_key(self, participant_id: str) -> str:
        ...

    def extract_message_id(self, response: dict) -> Optional[str]:
        ...


def digits_only(value: str) -> str:
    return re.sub(r"\D", "", value or "")
