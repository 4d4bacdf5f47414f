"""Facebook Messenger adapter (Send API and page webhooks)."""

from typing import List, Optional

from social_inbox.application.platforms.base import (
    IgnoredItem,
    InboundItem,
    InboundMessage,
    MalformedItem,
    OutboundRequest,
)
from social_inbox.core.clock import from_unix
from social_inbox.domain.models.connection import Connection

# The Send API calls documents "file"
ATTACHMENT_TYPES = {"image": "image", "video": "video", "audio": "audio", "file": "file", "document": "file"}


class MessengerAdapter:
    platform = "messenger"
    routing_column = "page_id"
    supported_types = frozenset({"text", "image", "video", "audio", "file", "document"})
    has_session_window = False
    reusable_attachments = True

    def routing_key(self, connection: Connection) -> Optional[str]:
        return connection.page_id

    def conversation_key(self, participant_id: str) -> str:
        return participant_id

    def extract_message_id(self, response: dict) -> Optional[str]:
        return response.get("message_id")

    # --- Inbound ---

    def normalize_inbound(self, payload: dict) -> List[InboundItem]:
        entries = payload.get("entry") or []
        if not isinstance(entries, list):
            return [MalformedItem(error="entry is not a list", raw=entries)]

        items: List[InboundItem] = []
        for entry in entries:
            try:
                routing_key = entry.get("id")
                for event in entry.get("messaging") or []:
                    try:
                        items.append(self._event(routing_key, event))
                    except (KeyError, TypeError, ValueError, AttributeError) as e:
                        items.append(MalformedItem(error=f"messaging: {e!r}", raw=event))
            except (TypeError, AttributeError) as e:
                items.append(MalformedItem(error=f"entry: {e!r}", raw=entry))
        return items

    def _event(self, routing_key: Optional[str], event: dict) -> InboundItem:
        message = event.get("message")
        if message is None:
            # delivery / read receipts, postbacks, reactions on page messages
            return IgnoredItem(reason="not a message")
        if message.get("is_echo"):
            return IgnoredItem(reason="echo")

        inbound = InboundMessage(
            routing_key=routing_key,
            sender_id=event["sender"]["id"],
            external_id=message["mid"],
            message_type="text",
            body=message.get("text"),
            sent_at=from_unix(event.get("timestamp")),
        )

        reply_to = message.get("reply_to") or {}
        if reply_to.get("mid"):
            inbound.reply_to_id = reply_to["mid"]

        attachments = message.get("attachments") or []
        if message.get("sticker_id"):
            inbound.message_type = "sticker"
            if attachments:
                inbound.media_url = (attachments[0].get("payload") or {}).get("url")
        elif attachments:
            attachment = attachments[0]
            inbound.message_type = attachment.get("type") or "file"
            inbound.media_url = (attachment.get("payload") or {}).get("url")

        self._classify_extra(inbound, message)
        return inbound

    def _classify_extra(self, inbound: InboundMessage, message: dict) -> None:
        """Hook for platform-specific message shapes."""

    # --- Outbound ---

    def build_outbound_payload(self, request: OutboundRequest) -> dict:
        if request.message_type == "text":
            message = {"text": request.content}
        else:
            attachment_payload = {"url": request.media_url}
            if self.reusable_attachments:
                attachment_payload["is_reusable"] = True
            message = {
                "attachment": {
                    "type": ATTACHMENT_TYPES[request.message_type],
                    "payload": attachment_payload,
                }
            }
        return {
            "recipient": {"id": request.recipient_id},
            "message": message,
            "messaging_type": "RESPONSE",
        }
