"""WhatsApp Business Cloud API adapter."""

from typing import List, Optional

from social_inbox.application.platforms.base import (
    InboundItem,
    InboundMessage,
    MalformedItem,
    OutboundRequest,
    StatusUpdate,
    digits_only,
)
from social_inbox.core.clock import from_unix
from social_inbox.domain.models.connection import Connection

MEDIA_MESSAGE_TYPES = ("image", "document", "audio", "video", "sticker")


class WhatsAppAdapter:
    platform = "whatsapp"
    routing_column = "phone_number_id"
    supported_types = frozenset({"text", "template", "image", "document", "video", "audio"})
    has_session_window = True

    def routing_key(self, connection: Connection) -> Optional[str]:
        return connection.phone_number_id

    def conversation_key(self, participant_id: str) -> str:
        return digits_only(participant_id)

    def extract_message_id(self, response: dict) -> Optional[str]:
        messages = response.get("messages") or []
        if messages and isinstance(messages[0], dict):
            return messages[0].get("id")
        return None

    # --- Inbound ---

    def normalize_inbound(self, payload: dict) -> List[InboundItem]:
        entries = payload.get("entry") or []
        if not isinstance(entries, list):
            return [MalformedItem(error="entry is not a list", raw=entries)]

        items: List[InboundItem] = []
        for entry in entries:
            try:
                for change in entry.get("changes") or []:
                    try:
                        items.extend(self._change(change))
                    except (KeyError, TypeError, ValueError, AttributeError) as e:
                        items.append(MalformedItem(error=f"change: {e!r}", raw=change))
            except (TypeError, AttributeError) as e:
                items.append(MalformedItem(error=f"entry: {e!r}", raw=entry))
        return items

    def _change(self, change: dict) -> List[InboundItem]:
        # template status and account updates share the subscription
        if change.get("field") != "messages":
            return []

        value = change.get("value") or {}
        phone_number_id = (value.get("metadata") or {}).get("phone_number_id")
        names = {
            c.get("wa_id"): (c.get("profile") or {}).get("name")
            for c in value.get("contacts") or []
            if isinstance(c, dict)
        }

        items: List[InboundItem] = []
        for raw in value.get("messages") or []:
            try:
                items.append(self._message(phone_number_id, raw, names))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                items.append(MalformedItem(error=f"message: {e!r}", raw=raw))

        for raw in value.get("statuses") or []:
            try:
                items.append(self._status(phone_number_id, raw))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                items.append(MalformedItem(error=f"status: {e!r}", raw=raw))
        return items

    def _message(self, phone_number_id: Optional[str], raw: dict, names: dict) -> InboundMessage:
        sender = raw["from"]
        message_type = raw.get("type") or "text"
        message = InboundMessage(
            routing_key=phone_number_id,
            sender_id=sender,
            sender_name=names.get(sender),
            external_id=raw["id"],
            message_type=message_type,
            reply_to_id=(raw.get("context") or {}).get("id"),
            sent_at=from_unix(raw.get("timestamp")),
        )

        if message_type == "text":
            message.body = raw["text"]["body"]
        elif message_type in MEDIA_MESSAGE_TYPES:
            media = raw[message_type]
            message.media_id = media.get("id")
            message.media_mime_type = media.get("mime_type")
            message.caption = media.get("caption")
            if message_type == "document":
                message.body = media.get("filename")
        elif message_type == "reaction":
            reaction = raw["reaction"]
            message.reaction_emoji = reaction.get("emoji")
            message.body = reaction.get("emoji")
            message.reply_to_id = reaction.get("message_id")
        elif message_type == "button":
            message.body = (raw.get("button") or {}).get("text")
        elif message_type == "interactive":
            interactive = raw.get("interactive") or {}
            reply = interactive.get("button_reply") or interactive.get("list_reply") or {}
            message.body = reply.get("title")
        return message

    def _status(self, phone_number_id: Optional[str], raw: dict) -> StatusUpdate:
        update = StatusUpdate(
            routing_key=phone_number_id,
            external_id=raw["id"],
            status=raw["status"],
            at=from_unix(raw.get("timestamp")),
        )
        errors = raw.get("errors") or []
        if errors:
            update.error_code = str(errors[0].get("code")) if errors[0].get("code") is not None else None
            update.error_message = errors[0].get("message") or errors[0].get("title")
        return update

    # --- Outbound ---

    def build_outbound_payload(self, request: OutboundRequest) -> dict:
        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": digits_only(request.recipient_id),
            "type": request.message_type,
        }

        if request.message_type == "text":
            payload["text"] = {"preview_url": False, "body": request.content}
        elif request.message_type == "template":
            template = {
                "name": request.template_name,
                "language": {"code": request.template_language},
            }
            if request.parameters:
                template["components"] = [
                    {
                        "type": "body",
                        "parameters": [{"type": "text", "text": value} for value in request.parameters],
                    }
                ]
            payload["template"] = template
        else:
            media = {"link": request.media_url}
            if request.caption and request.message_type in ("image", "video", "document"):
                media["caption"] = request.caption
            payload[request.message_type] = media
        return payload
