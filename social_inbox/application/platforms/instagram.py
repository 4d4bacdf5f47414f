"""Instagram Direct adapter. Same Send API and webhook shape as Messenger."""

from typing import Optional

from social_inbox.application.platforms.base import InboundMessage
from social_inbox.application.platforms.messenger import MessengerAdapter
from social_inbox.domain.models.connection import Connection


class InstagramAdapter(MessengerAdapter):
    platform = "instagram"
    routing_column = "instagram_account_id"
    supported_types = frozenset({"text", "image", "video"})
    reusable_attachments = False

    def routing_key(self, connection: Connection) -> Optional[str]:
        return connection.instagram_account_id

    def _classify_extra(self, inbound: InboundMessage, message: dict) -> None:
        story = (message.get("reply_to") or {}).get("story")
        if story:
            inbound.message_type = "story_reply"
            inbound.media_url = story.get("url")
            inbound.reply_to_id = story.get("id")
