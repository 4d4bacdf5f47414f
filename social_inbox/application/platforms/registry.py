"""Adapter lookup by platform tag and by webhook ``object``."""

from typing import Dict, Optional

from social_inbox.application.platforms.base import PlatformAdapter
from social_inbox.application.platforms.instagram import InstagramAdapter
from social_inbox.application.platforms.messenger import MessengerAdapter
from social_inbox.application.platforms.whatsapp import WhatsAppAdapter
from social_inbox.core.exceptions import ValidationError

ADAPTERS: Dict[str, PlatformAdapter] = {
    "whatsapp": WhatsAppAdapter(),
    "messenger": MessengerAdapter(),
    "instagram": InstagramAdapter(),
}

WEBHOOK_OBJECTS = {
    "whatsapp_business_account": "whatsapp",
    "page": "messenger",
    "instagram": "instagram",
}

PLATFORMS = tuple(ADAPTERS)


def get_adapter(platform: str) -> PlatformAdapter:
    adapter = ADAPTERS.get(platform)
    if adapter is None:
        raise ValidationError(f"Unsupported platform: {platform}")
    return adapter


def platform_for_object(webhook_object: Optional[str]) -> Optional[str]:
    return WEBHOOK_OBJECTS.get(webhook_object or "")
