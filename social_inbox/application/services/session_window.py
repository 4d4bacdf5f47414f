"""WhatsApp customer service window.

A WhatsApp conversation is ACTIVE while ``now <= session_expires_at`` and
EXPIRED otherwise, including when no inbound message was ever received.
Inside the window any message type may be sent; outside it only approved
templates. Only inbound messages move the window, and only forward.
Messenger and Instagram have no window.
"""

from datetime import datetime, timedelta
from typing import Optional

from social_inbox.config import get_settings
from social_inbox.core.clock import ensure_utc, utcnow

settings = get_settings()

ACTIVE = "active"
EXPIRED = "expired"


def window_length() -> timedelta:
    return timedelta(hours=settings.SESSION_WINDOW_HOURS)


def session_state(platform: str, session_expires_at: Optional[datetime], now: Optional[datetime] = None) -> Optional[str]:
    """ACTIVE / EXPIRED for WhatsApp, None for platforms without a window."""
    if platform != "whatsapp":
        return None
    if session_expires_at is None:
        return EXPIRED
    now = now or utcnow()
    return ACTIVE if now <= ensure_utc(session_expires_at) else EXPIRED


def requires_template(platform: str, session_expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    return session_state(platform, session_expires_at, now) == EXPIRED


def extended_expiry(received_at: Optional[datetime] = None) -> datetime:
    """Expiry a new inbound message grants; the store keeps the later of this and the current value."""
    return (received_at or utcnow()) + window_length()


def describe(conversation, now: Optional[datetime] = None) -> dict:
    """Derived fields for a conversation read."""
    return {
        "requires_template": requires_template(conversation.platform, conversation.session_expires_at, now),
        "session_state": session_state(conversation.platform, conversation.session_expires_at, now),
    }
