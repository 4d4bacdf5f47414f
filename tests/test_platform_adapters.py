"""Payload normalization and outbound payload shapes per platform."""

import pytest

from social_inbox.application.platforms.base import (
    IgnoredItem,
    InboundMessage,
    MalformedItem,
    OutboundRequest,
    StatusUpdate,
)
from social_inbox.application.platforms.registry import get_adapter, platform_for_object
from social_inbox.application.services.results import Failed, Ok, Skipped, summarize
from social_inbox.core.exceptions import ValidationError


def test_object_routing():
    assert platform_for_object("whatsapp_business_account") == "whatsapp"
    assert platform_for_object("page") == "messenger"
    assert platform_for_object("instagram") == "instagram"
    assert platform_for_object("permissions") is None


def test_unknown_platform():
    with pytest.raises(ValidationError):
        get_adapter("telegram")


def test_whatsapp_normalizes_messages_and_statuses():
    payload = {
        "object": "whatsapp_business_account",
        "entry": [{
            "changes": [{
                "field": "messages",
                "value": {
                    "metadata": {"phone_number_id": "PNID-1"},
                    "contacts": [{"wa_id": "5511", "profile": {"name": "Ana"}}],
                    "messages": [
                        {"from": "5511", "id": "w1", "timestamp": "1700000000", "type": "text",
                         "text": {"body": "hi"}, "context": {"id": "w0"}},
                        {"from": "5511", "id": "w2", "timestamp": "1700000000", "type": "location",
                         "location": {"latitude": 1, "longitude": 2}},
                        {"from": "5511", "id": "w3", "type": "text"},
                    ],
                    "statuses": [{"id": "w9", "status": "delivered", "timestamp": "1700000001"}],
                },
            }],
        }],
    }
    items = get_adapter("whatsapp").normalize_inbound(payload)

    text, location, broken, status = items
    assert isinstance(text, InboundMessage)
    assert (text.routing_key, text.sender_name, text.body, text.reply_to_id) == ("PNID-1", "Ana", "hi", "w0")
    assert location.message_type == "location"
    assert location.preview == "[location]"
    assert isinstance(broken, MalformedItem)
    assert isinstance(status, StatusUpdate)
    assert status.status == "delivered"


def test_messenger_ignores_postbacks():
    payload = {"entry": [{"id": "PAGE-1", "messaging": [
        {"sender": {"id": "P"}, "recipient": {"id": "PAGE-1"}, "postback": {"payload": "GET_STARTED"}},
    ]}]}
    assert get_adapter("messenger").normalize_inbound(payload) == [IgnoredItem(reason="not a message")]


def test_whatsapp_media_payload_carries_caption():
    payload = get_adapter("whatsapp").build_outbound_payload(
        OutboundRequest(recipient_id="+1 555 0100", message_type="image",
                        media_url="https://x/p.jpg", caption="Look")
    )
    assert payload["to"] == "15550100"
    assert payload["image"] == {"link": "https://x/p.jpg", "caption": "Look"}


def test_instagram_attachment_has_no_reuse_flag():
    payload = get_adapter("instagram").build_outbound_payload(
        OutboundRequest(recipient_id="IGSID", message_type="video", media_url="https://x/v.mp4")
    )
    assert payload["message"] == {"attachment": {"type": "video", "payload": {"url": "https://x/v.mp4"}}}


def test_message_ids():
    assert get_adapter("whatsapp").extract_message_id({"messages": [{"id": "wamid.1"}]}) == "wamid.1"
    assert get_adapter("messenger").extract_message_id({"message_id": "m_1"}) == "m_1"
    assert get_adapter("whatsapp").extract_message_id({}) is None


def test_summarize_outcomes():
    summary = summarize([Ok(), Skipped("duplicate"), Skipped("duplicate"), Failed("boom")])
    assert summary == {"ok": 1, "skipped": 2, "failed": 1, "skip_reasons": {"duplicate": 2}}


def test_messenger_garbage_entry_is_malformed_not_fatal():
    good = {"sender": {"id": "P"}, "recipient": {"id": "PAGE-1"}, "message": {"mid": "m_1", "text": "hi"}}
    payload = {"entry": ["garbage", {"id": "PAGE-1", "messaging": 3}, {"id": "PAGE-1", "messaging": [good]}]}

    first, second, message = get_adapter("messenger").normalize_inbound(payload)
    assert isinstance(first, MalformedItem)
    assert isinstance(second, MalformedItem)
    assert isinstance(message, InboundMessage)
    assert message.external_id == "m_1"


def test_whatsapp_skips_non_message_fields():
    payload = {"entry": [{"changes": [{"field": "account_update", "value": {"messages": [{"id": "x"}]}}]}]}
    assert get_adapter("whatsapp").normalize_inbound(payload) == []
