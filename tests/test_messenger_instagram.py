"""Messenger and Instagram webhook ingestion."""

from conftest import make_connection, post_webhook
from social_inbox.domain.models.conversation import Conversation
from social_inbox.domain.models.message import Message


def page_payload(events, page_id="PAGE-1", obj="page"):
    return {"object": obj, "entry": [{"id": page_id, "time": 1700000000000, "messaging": events}]}


def messenger_event(mid, message=None, sender="PSID-9", recipient="PAGE-1"):
    return {
        "sender": {"id": sender},
        "recipient": {"id": recipient},
        "timestamp": 1700000000000,
        "message": {"mid": mid, **(message or {"text": "hello page"})},
    }


def test_messenger_text_is_stored(client, db):
    connection = make_connection(db, platform="messenger")

    assert post_webhook(client, page_payload([messenger_event("m_1")])).status_code == 200

    db.expire_all()
    conversation = db.query(Conversation).one()
    assert conversation.connection_id == connection.id
    assert conversation.platform == "messenger"
    assert conversation.platform_conversation_id == "PSID-9"
    assert conversation.session_expires_at is None
    assert conversation.contact_id is None

    message = db.query(Message).one()
    assert message.platform == "messenger"
    assert message.body == "hello page"
    assert message.sent_at is not None
    assert message.sent_at.year == 2023


def test_messenger_echo_and_receipts_are_skipped(client, db):
    make_connection(db, platform="messenger")
    events = [
        messenger_event("m_echo", {"text": "sent by page", "is_echo": True}, sender="PAGE-1", recipient="PSID-9"),
        {"sender": {"id": "PSID-9"}, "recipient": {"id": "PAGE-1"}, "delivery": {"mids": ["m_0"]}},
        {"sender": {"id": "PSID-9"}, "recipient": {"id": "PAGE-1"}, "read": {"watermark": 1700000000000}},
    ]

    assert post_webhook(client, page_payload(events)).status_code == 200
    assert db.query(Message).count() == 0
    assert db.query(Conversation).count() == 0


def test_messenger_attachment_and_sticker(client, db):
    make_connection(db, platform="messenger")
    events = [
        messenger_event("m_img", {"attachments": [{"type": "image", "payload": {"url": "https://cdn.example.com/a.jpg"}}]}),
        messenger_event(
            "m_sticker",
            {"sticker_id": 369239263222822, "attachments": [{"type": "image", "payload": {"url": "https://cdn.example.com/s.png"}}]},
        ),
    ]

    assert post_webhook(client, page_payload(events)).status_code == 200

    db.expire_all()
    by_id = {m.external_id: m for m in db.query(Message).all()}
    assert by_id["m_img"].message_type == "image"
    assert by_id["m_img"].media_url == "https://cdn.example.com/a.jpg"
    assert by_id["m_sticker"].message_type == "sticker"
    assert db.query(Conversation).one().message_count == 2


def test_instagram_story_reply(client, db):
    connection = make_connection(db, platform="instagram")
    event = messenger_event(
        "ig_1",
        {"text": "nice!", "reply_to": {"story": {"url": "https://cdn.example.com/story.mp4", "id": "STORY-1"}}},
        sender="IGSID-1",
        recipient="IG-1",
    )

    assert post_webhook(client, page_payload([event], page_id="IG-1", obj="instagram")).status_code == 200

    db.expire_all()
    message = db.query(Message).one()
    assert message.platform == "instagram"
    assert message.message_type == "story_reply"
    assert message.media_url == "https://cdn.example.com/story.mp4"
    assert message.body == "nice!"
    assert db.query(Conversation).one().connection_id == connection.id


def test_instagram_routes_on_account_id_not_page(client, db):
    make_connection(db, platform="instagram")
    event = messenger_event("ig_2", sender="IGSID-1", recipient="PAGE-1")

    # entry.id is the page, not the Instagram account: no connection matches
    assert post_webhook(client, page_payload([event], page_id="PAGE-1", obj="instagram")).status_code == 200
    assert db.query(Message).count() == 0
