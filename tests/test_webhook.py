"""Webhook handshake, signature checks and WhatsApp ingestion."""

from datetime import timedelta

from conftest import (
    make_connection,
    post_webhook,
    sign,
    whatsapp_payload,
    whatsapp_status,
    whatsapp_text,
)
from social_inbox.core.clock import ensure_utc, from_unix, utcnow
from social_inbox.domain.models.contact import Contact
from social_inbox.domain.models.conversation import Conversation
from social_inbox.domain.models.message import Message
from social_inbox.domain.models.webhook_event import WebhookEvent


def test_handshake_echoes_challenge(client):
    response = client.get(
        "/social-webhook",
        params={"hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "12345"},
    )
    assert response.status_code == 200
    assert response.text == "12345"


def test_handshake_rejects_wrong_token(client):
    response = client.get(
        "/social-webhook",
        params={"hub.mode": "subscribe", "hub.verify_token": "nope", "hub.challenge": "12345"},
    )
    assert response.status_code == 403


def test_missing_signature_is_rejected(client, db):
    response = client.post("/social-webhook", json=whatsapp_payload(messages=[whatsapp_text("wamid.1")]))
    assert response.status_code == 401
    assert db.query(WebhookEvent).count() == 0


def test_bad_signature_is_rejected(client):
    response = post_webhook(client, whatsapp_payload(messages=[whatsapp_text("wamid.1")]), secret="wrong")
    assert response.status_code == 401


def test_malformed_json_is_rejected(client):
    body = b"{not json"
    response = client.post(
        "/social-webhook",
        content=body,
        headers={"X-Hub-Signature-256": sign(body), "Content-Type": "application/json"},
    )
    assert response.status_code == 400


def test_unknown_object_is_a_noop(client, db):
    response = post_webhook(client, {"object": "user", "entry": []})
    assert response.status_code == 200
    assert response.json() == {"success": True}

    event = db.query(WebhookEvent).one()
    assert event.processed is True
    assert event.platform is None


def test_inbound_text_creates_conversation_and_matches_contact(client, db):
    connection = make_connection(db)
    db.add(Contact(id="contact-1", workspace_id="ws-1", name="Ana", phone="5511987654321"))
    db.commit()

    payload = whatsapp_payload(
        messages=[whatsapp_text("wamid.A", body="Hi there")],
        contacts=[{"wa_id": "5511987654321", "profile": {"name": "Ana"}}],
    )
    response = post_webhook(client, payload)
    assert response.status_code == 200
    assert response.json() == {"success": True}

    db.expire_all()
    conversation = db.query(Conversation).one()
    assert conversation.connection_id == connection.id
    assert conversation.platform_conversation_id == "5511987654321"
    assert conversation.platform_user_name == "Ana"
    assert conversation.contact_id == "contact-1"
    assert conversation.message_count == 1
    assert conversation.unread_count == 1
    assert conversation.last_message_preview == "Hi there"

    expires = ensure_utc(conversation.session_expires_at)
    assert abs(expires - (utcnow() + timedelta(hours=24))) < timedelta(minutes=1)

    message = db.query(Message).one()
    assert message.direction == "inbound"
    assert message.message_type == "text"
    assert message.body == "Hi there"
    assert message.external_id == "wamid.A"
    assert message.conversation_id == conversation.id

    assert db.query(WebhookEvent).one().processed is True


def test_redelivery_is_idempotent(client, db):
    make_connection(db)
    payload = whatsapp_payload(messages=[whatsapp_text("wamid.dup")])

    assert post_webhook(client, payload).status_code == 200
    assert post_webhook(client, payload).status_code == 200

    db.expire_all()
    assert db.query(Message).count() == 1
    conversation = db.query(Conversation).one()
    assert conversation.message_count == 1
    assert conversation.unread_count == 1
    assert db.query(WebhookEvent).count() == 2


def test_no_matching_connection_is_skipped(client, db):
    make_connection(db, status="disconnected")
    response = post_webhook(client, whatsapp_payload(messages=[whatsapp_text("wamid.x")]))

    assert response.status_code == 200
    assert db.query(Message).count() == 0
    assert db.query(Conversation).count() == 0


def test_malformed_item_does_not_abort_siblings(client, db):
    make_connection(db)
    broken = {"from": "5511987654321", "timestamp": "1700000000", "type": "text", "text": {"body": "no id"}}
    payload = whatsapp_payload(messages=[broken, whatsapp_text("wamid.ok", body="still here")])

    response = post_webhook(client, payload)
    assert response.status_code == 200

    db.expire_all()
    message = db.query(Message).one()
    assert message.external_id == "wamid.ok"


def test_media_url_resolved_through_graph(client, db, graph):
    make_connection(db)
    graph.on("GET", "MEDIA-1", json={"url": "https://lookaside.example.com/media-1", "mime_type": "image/jpeg"})
    image = {
        "from": "5511987654321",
        "id": "wamid.img",
        "timestamp": "1700000000",
        "type": "image",
        "image": {"id": "MEDIA-1", "mime_type": "image/jpeg", "caption": "look"},
    }

    assert post_webhook(client, whatsapp_payload(messages=[image])).status_code == 200

    db.expire_all()
    message = db.query(Message).one()
    assert message.message_type == "image"
    assert message.media_id == "MEDIA-1"
    assert message.media_url == "https://lookaside.example.com/media-1"
    assert message.caption == "look"
    assert graph.calls("GET", "MEDIA-1")[0].headers["Authorization"] == "Bearer conn-token"


def test_media_lookup_failure_still_stores_message(client, db, graph):
    make_connection(db)
    graph.on("GET", "MEDIA-2", json={"error": {"message": "Unsupported get request", "code": 100}}, status=400)
    audio = {
        "from": "5511987654321",
        "id": "wamid.audio",
        "timestamp": "1700000000",
        "type": "audio",
        "audio": {"id": "MEDIA-2", "mime_type": "audio/ogg"},
    }

    assert post_webhook(client, whatsapp_payload(messages=[audio])).status_code == 200

    db.expire_all()
    message = db.query(Message).one()
    assert message.message_type == "audio"
    assert message.media_url is None


def test_reaction_keeps_emoji_as_body(client, db):
    make_connection(db)
    reaction = {
        "from": "5511987654321",
        "id": "wamid.react",
        "timestamp": "1700000000",
        "type": "reaction",
        "reaction": {"message_id": "wamid.original", "emoji": "👍"},
    }

    assert post_webhook(client, whatsapp_payload(messages=[reaction])).status_code == 200

    db.expire_all()
    message = db.query(Message).one()
    assert message.message_type == "reaction"
    assert message.body == "👍"
    assert message.reaction_emoji == "👍"
    assert message.reply_to_id == "wamid.original"


def _outbound(db, connection, wamid, status="sent"):
    message = Message(
        workspace_id=connection.workspace_id,
        connection_id=connection.id,
        platform="whatsapp",
        direction="outbound",
        message_type="text",
        body="hello",
        status=status,
        external_id=wamid,
    )
    db.add(message)
    db.commit()
    return message


def test_statuses_move_forward_only(client, db):
    connection = make_connection(db)
    _outbound(db, connection, "wamid.out")

    post_webhook(client, whatsapp_payload(statuses=[whatsapp_status("wamid.out", "delivered")]))
    post_webhook(client, whatsapp_payload(statuses=[whatsapp_status("wamid.out", "read")]))
    # Late redelivery of "delivered" must not regress "read"
    post_webhook(client, whatsapp_payload(statuses=[whatsapp_status("wamid.out", "delivered")]))

    db.expire_all()
    message = db.query(Message).one()
    assert message.status == "read"
    assert message.delivered_at is not None
    assert message.read_at is not None


def test_read_before_delivered(client, db):
    connection = make_connection(db)
    _outbound(db, connection, "wamid.ooo")

    post_webhook(
        client,
        whatsapp_payload(statuses=[
            whatsapp_status("wamid.ooo", "read", timestamp="1700000200"),
            whatsapp_status("wamid.ooo", "delivered", timestamp="1700000100"),
        ]),
    )

    db.expire_all()
    assert db.query(Message).one().status == "read"


def test_failed_status_records_error_and_is_terminal(client, db):
    connection = make_connection(db)
    _outbound(db, connection, "wamid.fail")

    errors = [{"code": 131026, "title": "Message undeliverable", "message": "Message undeliverable"}]
    post_webhook(client, whatsapp_payload(statuses=[whatsapp_status("wamid.fail", "failed", errors=errors)]))
    post_webhook(client, whatsapp_payload(statuses=[whatsapp_status("wamid.fail", "read")]))

    db.expire_all()
    message = db.query(Message).one()
    assert message.status == "failed"
    assert message.error_code == "131026"
    assert message.error_message == "Message undeliverable"


def test_status_for_unknown_message_is_skipped(client, db):
    make_connection(db)
    response = post_webhook(client, whatsapp_payload(statuses=[whatsapp_status("wamid.none", "delivered")]))
    assert response.status_code == 200
    assert db.query(Message).count() == 0


def test_garbage_entries_do_not_abort_valid_ones(client, db):
    make_connection(db)
    payload = whatsapp_payload(messages=[whatsapp_text("wamid.good", body="kept")])
    payload["entry"] = [
        "garbage",
        {"id": "WABA-1", "changes": ["not a change", {"field": "messages", "value": "not a value"}]},
        {"id": "WABA-1", "changes": [{"field": "messages", "value": {"metadata": "nope", "contacts": [7]}}]},
    ] + payload["entry"]

    response = post_webhook(client, payload)
    assert response.status_code == 200
    assert response.json() == {"success": True}

    db.expire_all()
    assert db.query(Message).one().external_id == "wamid.good"
    assert db.query(WebhookEvent).one().processed is True


def test_entry_that_is_not_a_list_is_acknowledged(client, db):
    make_connection(db)
    response = post_webhook(client, {"object": "whatsapp_business_account", "entry": 5})

    assert response.status_code == 200
    assert db.query(WebhookEvent).one().processed is True


def test_non_message_fields_are_not_walked(client, db):
    make_connection(db)
    payload = whatsapp_payload(messages=[whatsapp_text("wamid.tpl")])
    payload["entry"][0]["changes"][0]["field"] = "message_template_status_update"

    assert post_webhook(client, payload).status_code == 200
    assert db.query(Message).count() == 0
    assert db.query(Conversation).count() == 0


def test_late_older_message_keeps_latest_preview(client, db):
    make_connection(db)
    newer = whatsapp_text("wamid.new", body="newer", timestamp="1700003600")
    older = whatsapp_text("wamid.old", body="older", timestamp="1700000000")

    assert post_webhook(client, whatsapp_payload(messages=[newer])).status_code == 200
    assert post_webhook(client, whatsapp_payload(messages=[older])).status_code == 200

    db.expire_all()
    conversation = db.query(Conversation).one()
    assert conversation.message_count == 2
    assert conversation.unread_count == 2
    assert conversation.last_message_preview == "newer"
    assert ensure_utc(conversation.last_message_at) == from_unix("1700003600")
    assert ensure_utc(conversation.last_inbound_at) == from_unix("1700003600")
