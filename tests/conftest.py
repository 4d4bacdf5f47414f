"""Shared fixtures: in-memory SQLite, a stubbed Graph API and bearer tokens."""

import hashlib
import hmac
import json
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["META_APP_ID"] = "app-123"
os.environ["META_APP_SECRET"] = "app-secret"
os.environ["META_VERIFY_TOKEN"] = "verify-me"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["PUBLIC_BASE_URL"] = "https://inbox.example.com"
os.environ["APP_URL"] = "https://app.example.com"
os.environ["META_GRAPH_API_VERSION"] = "v18.0"

import httpx
import pytest
from fastapi.testclient import TestClient

from social_inbox.application.services.auth_service import create_access_token
from social_inbox.domain.models.connection import Connection
from social_inbox.domain.models.conversation import Conversation
from social_inbox.infrastructure.database import Base, SessionLocal, engine
from social_inbox.infrastructure.meta_graph import MetaGraphClient
from social_inbox.interfaces.api.deps import get_graph_client
from social_inbox.main import app

APP_SECRET = "app-secret"
USER_ID = "user-1"
WORKSPACE_ID = "ws-1"


class GraphStub:
    """Routes Graph API calls by (method, path without version) to canned responses."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def on(self, method, path, json=None, status=200, error=None):
        self.routes[(method, path)] = (status, json, error)

    def calls(self, method, path):
        return [r for r in self.requests if r.method == method and self._path(r) == path]

    @staticmethod
    def _path(request):
        return request.url.path.split("/", 2)[2]

    def handler(self, request):
        self.requests.append(request)
        key = (request.method, self._path(request))
        if key not in self.routes:
            return httpx.Response(400, json={"error": {"message": f"Unmocked {key}", "code": 100}})
        status, body, error = self.routes[key]
        if error is not None:
            raise error("connection refused", request=request)
        if callable(body):
            body = body(request)
        return httpx.Response(status, json=body)

    def client(self):
        return MetaGraphClient(transport=httpx.MockTransport(self.handler))

    @staticmethod
    def json_of(request):
        return json.loads(request.content)


@pytest.fixture(autouse=True)
def tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def graph():
    stub = GraphStub()
    app.dependency_overrides[get_graph_client] = stub.client
    yield stub
    app.dependency_overrides.clear()


@pytest.fixture
def client(graph):
    return TestClient(app)


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {create_access_token({'sub': USER_ID})}"}


def make_connection(db, **overrides):
    platform = overrides.pop("platform", "whatsapp")
    defaults = {
        "whatsapp": {"platform_account_id": "PNID-1", "phone_number_id": "PNID-1", "whatsapp_business_id": "WABA-1"},
        "messenger": {"platform_account_id": "PAGE-1", "page_id": "PAGE-1", "page_name": "Shop"},
        "instagram": {"platform_account_id": "IG-1", "instagram_account_id": "IG-1", "page_id": "PAGE-1"},
    }[platform]
    values = {
        "user_id": USER_ID,
        "workspace_id": WORKSPACE_ID,
        "platform": platform,
        "access_token": "conn-token",
        "status": "active",
        **defaults,
        **overrides,
    }
    connection = Connection(**values)
    db.add(connection)
    db.commit()
    return connection


def make_conversation(db, connection, key, **overrides):
    values = {
        "workspace_id": connection.workspace_id,
        "connection_id": connection.id,
        "platform": connection.platform,
        "platform_conversation_id": key,
        "platform_user_id": key,
        "status": "active",
        "message_count": 0,
        "unread_count": 0,
        **overrides,
    }
    conversation = Conversation(**values)
    db.add(conversation)
    db.commit()
    return conversation


def sign(body: bytes, secret: str = APP_SECRET) -> str:
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def post_webhook(client, payload, secret: str = APP_SECRET):
    body = json.dumps(payload).encode()
    return client.post(
        "/social-webhook",
        content=body,
        headers={"X-Hub-Signature-256": sign(body, secret), "Content-Type": "application/json"},
    )


def whatsapp_payload(messages=None, statuses=None, phone_number_id="PNID-1", contacts=None):
    value = {
        "messaging_product": "whatsapp",
        "metadata": {"display_phone_number": "15550001111", "phone_number_id": phone_number_id},
    }
    if contacts is not None:
        value["contacts"] = contacts
    if messages is not None:
        value["messages"] = messages
    if statuses is not None:
        value["statuses"] = statuses
    return {
        "object": "whatsapp_business_account",
        "entry": [{"id": "WABA-1", "changes": [{"field": "messages", "value": value}]}],
    }


def whatsapp_text(wamid, sender="5511987654321", body="Hello", timestamp="1700000000"):
    return {"from": sender, "id": wamid, "timestamp": timestamp, "type": "text", "text": {"body": body}}


def whatsapp_status(wamid, status, timestamp="1700000100", errors=None):
    item = {"id": wamid, "status": status, "timestamp": timestamp, "recipient_id": "5511987654321"}
    if errors:
        item["errors"] = errors
    return item
