"""OAuth service — Meta connection lifecycle.

Flow:
1. ``start_authorization`` stores a single-use ``authorize`` state and builds the dialog URL
2. ``complete_authorization`` consumes that state, exchanges the code for a
   long-lived user token and parks it in an ``account_selection`` state
3. ``discover_accounts`` lists what the token can reach
4. ``select_account`` re-resolves the chosen account with the stored token
   and upserts the connection

Tokens never travel through the browser: the web app only ever sees the
opaque selection id.
"""

import secrets
from datetime import timedelta
from typing import Dict, List, Optional
from urllib.parse import urlencode

import structlog
from sqlalchemy.orm import Session

from social_inbox.application.platforms.registry import PLATFORMS
from social_inbox.application.services.auth_service import CurrentUser
from social_inbox.config import get_settings
from social_inbox.core.clock import utcnow
from social_inbox.core.exceptions import (
    ConfigurationError,
    InvalidOAuthStateError,
    NotFoundError,
    ProviderError,
    ValidationError,
)
from social_inbox.domain.models.connection import Connection
from social_inbox.domain.schemas.connection import ConnectionRead, DiscoveredAccount, SelectAccountRequest
from social_inbox.infrastructure.meta_graph import MetaGraphClient
from social_inbox.infrastructure.repositories.connection_repository import SQLAlchemyConnectionRepository
from social_inbox.infrastructure.repositories.oauth_state_repository import SQLAlchemyOAuthStateRepository

settings = get_settings()
logger = structlog.get_logger(__name__)

AUTHORIZE = "authorize"
ACCOUNT_SELECTION = "account_selection"

PLATFORM_SCOPES: Dict[str, List[str]] = {
    "whatsapp": [
        "whatsapp_business_management",
        "whatsapp_business_messaging",
        "business_management",
    ],
    "messenger": [
        "pages_messaging",
        "pages_read_engagement",
        "pages_manage_metadata",
        "pages_show_list",
    ],
    "instagram": [
        "instagram_basic",
        "instagram_manage_messages",
        "pages_show_list",
        "pages_read_engagement",
    ],
}


def _check_platform(platform: Optional[str]) -> str:
    if platform not in PLATFORMS:
        raise ValidationError("Invalid platform", details={"allowed": list(PLATFORMS)})
    return platform


def start_authorization(db: Session, user: CurrentUser, platform: Optional[str]) -> dict:
    if not settings.META_APP_ID or not settings.META_APP_SECRET:
        raise ConfigurationError("Meta app is not configured")
    platform = _check_platform(platform)

    state = secrets.token_urlsafe(32)
    SQLAlchemyOAuthStateRepository(db).add({
        "state": state,
        "user_id": user.id,
        "kind": AUTHORIZE,
        "platform": platform,
        "payload": {},
        "expires_at": utcnow() + timedelta(minutes=settings.OAUTH_STATE_TTL_MINUTES),
    })
    db.commit()

    params = {
        "client_id": settings.META_APP_ID,
        "redirect_uri": settings.oauth_redirect_uri,
        "state": state,
        "scope": ",".join(PLATFORM_SCOPES[platform]),
        "response_type": "code",
    }
    auth_url = (
        f"{settings.META_DIALOG_URL.rstrip('/')}/{settings.META_GRAPH_API_VERSION}"
        f"/dialog/oauth?{urlencode(params)}"
    )
    logger.info("OAuth flow started", platform=platform, user_id=user.id)
    return {"authUrl": auth_url, "platform": platform}


async def complete_authorization(db: Session, graph: MetaGraphClient, code: str, state: str) -> str:
    """Handle the provider redirect. Returns the web app URL to send the browser to."""
    consumed = SQLAlchemyOAuthStateRepository(db).consume(state, AUTHORIZE, utcnow())
    db.commit()
    if consumed is None:
        raise InvalidOAuthStateError("Invalid or expired OAuth state")

    short_lived = await graph.exchange_code(code, settings.oauth_redirect_uri)
    token = short_lived.get("access_token")
    if not token:
        raise ProviderError("No access token returned by Meta", details=short_lived)
    expires_in = short_lived.get("expires_in")

    long_lived = await graph.exchange_long_lived(token)
    if long_lived.get("access_token"):
        token = long_lived["access_token"]
        expires_in = long_lived.get("expires_in")
    else:
        logger.warning("Long-lived token exchange returned no token, keeping short-lived token")

    me = await graph.get_me(token)

    selection_id = secrets.token_urlsafe(32)
    SQLAlchemyOAuthStateRepository(db).add({
        "state": selection_id,
        "user_id": consumed.user_id,
        "kind": ACCOUNT_SELECTION,
        "platform": consumed.platform,
        "payload": {
            "access_token": token,
            "expires_in": expires_in or settings.DEFAULT_TOKEN_EXPIRES_IN,
            "meta_user": {"id": me.get("id"), "name": me.get("name"), "email": me.get("email")},
        },
        "expires_at": utcnow() + timedelta(minutes=settings.ACCOUNT_SELECTION_TTL_MINUTES),
    })
    db.commit()

    logger.info("OAuth authorization completed", platform=consumed.platform, user_id=consumed.user_id)
    query = urlencode({"tab": "integrations", "meta_auth": selection_id, "platform": consumed.platform})
    return f"{settings.APP_URL.rstrip('/')}/settings?{query}"


def _selection(db: Session, user: CurrentUser, token_id: str):
    selection = SQLAlchemyOAuthStateRepository(db).get_valid(token_id, ACCOUNT_SELECTION, user.id, utcnow())
    if selection is None:
        raise InvalidOAuthStateError("Authorization expired, please reconnect")
    return selection


async def _discover(graph: MetaGraphClient, token: str, platform: str) -> List[dict]:
    """Accounts reachable with the user token. Page entries carry their page token."""
    accounts: List[dict] = []

    if platform == "whatsapp":
        for business in await graph.list_businesses(token):
            wabas = (business.get("owned_whatsapp_business_accounts") or {}).get("data") or []
            for waba in wabas:
                for phone in (waba.get("phone_numbers") or {}).get("data") or []:
                    accounts.append({
                        "id": phone["id"],
                        "name": phone.get("verified_name") or phone.get("display_phone_number"),
                        "type": "whatsapp_phone",
                        "waba_id": waba.get("id"),
                        "waba_name": waba.get("name"),
                        "business_name": business.get("name"),
                        "display_phone_number": phone.get("display_phone_number"),
                    })
        return accounts

    for page in await graph.list_pages(token):
        if platform == "messenger":
            accounts.append({
                "id": page["id"],
                "name": page.get("name"),
                "type": "facebook_page",
                "page_id": page["id"],
                "page_name": page.get("name"),
                "access_token": page.get("access_token"),
            })
            continue

        instagram = page.get("instagram_business_account")
        if instagram and instagram.get("id"):
            accounts.append({
                "id": instagram["id"],
                "name": instagram.get("username") or page.get("name"),
                "type": "instagram_account",
                "username": instagram.get("username"),
                "page_id": page["id"],
                "page_name": page.get("name"),
                "access_token": page.get("access_token"),
            })
    return accounts


async def discover_accounts(
    db: Session,
    graph: MetaGraphClient,
    user: CurrentUser,
    token_id: str,
    platform: Optional[str] = None,
) -> dict:
    selection = _selection(db, user, token_id)
    platform = _check_platform(platform or selection.platform)

    accounts = await _discover(graph, selection.payload["access_token"], platform)
    return {
        "accounts": [DiscoveredAccount(**account) for account in accounts],
        "meta_user": selection.payload.get("meta_user") or {},
    }


def _connection_values(platform: str, account: dict) -> dict:
    if platform == "whatsapp":
        return {
            "phone_number_id": account["id"],
            "whatsapp_business_id": account.get("waba_id"),
        }
    values = {"page_id": account.get("page_id"), "page_name": account.get("page_name")}
    if platform == "instagram":
        values["instagram_account_id"] = account["id"]
    return values


async def select_account(
    db: Session,
    graph: MetaGraphClient,
    user: CurrentUser,
    request: SelectAccountRequest,
) -> Connection:
    selection = _selection(db, user, request.token_id)
    platform = selection.platform
    user_token = selection.payload["access_token"]

    # Re-resolve server-side; only the ids from the request are trusted
    accounts = await _discover(graph, user_token, platform)
    chosen = next(
        (
            a for a in accounts
            if a["id"] == request.account.id
            and (not request.account.waba_id or a.get("waba_id") == request.account.waba_id)
        ),
        None,
    )
    if chosen is None:
        raise NotFoundError("Account not found for this authorization")

    now = utcnow()
    # Page tokens derived from a long-lived user token do not expire
    page_token = chosen.get("access_token")
    if page_token:
        token, token_expires_at = page_token, None
    else:
        expires_in = int(selection.payload.get("expires_in") or settings.DEFAULT_TOKEN_EXPIRES_IN)
        token, token_expires_at = user_token, now + timedelta(seconds=expires_in)

    values = {
        "user_id": user.id,
        "workspace_id": request.workspace_id,
        "platform": platform,
        "platform_account_id": chosen["id"],
        "platform_account_name": chosen.get("name"),
        "access_token": token,
        "token_expires_at": token_expires_at,
        "status": "active",
        "last_error": None,
        "last_sync_at": now,
        **_connection_values(platform, chosen),
    }
    connection = SQLAlchemyConnectionRepository(db, Connection).upsert(values)
    SQLAlchemyOAuthStateRepository(db).consume(request.token_id, ACCOUNT_SELECTION, now)
    db.commit()

    logger.info(
        "Connection saved",
        platform=platform,
        connection_id=connection.id,
        workspace_id=request.workspace_id,
    )
    return connection


def disconnect(db: Session, user: CurrentUser, connection_id: str) -> None:
    """Soft disconnect. The provider-side grant is left in place."""
    if not SQLAlchemyConnectionRepository(db, Connection).disconnect(connection_id, user.id):
        raise NotFoundError("Connection not found")
    db.commit()
    logger.info("Connection disconnected", connection_id=connection_id, user_id=user.id)


def connection_status(
    db: Session,
    user: CurrentUser,
    platform: Optional[str] = None,
    workspace_id: Optional[str] = None,
) -> List[ConnectionRead]:
    if platform:
        _check_platform(platform)
    connections = SQLAlchemyConnectionRepository(db, Connection).list_active_for_user(
        user.id, platform, workspace_id
    )
    return [ConnectionRead.model_validate(c) for c in connections]


def purge_expired_states(db: Session) -> int:
    purged = SQLAlchemyOAuthStateRepository(db).purge_expired(utcnow())
    db.commit()
    return purged
