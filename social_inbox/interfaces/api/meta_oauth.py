"""Meta OAuth endpoints — connect, pick an account, disconnect."""

import html
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from social_inbox.application.services import oauth_service
from social_inbox.application.services.auth_service import CurrentUser
from social_inbox.core.exceptions import AppError, InvalidOAuthStateError, ProviderError
from social_inbox.domain.schemas.connection import (
    AccountsResponse,
    AuthUrlResponse,
    ConnectionRead,
    ConnectionsResponse,
    DisconnectRequest,
    SelectAccountRequest,
    SelectAccountResponse,
)
from social_inbox.infrastructure.database import get_db
from social_inbox.infrastructure.meta_graph import MetaGraphClient
from social_inbox.interfaces.api.deps import get_current_user, get_graph_client

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/meta-oauth", tags=["Meta OAuth"])


def error_page(title: str, message: str, status_code: int) -> HTMLResponse:
    """Plain page shown in the OAuth popup when the flow cannot finish."""
    content = (
        "<!DOCTYPE html><html><head><meta charset=\"utf-8\">"
        f"<title>{html.escape(title)}</title></head>"
        f"<body><h1>{html.escape(title)}</h1><p>{html.escape(message)}</p>"
        "<p>You can close this window and try again.</p></body></html>"
    )
    return HTMLResponse(content=content, status_code=status_code)


@router.get("", response_model=AuthUrlResponse)
def start_oauth(
    platform: Optional[str] = None,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    return oauth_service.start_authorization(db, user, platform)


@router.get("/callback")
async def oauth_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
    db: Session = Depends(get_db),
    graph: MetaGraphClient = Depends(get_graph_client),
):
    """Provider redirect target. Unauthenticated: the state is the credential."""
    if error:
        logger.warning("OAuth denied by provider", error=error)
        return error_page("Authorization failed", error_description or error, status.HTTP_400_BAD_REQUEST)
    if not code or not state:
        return error_page("Authorization failed", "Missing code or state", status.HTTP_400_BAD_REQUEST)

    try:
        redirect_url = await oauth_service.complete_authorization(db, graph, code, state)
    except InvalidOAuthStateError as e:
        return error_page("Authorization expired", e.message, e.status_code)
    except ProviderError as e:
        return error_page("Meta returned an error", e.message, status.HTTP_502_BAD_GATEWAY)
    except AppError as e:
        return error_page("Authorization failed", e.message, e.status_code)

    return RedirectResponse(url=redirect_url, status_code=status.HTTP_302_FOUND)


@router.get("/accounts", response_model=AccountsResponse)
async def list_accounts(
    token_id: str,
    platform: Optional[str] = None,
    db: Session = Depends(get_db),
    graph: MetaGraphClient = Depends(get_graph_client),
    user: CurrentUser = Depends(get_current_user),
):
    try:
        return await oauth_service.discover_accounts(db, graph, user, token_id, platform)
    except ProviderError as e:
        e.status_code = status.HTTP_502_BAD_GATEWAY
        raise


@router.post("/select-account", response_model=SelectAccountResponse)
async def select_account(
    body: SelectAccountRequest,
    db: Session = Depends(get_db),
    graph: MetaGraphClient = Depends(get_graph_client),
    user: CurrentUser = Depends(get_current_user),
):
    try:
        connection = await oauth_service.select_account(db, graph, user, body)
    except ProviderError as e:
        e.status_code = status.HTTP_502_BAD_GATEWAY
        raise
    return {"success": True, "connection": ConnectionRead.model_validate(connection)}


@router.post("/disconnect")
def disconnect(
    body: DisconnectRequest,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    oauth_service.disconnect(db, user, body.connection_id)
    return {"success": True}


@router.get("/status", response_model=ConnectionsResponse)
def connection_status(
    platform: Optional[str] = None,
    workspace_id: Optional[str] = None,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
):
    connections = oauth_service.connection_status(db, user, platform, workspace_id)
    return {"connections": connections}
