"""Pydantic schemas for social connections and the Meta OAuth flow."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class ConnectionRead(BaseModel):
    """Connection as exposed to the web app. The access token is never included."""

    id: str
    workspace_id: str
    platform: str
    platform_account_id: str
    platform_account_name: Optional[str] = None
    status: str
    phone_number_id: Optional[str] = None
    whatsapp_business_id: Optional[str] = None
    page_id: Optional[str] = None
    page_name: Optional[str] = None
    instagram_account_id: Optional[str] = None
    token_expires_at: Optional[datetime] = None
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class AuthUrlResponse(BaseModel):
    authUrl: str
    platform: str


class AccountRef(BaseModel):
    """The account the user picked; only its identifiers are trusted."""

    id: str
    name: Optional[str] = None
    waba_id: Optional[str] = None
    page_id: Optional[str] = None


class SelectAccountRequest(BaseModel):
    token_id: str
    account: AccountRef
    workspace_id: str


class DisconnectRequest(BaseModel):
    connection_id: str


class DiscoveredAccount(BaseModel):
    id: str
    name: Optional[str] = None
    type: str  # whatsapp_phone, facebook_page, instagram_account
    waba_id: Optional[str] = None
    waba_name: Optional[str] = None
    business_name: Optional[str] = None
    display_phone_number: Optional[str] = None
    page_id: Optional[str] = None
    page_name: Optional[str] = None
    username: Optional[str] = None


class AccountsResponse(BaseModel):
    accounts: List[DiscoveredAccount]
    meta_user: Dict[str, Any]


class SelectAccountResponse(BaseModel):
    success: bool = True
    connection: ConnectionRead


class ConnectionsResponse(BaseModel):
    connections: List[ConnectionRead]
