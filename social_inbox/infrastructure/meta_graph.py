"""Meta Graph API HTTP client.

One client covers the three messaging products:
- WhatsApp Cloud API (messages, media lookup, message templates)
- Messenger / Instagram Send API (page-scoped messages)
- Facebook Login (code exchange, long-lived tokens, account discovery)

Every call is a single request with the configured timeout. Nothing is
retried here: provider errors are returned (send) or raised (everything
else) and the caller decides.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from social_inbox.config import get_settings
from social_inbox.core.exceptions import ProviderError, TransientInfrastructureError

settings = get_settings()
logger = logging.getLogger(__name__)

MAX_TEMPLATE_PAGES = 10  # 100 templates per page


def provider_error(body: Any) -> Optional[dict]:
    """The ``error`` object of a Graph response, if any."""
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return body["error"]
    return None


class MetaGraphClient:
    """Client for the Meta Graph API."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = settings.graph_base_url
        self.timeout = settings.GRAPH_HTTP_TIMEOUT
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    @staticmethod
    def _auth(token: str) -> dict:
        return {"Authorization": f"Bearer {token}"}

    @staticmethod
    def _json(response: httpx.Response) -> dict:
        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            return {"error": {"message": response.text[:500] or f"HTTP {response.status_code}"}}
        if response.status_code >= 400 and "error" not in body:
            body = {"error": {"message": f"HTTP {response.status_code}", "body": body}}
        return body

    async def _get(self, path: str, params: dict, token: Optional[str] = None) -> dict:
        url = f"{self.base_url}/{path.lstrip('/')}"
        headers = self._auth(token) if token else None
        try:
            async with self._client() as client:
                response = await client.get(url, params=params, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Graph API request failed: GET {path}: {e}")
            raise TransientInfrastructureError("Provider unreachable", details=str(e)) from e

        body = self._json(response)
        error = provider_error(body)
        if error:
            logger.warning(f"Graph API error on GET {path}: {error.get('message')}")
            raise ProviderError(error.get("message") or "Graph API error", details=error)
        return body

    # --- Messaging ---

    async def send_message(self, sender_id: str, token: str, payload: dict) -> dict:
        """
        POST a message through ``/{sender_id}/messages``.

        Args:
            sender_id: WhatsApp phone number id, Facebook page id or Instagram account id
            token: Access token stored on the connection
            payload: Provider-shaped message body

        Provider errors come back inside the returned JSON (``error`` key)
        so the caller can persist them. Network failures raise.
        """
        url = f"{self.base_url}/{sender_id}/messages"
        try:
            async with self._client() as client:
                response = await client.post(url, json=payload, headers=self._auth(token))
        except httpx.HTTPError as e:
            logger.error(f"Graph API send failed for {sender_id}: {e}")
            raise TransientInfrastructureError("Provider unreachable", details=str(e)) from e

        body = self._json(response)
        if provider_error(body):
            logger.warning(f"Graph API rejected message from {sender_id}: {body['error'].get('message')}")
        return body

    async def get_media_url(self, media_id: str, token: str) -> Optional[str]:
        """Resolve a WhatsApp media id to its download URL. None on any failure."""
        try:
            body = await self._get(media_id, params={}, token=token)
        except (ProviderError, TransientInfrastructureError) as e:
            logger.warning(f"Could not resolve media {media_id}: {e.message}")
            return None
        return body.get("url")

    async def list_message_templates(self, waba_id: str, token: str) -> List[dict]:
        """All message templates of a WhatsApp Business Account, following pagination."""
        templates: List[dict] = []
        params: Dict[str, Any] = {
            "fields": "id,name,language,status,category,components,rejected_reason",
            "limit": 100,
        }
        body = await self._get(f"{waba_id}/message_templates", params=params, token=token)
        for _ in range(MAX_TEMPLATE_PAGES):
            templates.extend(body.get("data") or [])
            after = (body.get("paging") or {}).get("cursors", {}).get("after")
            if not after or not (body.get("paging") or {}).get("next"):
                break
            body = await self._get(
                f"{waba_id}/message_templates", params={**params, "after": after}, token=token
            )
        return templates

    # --- Facebook Login ---

    async def exchange_code(self, code: str, redirect_uri: str) -> dict:
        """Authorization code -> short-lived user token."""
        return await self._get(
            "oauth/access_token",
            params={
                "client_id": settings.META_APP_ID,
                "client_secret": settings.META_APP_SECRET,
                "redirect_uri": redirect_uri,
                "code": code,
            },
        )

    async def exchange_long_lived(self, token: str) -> dict:
        """Short-lived (or expiring long-lived) user token -> long-lived token."""
        return await self._get(
            "oauth/access_token",
            params={
                "grant_type": "fb_exchange_token",
                "client_id": settings.META_APP_ID,
                "client_secret": settings.META_APP_SECRET,
                "fb_exchange_token": token,
            },
        )

    async def get_me(self, token: str) -> dict:
        return await self._get("me", params={"fields": "id,name,email"}, token=token)

    async def list_businesses(self, token: str) -> List[dict]:
        """Businesses with their WhatsApp Business Accounts and phone numbers."""
        body = await self._get(
            "me/businesses",
            params={
                "fields": (
                    "id,name,owned_whatsapp_business_accounts"
                    "{id,name,phone_numbers{id,display_phone_number,verified_name}}"
                ),
            },
            token=token,
        )
        return body.get("data") or []

    async def list_pages(self, token: str) -> List[dict]:
        """Pages the user manages, with page tokens and any linked Instagram business account."""
        body = await self._get(
            "me/accounts",
            params={"fields": "id,name,access_token,instagram_business_account{id,username}"},
            token=token,
        )
        return body.get("data") or []
