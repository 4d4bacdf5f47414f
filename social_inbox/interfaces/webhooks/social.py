"""Meta webhook — one endpoint for WhatsApp, Messenger and Instagram."""

import json

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.orm import Session

from social_inbox.application.services import webhook_service
from social_inbox.config import get_settings
from social_inbox.infrastructure.database import get_db
from social_inbox.infrastructure.meta_graph import MetaGraphClient
from social_inbox.interfaces.api.deps import get_graph_client

settings = get_settings()
logger = structlog.get_logger(__name__)
router = APIRouter(tags=["Webhooks"])


@router.get("/social-webhook")
def verify_webhook(request: Request):
    """Subscription handshake: echo ``hub.challenge`` when the verify token matches."""
    params = request.query_params
    if webhook_service.verify_subscription(params.get("hub.mode"), params.get("hub.verify_token")):
        logger.info("Webhook subscription verified")
        return PlainTextResponse(params.get("hub.challenge") or "")
    logger.warning("Webhook verification failed", mode=params.get("hub.mode"))
    return PlainTextResponse("Forbidden", status_code=403)


@router.post("/social-webhook")
async def receive_webhook(
    request: Request,
    db: Session = Depends(get_db),
    graph: MetaGraphClient = Depends(get_graph_client),
):
    """
    Receive webhook deliveries from Meta.

    Once the signature and JSON are valid the answer is always 200: item
    failures are logged, never surfaced, so Meta does not redeliver.
    """
    raw_body = await request.body()

    if settings.META_APP_SECRET:
        signature = request.headers.get("X-Hub-Signature-256")
        if not webhook_service.verify_signature(raw_body, signature, settings.META_APP_SECRET):
            logger.warning("Invalid webhook signature")
            return JSONResponse(status_code=401, content={"error": "Invalid signature"})

    try:
        payload = json.loads(raw_body)
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})
    if not isinstance(payload, dict):
        return JSONResponse(status_code=400, content={"error": "Invalid JSON body"})

    await webhook_service.handle_webhook(db, payload, graph)
    return {"success": True}
