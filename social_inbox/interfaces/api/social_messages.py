"""Outbound message endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from social_inbox.application.services import dispatch_service
from social_inbox.application.services.auth_service import CurrentUser
from social_inbox.domain.schemas.message import SendMessageRequest, SendMessageResponse
from social_inbox.infrastructure.database import get_db
from social_inbox.infrastructure.meta_graph import MetaGraphClient
from social_inbox.interfaces.api.deps import get_current_user, get_graph_client

router = APIRouter(tags=["Messages"])


@router.post("/send-social-message", response_model=SendMessageResponse)
async def send_social_message(
    body: SendMessageRequest,
    db: Session = Depends(get_db),
    graph: MetaGraphClient = Depends(get_graph_client),
    user: CurrentUser = Depends(get_current_user),
):
    """Send a text, template or media message through a connection."""
    return await dispatch_service.send_message(db, graph, body)
