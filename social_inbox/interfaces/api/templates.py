"""WhatsApp template endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from social_inbox.application.services import template_service
from social_inbox.application.services.auth_service import CurrentUser
from social_inbox.core.exceptions import NotFoundError
from social_inbox.domain.models.connection import Connection
from social_inbox.domain.schemas.template import (
    TemplatePreviewRequest,
    TemplatePreviewResponse,
    TemplateRead,
    TemplateSyncRequest,
    TemplateSyncResponse,
)
from social_inbox.infrastructure.database import get_db
from social_inbox.infrastructure.meta_graph import MetaGraphClient
from social_inbox.infrastructure.repositories.connection_repository import SQLAlchemyConnectionRepository
from social_inbox.interfaces.api.deps import get_current_user, get_graph_client

router = APIRouter(prefix="/whatsapp-templates", tags=["Templates"])


@router.get("", response_model=List[TemplateRead])
def list_templates(
    workspace_id: str,
    connection_id: Optional[str] = None,
    db: Session = Depends(get_db),
    _: CurrentUser = Depends(get_current_user),
):
    """Approved templates, ordered by name."""
    return template_service.list_templates(db, workspace_id, connection_id)


@router.post("/preview", response_model=TemplatePreviewResponse)
def preview_template(
    body: TemplatePreviewRequest,
    db: Session = Depends(get_db),
    _: CurrentUser = Depends(get_current_user),
):
    return {"preview": template_service.preview_template(db, body.template_id, body.variables)}


@router.post("/sync", response_model=TemplateSyncResponse)
async def sync_templates(
    body: TemplateSyncRequest,
    db: Session = Depends(get_db),
    graph: MetaGraphClient = Depends(get_graph_client),
    _: CurrentUser = Depends(get_current_user),
):
    connection = SQLAlchemyConnectionRepository(db, Connection).get_active(body.connection_id)
    if connection is None:
        raise NotFoundError("Connection not found or inactive")
    return {"synced": await template_service.sync_templates(db, graph, connection)}
