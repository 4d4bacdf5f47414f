"""Pydantic schemas for WhatsApp templates."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class TemplateSlot(BaseModel):
    name: str
    example: Optional[str] = None


class TemplateRead(BaseModel):
    id: str
    workspace_id: str
    connection_id: str
    template_id: Optional[str] = None
    name: str
    language: str
    category: Optional[str] = None
    header_text: Optional[str] = None
    body_text: str
    footer_text: Optional[str] = None
    variables: List[TemplateSlot] = []
    status: str
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TemplatePreviewRequest(BaseModel):
    template_id: str
    variables: Dict[str, Any] = {}


class TemplatePreviewResponse(BaseModel):
    preview: str


class TemplateSyncRequest(BaseModel):
    connection_id: str


class TemplateSyncResponse(BaseModel):
    synced: int
