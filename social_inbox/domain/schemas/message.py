"""Pydantic schemas for outbound dispatch and message reads."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class TemplateVariable(BaseModel):
    name: str
    value: Optional[str] = None


class SendMessageRequest(BaseModel):
    """Body of ``POST /send-social-message``; field names follow the web app (camelCase)."""

    model_config = ConfigDict(populate_by_name=True)

    connection_id: Optional[str] = Field(default=None, alias="connectionId")
    conversation_id: Optional[str] = Field(default=None, alias="conversationId")
    recipient_id: Optional[str] = Field(default=None, alias="recipientId")
    message_type: Optional[str] = Field(default=None, alias="messageType")
    content: Optional[str] = None
    template_name: Optional[str] = Field(default=None, alias="templateName")
    template_language: Optional[str] = Field(default=None, alias="templateLanguage")
    template_variables: Optional[Union[Dict[str, Any], List[TemplateVariable]]] = Field(
        default=None, alias="templateVariables"
    )
    media_url: Optional[str] = Field(default=None, alias="mediaUrl")
    caption: Optional[str] = None

    def variable_pairs(self) -> List[tuple[str, str]]:
        """Template variables as ordered (name, value) pairs, in request order."""
        if not self.template_variables:
            return []
        if isinstance(self.template_variables, dict):
            return [
                (name, "" if value is None else str(value))
                for name, value in self.template_variables.items()
            ]
        return [(v.name, v.value or "") for v in self.template_variables]


class MessageRead(BaseModel):
    id: str
    conversation_id: Optional[str] = None
    connection_id: Optional[str] = None
    platform: str
    direction: str
    message_type: str
    body: Optional[str] = None
    caption: Optional[str] = None
    media_url: Optional[str] = None
    reaction_emoji: Optional[str] = None
    reply_to_id: Optional[str] = None
    template_name: Optional[str] = None
    template_language: Optional[str] = None
    template_parameters: Optional[Any] = None
    status: str
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    external_id: Optional[str] = None
    sent_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SendMessageResponse(BaseModel):
    success: bool = True
    messageId: Optional[str] = None
    conversationId: Optional[str] = None
    message: Optional[MessageRead] = None
    requiresTemplate: bool = False
