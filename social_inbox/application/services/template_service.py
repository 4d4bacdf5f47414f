"""Template service — WhatsApp template registry, previews and provider sync."""

import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

import structlog
from sqlalchemy.orm import Session

from social_inbox.core.exceptions import NotFoundError, ValidationError
from social_inbox.domain.models.connection import Connection
from social_inbox.domain.models.template import Template
from social_inbox.infrastructure.meta_graph import MetaGraphClient
from social_inbox.infrastructure.repositories.template_repository import SQLAlchemyTemplateRepository

logger = structlog.get_logger(__name__)

PLACEHOLDER = re.compile(r"\{\{\s*([^{}\s]+)\s*\}\}")
SENDABLE_STATUS = "approved"


def _repo(db: Session) -> SQLAlchemyTemplateRepository:
    return SQLAlchemyTemplateRepository(db, Template)


def slot_names(template: Template) -> List[str]:
    return [slot["name"] for slot in template.variables or [] if slot.get("name")]


def render(text: str, variables: Dict[str, Any]) -> str:
    """Substitute ``{{name}}`` placeholders; missing or blank values render as ``[name]``."""

    def _replace(match: re.Match) -> str:
        name = match.group(1)
        value = variables.get(name)
        if value is None or not str(value).strip():
            return f"[{name}]"
        return str(value)

    return PLACEHOLDER.sub(_replace, text or "")


def find_template(db: Session, connection_id: str, name: str, language: str) -> Optional[Template]:
    return _repo(db).find(connection_id, name, language)


def is_sendable(template: Template) -> bool:
    return template.status == SENDABLE_STATUS


def ordered_parameters(template: Optional[Template], pairs: Sequence[Tuple[str, str]]) -> List[str]:
    """
    Body parameters in the order the provider expects.

    A registered template's slot order wins when the request names its
    slots. Otherwise the request order is used as given.
    """
    if template is not None:
        slots = slot_names(template)
        values = dict(pairs)
        if slots and any(slot in values for slot in slots):
            return [str(values.get(slot, "")) for slot in slots]
    return [value for _, value in pairs]


def list_templates(db: Session, workspace_id: str, connection_id: Optional[str] = None) -> List[Template]:
    return _repo(db).list_approved(workspace_id, connection_id)


def preview_template(db: Session, template_id: str, variables: Dict[str, Any]) -> str:
    template = _repo(db).get_by_id(template_id)
    if template is None:
        raise NotFoundError("Template not found")
    return render(template.body_text, variables)


def _slots_from_component(component: dict) -> List[dict]:
    """Ordered ``{name, example}`` slots for a BODY component."""
    names: List[str] = []
    for name in PLACEHOLDER.findall(component.get("text") or ""):
        if name not in names:
            names.append(name)

    example = component.get("example") or {}
    examples: Dict[str, Any] = {}
    for named in example.get("body_text_named_params") or []:
        examples[named.get("param_name")] = named.get("example")
    positional = (example.get("body_text") or [[]])[0] or []
    for index, value in enumerate(positional, start=1):
        examples.setdefault(str(index), value)

    return [{"name": name, "example": examples.get(name)} for name in names]


def _template_values(connection: Connection, remote: dict) -> Optional[dict]:
    components = {c.get("type", "").upper(): c for c in remote.get("components") or []}
    body = components.get("BODY")
    if not body or not remote.get("name") or not remote.get("language"):
        return None

    header = components.get("HEADER") or {}
    footer = components.get("FOOTER") or {}
    return {
        "workspace_id": connection.workspace_id,
        "connection_id": connection.id,
        "template_id": remote.get("id"),
        "name": remote["name"],
        "language": remote["language"],
        "category": (remote.get("category") or "").lower() or None,
        "header_text": header.get("text") if header.get("format", "TEXT") == "TEXT" else None,
        "body_text": body.get("text") or "",
        "footer_text": footer.get("text"),
        "variables": _slots_from_component(body),
        "status": (remote.get("status") or "pending").lower(),
        "rejection_reason": remote.get("rejected_reason"),
    }


async def sync_templates(db: Session, graph: MetaGraphClient, connection: Connection) -> int:
    """Pull the WABA's templates from the provider and upsert them."""
    if connection.platform != "whatsapp" or not connection.whatsapp_business_id:
        raise ValidationError("Template sync requires a WhatsApp connection")

    remote_templates = await graph.list_message_templates(connection.whatsapp_business_id, connection.access_token)
    repo = _repo(db)
    synced = 0
    for remote in remote_templates:
        values = _template_values(connection, remote)
        if values is None:
            logger.warning("Skipping template without body", name=remote.get("name"))
            continue
        repo.upsert(values)
        synced += 1
    db.commit()

    logger.info("Templates synced", connection_id=connection.id, count=synced)
    return synced
