"""
SQLAlchemy Implementation of Template Repository.
"""

from typing import List, Optional

from sqlalchemy import func

from social_inbox.domain.models._ids import new_id
from social_inbox.domain.models.template import Template
from social_inbox.domain.repositories.template_repository import TemplateRepository
from social_inbox.infrastructure.database import dialect_insert
from social_inbox.infrastructure.repositories.base_repository import SQLAlchemyRepository

KEY_COLUMNS = ("connection_id", "name", "language")


class SQLAlchemyTemplateRepository(SQLAlchemyRepository[Template], TemplateRepository):
    """Template repository implementation using SQLAlchemy."""

    def find(self, connection_id: str, name: str, language: str) -> Optional[Template]:
        return (
            self.db.query(Template)
            .filter(
                Template.connection_id == connection_id,
                Template.name == name,
                Template.language == language,
            )
            .first()
        )

    def list_approved(self, workspace_id: str, connection_id: Optional[str] = None) -> List[Template]:
        query = self.db.query(Template).filter(
            Template.workspace_id == workspace_id,
            Template.status == "approved",
        )
        if connection_id:
            query = query.filter(Template.connection_id == connection_id)
        return query.order_by(Template.name.asc()).all()

    def upsert(self, values: dict) -> None:
        stmt = dialect_insert(self.db, Template).values(id=new_id(), **values)
        changes = {key: stmt.excluded[key] for key in values if key not in KEY_COLUMNS}
        changes["updated_at"] = func.now()
        self.db.execute(stmt.on_conflict_do_update(index_elements=list(KEY_COLUMNS), set_=changes))
