"""
SQLAlchemy Implementation of Connection Repository.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, update

from social_inbox.domain.models._ids import new_id
from social_inbox.domain.models.connection import Connection
from social_inbox.domain.repositories.connection_repository import ConnectionRepository
from social_inbox.infrastructure.database import dialect_insert
from social_inbox.infrastructure.repositories.base_repository import SQLAlchemyRepository

# Identity of a connection; never rewritten by an upsert
IDENTITY_COLUMNS = ("workspace_id", "platform", "platform_account_id")
ROUTING_COLUMNS = ("phone_number_id", "page_id", "instagram_account_id")


class SQLAlchemyConnectionRepository(SQLAlchemyRepository[Connection], ConnectionRepository):
    """Connection repository implementation using SQLAlchemy."""

    def get_active(self, id: str) -> Optional[Connection]:
        return (
            self.db.query(Connection)
            .filter(Connection.id == id, Connection.status == "active")
            .first()
        )

    def find_active_by_route(self, platform: str, routing_column: str, value: str) -> Optional[Connection]:
        if routing_column not in ROUTING_COLUMNS:
            raise ValueError(f"Unknown routing column: {routing_column}")
        column = getattr(Connection, routing_column)
        return (
            self.db.query(Connection)
            .filter(
                Connection.platform == platform,
                column == value,
                Connection.status == "active",
            )
            .order_by(Connection.updated_at.desc())
            .first()
        )

    def list_active_for_user(
        self, user_id: str, platform: Optional[str] = None, workspace_id: Optional[str] = None
    ) -> List[Connection]:
        query = self.db.query(Connection).filter(
            Connection.user_id == user_id,
            Connection.status == "active",
        )
        if platform:
            query = query.filter(Connection.platform == platform)
        if workspace_id:
            query = query.filter(Connection.workspace_id == workspace_id)
        return query.order_by(Connection.created_at.desc()).all()

    def upsert(self, values: dict) -> Connection:
        stmt = dialect_insert(self.db, Connection).values(id=new_id(), **values)
        changes = {
            key: stmt.excluded[key]
            for key in values
            if key not in IDENTITY_COLUMNS
        }
        changes["updated_at"] = func.now()
        stmt = stmt.on_conflict_do_update(index_elements=list(IDENTITY_COLUMNS), set_=changes)
        self.db.execute(stmt)

        return (
            self.db.query(Connection)
            .populate_existing()
            .filter(
                Connection.workspace_id == values["workspace_id"],
                Connection.platform == values["platform"],
                Connection.platform_account_id == values["platform_account_id"],
            )
            .one()
        )

    def disconnect(self, id: str, user_id: str) -> bool:
        result = self.db.execute(
            update(Connection)
            .where(Connection.id == id, Connection.user_id == user_id)
            .values(status="disconnected", updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def list_expiring(self, before: datetime) -> List[Connection]:
        return (
            self.db.query(Connection)
            .filter(
                Connection.status == "active",
                Connection.token_expires_at.isnot(None),
                Connection.token_expires_at < before,
            )
            .all()
        )
