"""
SQLAlchemy implementation of the Base Repository.
"""

from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy.orm import Session

from social_inbox.domain.repositories.base import BaseRepository
from social_inbox.infrastructure.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class SQLAlchemyRepository(BaseRepository[ModelType], Generic[ModelType]):
    """Generic repository implementation for SQLAlchemy models."""

    def __init__(self, db: Session, model: Type[ModelType]):
        self.db = db
        self.model = model

    def get_by_id(self, id: str) -> Optional[ModelType]:
        return self.db.get(self.model, id)

    def add(self, values: dict) -> ModelType:
        db_obj = self.model(**values)
        self.db.add(db_obj)
        self.db.flush()
        return db_obj

    def update(self, db_obj: ModelType, values: Any) -> ModelType:
        if hasattr(values, "model_dump"):
            values = values.model_dump(exclude_unset=True)

        for field, value in values.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)

        self.db.flush()
        return db_obj
