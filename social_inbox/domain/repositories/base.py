"""
Base Repository Interface.
Defines the standard contract for data access operations.

Repositories never commit: the calling service owns the transaction so a
webhook item or a dispatch can be committed or rolled back as one unit.
"""

from typing import Any, Optional, Protocol, TypeVar

T = TypeVar("T")


class BaseRepository(Protocol[T]):
    """Interface for generic lookups and writes."""

    def get_by_id(self, id: str) -> Optional[T]:
        """Get a single entity by ID."""
        ...

    def add(self, values: dict) -> T:
        """Stage a new entity and flush it."""
        ...

    def update(self, db_obj: T, values: Any) -> T:
        """Apply field changes to an entity and flush them."""
        ...
