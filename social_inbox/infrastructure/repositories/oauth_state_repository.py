"""
SQLAlchemy Implementation of OAuth State Repository.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session

from social_inbox.core.clock import ensure_utc
from social_inbox.domain.models.oauth_state import OAuthState
from social_inbox.domain.repositories.oauth_state_repository import OAuthStateRepository


class SQLAlchemyOAuthStateRepository(OAuthStateRepository):
    def __init__(self, db: Session):
        self.db = db

    def add(self, values: dict) -> OAuthState:
        state = OAuthState(**values)
        self.db.add(state)
        self.db.flush()
        return state

    def get_valid(self, state: str, kind: str, user_id: str, now: datetime) -> Optional[OAuthState]:
        row = (
            self.db.query(OAuthState)
            .filter(
                OAuthState.state == state,
                OAuthState.kind == kind,
                OAuthState.user_id == user_id,
            )
            .first()
        )
        if row is None or ensure_utc(row.expires_at) < now:
            return None
        return row

    def consume(self, state: str, kind: str, now: datetime) -> Optional[OAuthState]:
        row = (
            self.db.query(OAuthState)
            .filter(OAuthState.state == state, OAuthState.kind == kind)
            .first()
        )
        if row is None:
            return None

        # The DELETE decides the winner when two callbacks race on the same state
        result = self.db.execute(
            delete(OAuthState)
            .where(OAuthState.state == state, OAuthState.kind == kind)
            .execution_options(synchronize_session=False)
        )
        self.db.expunge(row)
        if result.rowcount != 1:
            return None
        if ensure_utc(row.expires_at) < now:
            return None
        return row

    def purge_expired(self, now: datetime) -> int:
        result = self.db.execute(
            delete(OAuthState)
            .where(OAuthState.expires_at < now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
