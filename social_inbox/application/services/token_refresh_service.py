"""Token refresh — re-exchange long-lived user tokens before they expire."""

from datetime import timedelta

import structlog
from sqlalchemy.orm import Session

from social_inbox.application.services.results import Failed, Ok, Outcome, summarize
from social_inbox.config import get_settings
from social_inbox.core.clock import utcnow
from social_inbox.core.exceptions import ProviderError, TransientInfrastructureError
from social_inbox.domain.models.connection import Connection
from social_inbox.infrastructure.meta_graph import MetaGraphClient
from social_inbox.infrastructure.repositories.connection_repository import SQLAlchemyConnectionRepository

settings = get_settings()
logger = structlog.get_logger(__name__)


def _failure_status(message: str) -> str:
    return "expired" if "expire" in (message or "").lower() else "error"


async def refresh_connection(db: Session, graph: MetaGraphClient, connection: Connection) -> Outcome:
    repo = SQLAlchemyConnectionRepository(db, Connection)
    try:
        result = await graph.exchange_long_lived(connection.access_token)
    except TransientInfrastructureError as e:
        # Provider unreachable; try again on the next run
        logger.warning("Token refresh deferred", connection_id=connection.id, error=e.message)
        return Failed(e.message)
    except ProviderError as e:
        repo.update(connection, {"last_error": e.message, "status": _failure_status(e.message)})
        db.commit()
        logger.warning("Token refresh failed", connection_id=connection.id, error=e.message)
        return Failed(e.message)

    token = result.get("access_token")
    if not token:
        repo.update(connection, {"last_error": "No access token returned by Meta", "status": "error"})
        db.commit()
        return Failed("no token")

    now = utcnow()
    expires_in = int(result.get("expires_in") or settings.DEFAULT_TOKEN_EXPIRES_IN)
    repo.update(connection, {
        "access_token": token,
        "token_expires_at": now + timedelta(seconds=expires_in),
        "last_error": None,
        "last_sync_at": now,
    })
    db.commit()
    return Ok(connection.id)


async def refresh_expiring_tokens(db: Session, graph: MetaGraphClient) -> dict:
    threshold = utcnow() + timedelta(days=settings.TOKEN_REFRESH_THRESHOLD_DAYS)
    connections = SQLAlchemyConnectionRepository(db, Connection).list_expiring(threshold)

    outcomes = [await refresh_connection(db, graph, connection) for connection in connections]
    summary = summarize(outcomes)
    logger.info("Token refresh finished", **summary)
    return summary
