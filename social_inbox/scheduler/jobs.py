"""APScheduler jobs — OAuth state purge every 15 mins, Meta token refresh daily at 03:00."""

import logging
from datetime import datetime

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from social_inbox.config import get_settings
from social_inbox.infrastructure.database import SessionLocal

settings = get_settings()
logger = logging.getLogger(__name__)
tz = pytz.timezone(settings.TIMEZONE)

scheduler = AsyncIOScheduler(timezone=tz)


async def purge_oauth_states_job():
    """Delete OAuth and account-selection states past their expiry."""
    from social_inbox.application.services.oauth_service import purge_expired_states

    db = SessionLocal()
    try:
        purged = purge_expired_states(db)
        if purged:
            logger.info(f"Purged {purged} expired OAuth states")
    except Exception as e:
        db.rollback()
        logger.error(f"OAuth state purge failed: {e}")
    finally:
        db.close()


async def refresh_tokens_job():
    """Re-exchange Meta tokens that expire within the refresh threshold."""
    from social_inbox.application.services.token_refresh_service import refresh_expiring_tokens
    from social_inbox.infrastructure.meta_graph import MetaGraphClient

    logger.info(f"Running token refresh job at {datetime.now(tz).strftime('%Y-%m-%d %H:%M')}")

    db = SessionLocal()
    try:
        result = await refresh_expiring_tokens(db, MetaGraphClient())
        logger.info(f"Token refresh result: {result}")
    except Exception as e:
        db.rollback()
        logger.error(f"Token refresh job failed: {e}")
    finally:
        db.close()


def start_scheduler():
    """Start the APScheduler with the state purge and token refresh jobs."""
    scheduler.add_job(
        purge_oauth_states_job,
        trigger=IntervalTrigger(minutes=15, timezone=tz),
        id="purge_oauth_states",
        name="OAuth State Purge (Every 15 mins)",
        replace_existing=True,
    )

    scheduler.add_job(
        refresh_tokens_job,
        trigger=CronTrigger(hour=3, minute=0, timezone=tz),
        id="refresh_meta_tokens",
        name="Meta Token Refresh (Daily 03:00)",
        replace_existing=True,
    )

    scheduler.start()
    logger.info(f"Scheduler started — state purge every 15 mins, token refresh daily at 03:00 {settings.TIMEZONE}")


def stop_scheduler():
    """Stop the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
