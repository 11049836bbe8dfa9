"""arq worker: queued side effects plus the weekly and daily report crons.

Import path for arq CLI: arq mono.workers.settings.WorkerSettings
"""

from __future__ import annotations

import logging
from datetime import datetime

import redis.asyncio as aioredis
from arq import cron
from arq.connections import RedisSettings

from mono.config import get_settings
from mono.database import close_db, init_db
from mono.events.pipeline import handle_event
from mono.events.schemas import parse_event
from mono.gamification.seed import seed_achievements
from mono.logging_config import setup_logging
from mono.notifications.push import reset_push_client
from mono.periods import get_week_iso, utcnow
from mono.reports.engagement import run_engagement_reminders
from mono.reports.weekly import run_bulk_weekly_reports

logger = logging.getLogger(__name__)

WEEKLY_LOCK_PREFIX = "mono:weekly_reports"


def weekly_lock_key(now: datetime) -> str:
    return f"{WEEKLY_LOCK_PREFIX}:{get_week_iso(now)}"


async def startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Initialize DB + Redis and make sure the achievement catalog exists."""
    settings = get_settings()
    setup_logging(settings)
    ctx["session_factory"] = await init_db(settings.database_url)
    ctx["redis"] = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=10,
    )

    async with ctx["session_factory"]() as db:
        await seed_achievements(db)
    logger.info("Mono worker started")


async def shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    """Clean up on worker shutdown."""
    redis_client: aioredis.Redis | None = ctx.get("redis")
    if redis_client:
        await redis_client.aclose()
    reset_push_client()
    await close_db()
    logger.info("Mono worker shut down")


async def process_event(ctx: dict, payload: dict) -> list[str]:  # type: ignore[type-arg]
    """Run the pipeline for one queued event. Returns the names of failed steps."""
    event = parse_event(payload)
    async with ctx["session_factory"]() as db:
        outcomes = await handle_event(db, event)
    return [o.name for o in outcomes if not o.ok]


async def weekly_reports(ctx: dict) -> int:  # type: ignore[type-arg]
    """Cron: Monday 09:00 UTC. At most one run per ISO week across workers."""
    settings = get_settings()
    redis_client: aioredis.Redis = ctx["redis"]
    now = utcnow()

    acquired = await redis_client.set(weekly_lock_key(now), "1", nx=True, ex=settings.weekly_run_lock_ttl_seconds)
    if not acquired:
        logger.info("Weekly reports for %s already ran, skipping", get_week_iso(now))
        return 0

    try:
        result = await run_bulk_weekly_reports(ctx["session_factory"], now)
    except Exception:
        # Free the week for the retry and the next tick
        await redis_client.delete(weekly_lock_key(now))
        raise
    return result.sent


async def engagement_reminders(ctx: dict) -> int:  # type: ignore[type-arg]
    """Cron: daily 18:00 UTC."""
    result = await run_engagement_reminders(ctx["session_factory"])
    return result.inactive_sent + result.transaction_sent


class WorkerSettings:
    """arq worker settings for the mono side-effect worker."""

    functions = [process_event]
    cron_jobs = [
        cron(weekly_reports, weekday=0, hour=9, minute=0),
        cron(engagement_reminders, hour=18, minute=0),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().redis_url)
    max_jobs = 10
    job_timeout = 600  # bulk weekly run over every user
    allow_abort_jobs = True

