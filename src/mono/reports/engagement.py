"""Daily re-engagement reminders.

Two passes over ACTIVE users with a push token:

1. no login for ``inactivity_days`` -> "we miss you", opens the dashboard
2. no transaction for ``transaction_reminder_days`` -> "add your transactions",
   skipping everyone selected by pass 1

Users whose timestamp was never set are not reminded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mono.config import get_settings
from mono.db.models import User
from mono.notifications.service import send_localized
from mono.periods import days_ago

logger = logging.getLogger(__name__)

ENGAGEMENT_TYPE = "engagement"


@dataclass
class EngagementResult:
    inactive_sent: int = 0
    transaction_sent: int = 0
    failed: int = 0


async def _candidates(db: AsyncSession, column: Any, cutoff: datetime) -> list[int]:
    result = await db.execute(
        select(User.id)
        .where(
            User.status == "ACTIVE",
            User.push_token.is_not(None),
            column.is_not(None),
            column <= cutoff,
        )
        .order_by(User.id)
    )
    return list(result.scalars().all())


async def _remind(
    session_factory: async_sessionmaker[AsyncSession],
    user_id: int,
    message_key: str,
    screen: str,
    **params: object,
) -> bool:
    async with session_factory() as db:
        user = await db.get(User, user_id)
        if user is None:
            return False
        await send_localized(db, user, message_key, {"type": ENGAGEMENT_TYPE, "screen": screen}, **params)
    return True


async def run_engagement_reminders(
    session_factory: async_sessionmaker[AsyncSession],
    now: datetime | None = None,
) -> EngagementResult:
    """Send both reminder passes. One failing user never stops the run."""
    settings = get_settings()
    outcome = EngagementResult()

    async with session_factory() as db:
        inactive = await _candidates(db, User.last_login_at, days_ago(settings.inactivity_days, now))
        idle = await _candidates(db, User.last_transaction_at, days_ago(settings.transaction_reminder_days, now))

    reminded = set(inactive)
    for user_id in inactive:
        try:
            if await _remind(
                session_factory, user_id, "engagement_inactive", "Dashboard", days=settings.inactivity_days
            ):
                outcome.inactive_sent += 1
        except Exception:
            outcome.failed += 1
            logger.exception("Inactivity reminder failed for user %s", user_id)

    for user_id in idle:
        if user_id in reminded:
            continue
        try:
            if await _remind(session_factory, user_id, "engagement_transaction", "AddTransaction"):
                outcome.transaction_sent += 1
        except Exception:
            outcome.failed += 1
            logger.exception("Transaction reminder failed for user %s", user_id)

    logger.info(
        "Engagement reminders completed: %d inactive, %d transaction, %d failed",
        outcome.inactive_sent, outcome.transaction_sent, outcome.failed,
    )
    return outcome
