"""Budget threshold alerts: 80% ("approaching") and 100% ("exceeded") of a monthly limit.

An alert for (user, budget, threshold) goes out at most once per calendar
month. The check is derived from notification history (the most recent
notifications since the first of the month) and backed by a uniquely keyed
``budget_alerts`` marker, so two requests racing past the history scan still
produce a single alert.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mono.config import get_settings
from mono.db.models import Budget, BudgetAlert, Notification, Transaction, User
from mono.notifications.service import is_enabled, send_localized
from mono.periods import month_start, utcnow

logger = logging.getLogger(__name__)

BUDGET_THRESHOLD_TYPE = "budget_threshold"


def pick_threshold(
    spent: Decimal,
    limit: Decimal,
    warning_ratio: float = 0.8,
    exceeded_ratio: float = 1.0,
) -> float | None:
    """Return the highest threshold reached by ``spent / limit``, or None."""
    if limit <= 0:
        return None
    ratio = Decimal(spent) / Decimal(limit)
    if ratio >= Decimal(str(exceeded_ratio)):
        return exceeded_ratio
    if ratio >= Decimal(str(warning_ratio)):
        return warning_ratio
    return None


def is_same_alert(data: dict | None, threshold: float, budget_id: int) -> bool:
    """Does a notification payload describe this exact budget alert?"""
    if not isinstance(data, dict):
        return False
    return (
        data.get("type") == BUDGET_THRESHOLD_TYPE
        and data.get("threshold") == threshold
        and data.get("budgetId") == budget_id
    )


async def find_budget(db: AsyncSession, user_id: int, category: str) -> Budget | None:
    """The user's budget for ``category``, matched case-insensitively."""
    result = await db.execute(
        select(Budget)
        .where(Budget.user_id == user_id, func.lower(Budget.category) == category.lower())
        .order_by(Budget.id)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def monthly_spent(db: AsyncSession, user_id: int, category: str, since: datetime) -> Decimal:
    """Sum of EXPENSE transactions in ``category`` dated on or after ``since``."""
    result = await db.execute(
        select(func.coalesce(func.sum(Transaction.amount), 0)).where(
            Transaction.user_id == user_id,
            Transaction.category == category,
            Transaction.type == "EXPENSE",
            Transaction.date >= since,
        )
    )
    return Decimal(str(result.scalar_one() or 0))


async def already_alerted(
    db: AsyncSession,
    user_id: int,
    budget_id: int,
    threshold: float,
    since: datetime,
    scan_limit: int = 20,
) -> bool:
    """Scan the user's latest notifications this month for the same alert."""
    result = await db.execute(
        select(Notification.data)
        .where(Notification.user_id == user_id, Notification.created_at >= since)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(scan_limit)
    )
    return any(is_same_alert(data, threshold, budget_id) for data in result.scalars())


async def _claim_alert(
    db: AsyncSession,
    user_id: int,
    budget_id: int,
    threshold: float,
    period_start: datetime,
) -> bool:
    """Insert the 'alert sent' marker. False if another request already claimed it."""
    db.add(BudgetAlert(
        user_id=user_id,
        budget_id=budget_id,
        threshold=threshold,
        period_start=period_start,
        sent_at=utcnow(),
    ))
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        return False
    return True


async def _release_alert(
    db: AsyncSession,
    user_id: int,
    budget_id: int,
    threshold: float,
    period_start: datetime,
) -> None:
    """Drop a claimed marker whose notification never went out."""
    await db.execute(
        delete(BudgetAlert).where(
            BudgetAlert.user_id == user_id,
            BudgetAlert.budget_id == budget_id,
            BudgetAlert.threshold == threshold,
            BudgetAlert.period_start == period_start,
        )
    )
    await db.commit()


async def check_budget_thresholds(
    db: AsyncSession,
    user_id: int,
    category: str,
    now: datetime | None = None,
) -> float | None:
    """Send a budget alert if this month's spend in ``category`` crossed a threshold.

    Returns the threshold that was alerted, or None when nothing was sent.
    Never raises: alerting must not block transaction creation.
    """
    settings = get_settings()
    try:
        user = await db.get(User, user_id)
        if user is None or not is_enabled(user.notification_settings, "budget"):
            return None

        budget = await find_budget(db, user_id, category)
        if budget is None:
            return None

        start = month_start(now)
        spent = await monthly_spent(db, user_id, category, start)
        threshold = pick_threshold(
            spent,
            budget.amount,
            settings.budget_warning_ratio,
            settings.budget_exceeded_ratio,
        )
        if threshold is None:
            return None

        budget_id = budget.id
        if await already_alerted(db, user_id, budget_id, threshold, start, settings.budget_dedup_scan_limit):
            logger.debug("Budget %s threshold %s already alerted this month", budget_id, threshold)
            return None

        if not await _claim_alert(db, user_id, budget_id, threshold, start):
            return None

        message_key = "budget_exceeded" if threshold >= settings.budget_exceeded_ratio else "budget_warning"
        try:
            await send_localized(
                db,
                user,
                message_key,
                {"type": BUDGET_THRESHOLD_TYPE, "threshold": threshold, "budgetId": budget_id},
                category=category,
            )
        except Exception:
            # The marker must not outlive an alert that was never sent
            await db.rollback()
            await _release_alert(db, user_id, budget_id, threshold, start)
            raise
        logger.info("Budget alert sent: user=%s budget=%s threshold=%s", user_id, budget_id, threshold)
        return threshold
    except Exception:
        logger.exception("Error in check_budget_thresholds (user=%s, category=%s)", user_id, category)
        await db.rollback()
        return None
