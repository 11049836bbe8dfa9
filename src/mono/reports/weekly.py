"""Weekly financial summary push.

Runs out-of-band (arq cron or ``python -m mono.workers.reports_runner weekly``).
Users with no transactions in the window get nothing: there is no
"quiet week" message.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mono.config import get_settings
from mono.db.models import Transaction, User
from mono.notifications.messages import render
from mono.notifications.service import is_enabled, send_push_notification
from mono.periods import days_ago

logger = logging.getLogger(__name__)

WEEKLY_SUMMARY_TYPE = "weekly_summary"


class _TransactionLike(Protocol):
    amount: Any
    type: str
    category: str


@dataclass
class WeeklySummary:
    total_income: Decimal
    total_expense: Decimal
    top_category: str | None
    top_category_amount: Decimal
    transaction_count: int

    def payload(self) -> dict[str, Any]:
        return {
            "type": WEEKLY_SUMMARY_TYPE,
            "totalExpense": float(self.total_expense),
            "totalIncome": float(self.total_income),
            "topCategory": self.top_category,
        }


@dataclass
class BulkReportResult:
    users: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0


def summarize(transactions: Iterable[_TransactionLike]) -> WeeklySummary:
    """Aggregate income, expense and the top expense category.

    On an exact tie the category seen first wins; callers should not rely on
    which one that is.
    """
    total_income = Decimal(0)
    total_expense = Decimal(0)
    by_category: dict[str, Decimal] = {}
    count = 0

    for tx in transactions:
        count += 1
        amount = Decimal(str(tx.amount))
        if tx.type == "INCOME":
            total_income += amount
        elif tx.type == "EXPENSE":
            total_expense += amount
            by_category[tx.category] = by_category.get(tx.category, Decimal(0)) + amount

    top_category = max(by_category, key=by_category.__getitem__) if by_category else None
    return WeeklySummary(
        total_income=total_income,
        total_expense=total_expense,
        top_category=top_category,
        top_category_amount=by_category.get(top_category, Decimal(0)) if top_category else Decimal(0),
        transaction_count=count,
    )


def compose_message(summary: WeeklySummary, locale: str | None = None) -> tuple[str, str]:
    """Localized (title, body) for a weekly summary."""
    title, body = render(
        "weekly_summary",
        locale,
        expense=f"{summary.total_expense:.2f}",
        income=f"{summary.total_income:.2f}",
    )
    if summary.top_category:
        _, extra = render(
            "weekly_top_category",
            locale,
            category=summary.top_category,
            amount=f"{summary.top_category_amount:.2f}",
        )
        body += extra
    return title, body


async def _deliver_weekly_summary(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
) -> WeeklySummary | None:
    """Build and send one user's summary. Raises on unexpected errors."""
    user = await db.get(User, user_id)
    if user is None or not is_enabled(user.notification_settings, "weekly"):
        return None

    since = days_ago(get_settings().weekly_summary_days, now)
    result = await db.execute(
        select(Transaction).where(Transaction.user_id == user_id, Transaction.date >= since)
    )
    transactions = result.scalars().all()
    if not transactions:
        return None

    summary = summarize(transactions)
    title, body = compose_message(summary, user.locale)
    await send_push_notification(db, user_id, title, body, summary.payload())
    logger.info("Weekly summary sent to user %s", user_id)
    return summary


async def send_weekly_summary(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
) -> WeeklySummary | None:
    """Send the last-7-days summary to one user. Returns it, or None if nothing was sent."""
    try:
        return await _deliver_weekly_summary(db, user_id, now)
    except Exception:
        logger.exception("Failed to send weekly summary to user %s", user_id)
        await db.rollback()
        return None


async def run_bulk_weekly_reports(
    session_factory: async_sessionmaker[AsyncSession],
    now: datetime | None = None,
) -> BulkReportResult:
    """Send weekly summaries to every user with a push token, one at a time.

    Each user gets a fresh session and its own error boundary, so one
    failing user never aborts the batch.
    """
    async with session_factory() as db:
        result = await db.execute(
            select(User.id).where(User.push_token.is_not(None)).order_by(User.id)
        )
        user_ids = list(result.scalars().all())

    outcome = BulkReportResult(users=len(user_ids))
    logger.info("Starting bulk weekly reports for %d users", len(user_ids))

    for user_id in user_ids:
        try:
            async with session_factory() as db:
                summary = await _deliver_weekly_summary(db, user_id, now)
        except Exception:
            outcome.failed += 1
            logger.exception("Weekly summary failed for user %s", user_id)
            continue

        if summary is None:
            outcome.skipped += 1
        else:
            outcome.sent += 1

    logger.info(
        "Bulk weekly reports completed: %d sent, %d skipped, %d failed",
        outcome.sent, outcome.skipped, outcome.failed,
    )
    return outcome
