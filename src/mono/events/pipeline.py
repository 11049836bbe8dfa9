"""Side effects of domain events: alerts, XP and achievements.

Every step is wrapped by ``best_effort`` so one failing step never stops the
next one, and nothing ever propagates back to the publisher.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from mono.alerts.budget import check_budget_thresholds
from mono.alerts.large_transaction import check_large_transaction
from mono.config import get_settings
from mono.events.schemas import BudgetCreated, ReceiptScanned, TransactionCreated
from mono.gamification.achievements import unlock_achievement
from mono.gamification.xp_service import award_xp_and_check_achievements

logger = logging.getLogger(__name__)


@dataclass
class StepOutcome:
    name: str
    ok: bool
    error: str | None = None
    value: Any = None


async def best_effort(name: str, step: Awaitable[Any], db: AsyncSession | None = None) -> StepOutcome:
    """Await ``step``; turn any exception into a failed outcome.

    When ``db`` is given it is rolled back after a failure so later steps
    start from a clean session.
    """
    try:
        value = await step
    except Exception as exc:
        logger.exception("Side effect %s failed", name)
        if db is not None:
            await db.rollback()
        return StepOutcome(name=name, ok=False, error=f"{type(exc).__name__}: {exc}")
    return StepOutcome(name=name, ok=True, value=value)


async def handle_transaction_created(db: AsyncSession, event: TransactionCreated) -> list[StepOutcome]:
    """Alerts run before XP so they are not delayed by achievement checks."""
    outcomes: list[StepOutcome] = []
    if event.type == "EXPENSE":
        outcomes.append(await best_effort(
            "large_transaction",
            check_large_transaction(db, event.user_id, event.amount, event.category),
            db,
        ))
        outcomes.append(await best_effort(
            "budget_thresholds",
            check_budget_thresholds(db, event.user_id, event.category),
            db,
        ))

    outcomes.append(await best_effort(
        "xp",
        award_xp_and_check_achievements(db, event.user_id, get_settings().xp_per_transaction),
        db,
    ))
    return outcomes


async def handle_budget_created(db: AsyncSession, event: BudgetCreated) -> list[StepOutcome]:
    return [
        await best_effort(
            "xp",
            award_xp_and_check_achievements(db, event.user_id, get_settings().xp_per_budget),
            db,
        )
    ]


async def handle_receipt_scanned(db: AsyncSession, event: ReceiptScanned) -> list[StepOutcome]:
    """Receipt scans earn XP (with the usual checks) and the AI achievement."""
    return [
        await best_effort(
            "xp",
            award_xp_and_check_achievements(db, event.user_id, get_settings().xp_per_receipt_scan),
            db,
        ),
        await best_effort("ai_scanner", unlock_achievement(db, event.user_id, "ai_scanner"), db),
    ]


async def handle_event(
    db: AsyncSession,
    event: TransactionCreated | BudgetCreated | ReceiptScanned,
) -> list[StepOutcome]:
    if isinstance(event, TransactionCreated):
        outcomes = await handle_transaction_created(db, event)
    elif isinstance(event, BudgetCreated):
        outcomes = await handle_budget_created(db, event)
    elif isinstance(event, ReceiptScanned):
        outcomes = await handle_receipt_scanned(db, event)
    else:
        msg = f"Unsupported event: {type(event).__name__}"
        raise TypeError(msg)

    failed = [o.name for o in outcomes if not o.ok]
    if failed:
        logger.warning("Event %s for user %s had failed steps: %s", event.event, event.user_id, failed)
    return outcomes
