"""Security alert for unusually large single transactions.

Every qualifying transaction gets its own alert; there is no de-duplication.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from mono.config import get_settings
from mono.db.models import User
from mono.notifications.service import is_enabled, send_localized

logger = logging.getLogger(__name__)

LARGE_TRANSACTION_TYPE = "large_transaction"


def is_large(amount: Decimal | float | int, threshold: float) -> bool:
    return Decimal(str(amount)) >= Decimal(str(threshold))


async def check_large_transaction(
    db: AsyncSession,
    user_id: int,
    amount: Decimal | float | int,
    category: str,
) -> bool:
    """Alert the user about a transaction at or above the configured threshold.

    Returns True if an alert was sent. Never raises.
    """
    threshold = get_settings().large_transaction_threshold
    try:
        if not is_large(amount, threshold):
            return False

        user = await db.get(User, user_id)
        if user is None or not is_enabled(user.notification_settings, "security"):
            return False

        value = Decimal(str(amount))
        await send_localized(
            db,
            user,
            "large_transaction",
            {"type": LARGE_TRANSACTION_TYPE, "amount": float(value)},
            amount=f"{value:.2f}",
            category=category,
        )
        logger.info("Large transaction alert sent: user=%s amount=%s", user_id, value)
        return True
    except Exception:
        logger.exception("Error in check_large_transaction (user=%s)", user_id)
        await db.rollback()
        return False
