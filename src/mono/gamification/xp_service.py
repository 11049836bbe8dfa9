"""XP awards with atomic increments and level-up detection.

Two entry points:

- ``award_xp`` only moves XP and level. It is the default, and the only one
  used when the award is itself an achievement reward.
- ``award_xp_and_check_achievements`` composes it with the achievement checks.

Neither raises: any failure is logged and turned into the zero ``XPResult``
so the action that earned the XP (creating a transaction, a budget) is never
blocked by bookkeeping.
"""

from __future__ import annotations

import logging

from sqlalchemy import case, update
from sqlalchemy.ext.asyncio import AsyncSession

from mono.config import get_settings
from mono.db.models import User
from mono.gamification.levels import crossed_level
from mono.gamification.schemas import XPResult
from mono.notifications.service import is_enabled, send_localized

logger = logging.getLogger(__name__)


async def award_xp(db: AsyncSession, user_id: int, amount: int) -> XPResult:
    """Add ``amount`` XP to a user and recompute the level.

    XP and level are written in a single UPDATE, so concurrent awards to the
    same user cannot lose each other's increments. XP never drops below zero.
    """
    xp_per_level = get_settings().xp_per_level
    try:
        new_xp = case((User.xp + amount < 0, 0), else_=User.xp + amount)
        result = await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(xp=new_xp, level=new_xp // xp_per_level + 1)
            .returning(User.xp, User.level)
            .execution_options(synchronize_session="fetch")
        )
        row = result.one_or_none()
        if row is None:
            return XPResult()
        await db.commit()

        xp, level = row
        leveled_up = amount > 0 and crossed_level(xp - amount, xp, xp_per_level)
        if leveled_up:
            await _emit_level_up(db, user_id, level)

        return XPResult(xp=xp, level=level, gained_xp=amount, leveled_up=leveled_up)
    except Exception:
        logger.exception("XP award failed for user %s (amount=%s)", user_id, amount)
        await db.rollback()
        return XPResult()


async def award_xp_and_check_achievements(db: AsyncSession, user_id: int, amount: int) -> XPResult:
    """Award XP, then run the achievement checks and report what was unlocked."""
    from mono.gamification.achievements import check_achievements

    result = await award_xp(db, user_id, amount)
    if result.gained_xp == 0 and amount != 0:
        # User missing or the award failed
        return result

    try:
        unlocked = await check_achievements(db, user_id)
    except Exception:
        logger.exception("Achievement check failed for user %s", user_id)
        return XPResult()

    if unlocked:
        # Achievement rewards moved XP (and maybe the level) after our award
        user = await db.get(User, user_id, populate_existing=True)
        if user is not None:
            result.leveled_up = result.leveled_up or user.level > result.level
            result.xp = user.xp
            result.level = user.level
    result.unlocked_achievements = unlocked
    return result


async def _emit_level_up(db: AsyncSession, user_id: int, level: int) -> None:
    """Send the level-up push if the user allows gamification notifications."""
    try:
        user = await db.get(User, user_id)
        if user is None or not is_enabled(user.notification_settings, "gamification"):
            return
        await send_localized(db, user, "level_up", {"type": "level_up", "level": level}, level=level)
    except Exception:
        logger.warning("Failed to send level-up notification for user %s", user_id, exc_info=True)
