"""Achievement unlocking with duplicate prevention and notification."""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mono.db.models import Achievement, Budget, Transaction, User, UserAchievement
from mono.gamification.schemas import AchievementStatus, UnlockedAchievement
from mono.gamification.xp_service import award_xp
from mono.notifications.service import is_enabled, send_localized
from mono.periods import utcnow

logger = logging.getLogger(__name__)

# (key, minimum transaction count)
TRANSACTION_COUNT_ACHIEVEMENTS = [
    ("first_tx", 1),
    ("tx_master", 10),
]

# (key, minimum budget count)
BUDGET_COUNT_ACHIEVEMENTS = [
    ("budget_planner", 3),
]


async def get_achievement_by_key(db: AsyncSession, key: str) -> Achievement | None:
    """Fetch a catalog entry by its stable key."""
    result = await db.execute(select(Achievement).where(Achievement.key == key))
    return result.scalar_one_or_none()


async def has_achievement(db: AsyncSession, user_id: int, achievement_id: int) -> bool:
    """Check if the user already unlocked a specific achievement."""
    result = await db.execute(
        select(UserAchievement.id).where(
            UserAchievement.user_id == user_id,
            UserAchievement.achievement_id == achievement_id,
        )
    )
    return result.scalar_one_or_none() is not None


async def unlock_achievement(db: AsyncSession, user_id: int, key: str) -> UnlockedAchievement | None:
    """Unlock an achievement for a user.

    Returns the achievement's display fields if it was unlocked now, None if
    it was already unlocked or the key is not in the catalog.
    Handles:
    1. Insert into user_achievements (UNIQUE(user_id, achievement_id))
    2. Emit the "achievement unlocked" notification
    3. Grant the achievement's XP reward without re-running the checks
    """
    try:
        achievement = await get_achievement_by_key(db, key)
        if achievement is None:
            logger.warning("Achievement not found: %s", key)
            return None

        if await has_achievement(db, user_id, achievement.id):
            return None

        unlocked = UnlockedAchievement.model_validate(achievement)
        db.add(UserAchievement(user_id=user_id, achievement_id=achievement.id, unlocked_at=utcnow()))
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            return None  # Race condition: unlocked by a concurrent request
    except Exception:
        logger.exception("Unlock of %s failed for user %s", key, user_id)
        await db.rollback()
        return None

    await _emit_achievement_unlocked(db, user_id, unlocked)
    await award_xp(db, user_id, unlocked.xp_reward)
    return unlocked


async def check_achievements(db: AsyncSession, user_id: int) -> list[UnlockedAchievement]:
    """Evaluate every count-based achievement, in order, and unlock the satisfied ones.

    ``ai_scanner`` is deliberately absent: only the receipt-scan flow unlocks it.
    """
    unlocked: list[UnlockedAchievement] = []

    tx_count = await _count(db, Transaction, user_id)
    for key, threshold in TRANSACTION_COUNT_ACHIEVEMENTS:
        if tx_count >= threshold:
            achievement = await unlock_achievement(db, user_id, key)
            if achievement:
                unlocked.append(achievement)

    budget_count = await _count(db, Budget, user_id)
    for key, threshold in BUDGET_COUNT_ACHIEVEMENTS:
        if budget_count >= threshold:
            achievement = await unlock_achievement(db, user_id, key)
            if achievement:
                unlocked.append(achievement)

    return unlocked


async def get_user_achievements(db: AsyncSession, user_id: int) -> list[AchievementStatus]:
    """The whole catalog with the user's unlock state, for the achievements screen."""
    catalog = (await db.execute(select(Achievement).order_by(Achievement.id))).scalars().all()
    rows = await db.execute(
        select(UserAchievement.achievement_id, UserAchievement.unlocked_at).where(
            UserAchievement.user_id == user_id
        )
    )
    unlocked_at = {achievement_id: at for achievement_id, at in rows}

    return [
        AchievementStatus(
            key=a.key,
            name=a.name,
            description=a.description,
            icon=a.icon,
            xp_reward=a.xp_reward,
            unlocked=a.id in unlocked_at,
            unlocked_at=unlocked_at.get(a.id),
        )
        for a in catalog
    ]


async def _count(db: AsyncSession, model: type[Transaction] | type[Budget], user_id: int) -> int:
    result = await db.execute(select(func.count()).select_from(model).where(model.user_id == user_id))
    return result.scalar_one()


async def _emit_achievement_unlocked(db: AsyncSession, user_id: int, achievement: UnlockedAchievement) -> None:
    """Send the achievement push if the user allows gamification notifications."""
    try:
        user = await db.get(User, user_id)
        if user is None or not is_enabled(user.notification_settings, "gamification"):
            return
        await send_localized(
            db,
            user,
            "achievement_unlocked",
            {"type": "achievement_unlocked", "key": achievement.key},
            name=achievement.name,
            xp=achievement.xp_reward,
            description=achievement.description,
        )
    except Exception:
        logger.warning("Failed to send achievement notification for user %s", user_id, exc_info=True)
