"""Achievement catalog seed data, matching the mobile achievements screen."""

from __future__ import annotations

import logging

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from mono.db.models import Achievement

logger = logging.getLogger(__name__)

ACHIEVEMENT_SEED_DATA: list[dict] = [
    {
        "key": "first_tx",
        "name": "First Step",
        "description": "Created your first transaction",
        "icon": "rocket",
        "xp_reward": 50,
    },
    {
        "key": "tx_master",
        "name": "Transaction Master",
        "description": "Created 10 transactions",
        "icon": "trophy",
        "xp_reward": 100,
    },
    {
        "key": "budget_planner",
        "name": "Budget Hero",
        "description": "Created 3 different budgets",
        "icon": "shield-star",
        "xp_reward": 150,
    },
    {
        "key": "ai_scanner",
        "name": "AI Visionary",
        "description": "Scanned your first receipt with AI",
        "icon": "eye",
        "xp_reward": 75,
    },
]


def _insert_for(db: AsyncSession):
    """Dialect-specific INSERT supporting ON CONFLICT."""
    return sqlite_insert if db.get_bind().dialect.name == "sqlite" else pg_insert


async def seed_achievements(db: AsyncSession) -> int:
    """Upsert the achievement catalog. Returns number of achievements seeded."""
    insert = _insert_for(db)
    seeded = 0
    for data in ACHIEVEMENT_SEED_DATA:
        stmt = insert(Achievement).values(**data)
        stmt = stmt.on_conflict_do_update(
            index_elements=["key"],
            set_={
                "name": stmt.excluded.name,
                "description": stmt.excluded.description,
                "icon": stmt.excluded.icon,
                "xp_reward": stmt.excluded.xp_reward,
            },
        )
        await db.execute(stmt)
        seeded += 1

    await db.commit()
    logger.info("Seeded %d achievements", seeded)
    return seeded
