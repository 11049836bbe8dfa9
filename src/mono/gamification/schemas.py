"""Pydantic models returned by the gamification services."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class UnlockedAchievement(BaseModel):
    """Display fields of a freshly unlocked achievement."""

    model_config = ConfigDict(from_attributes=True)

    key: str
    name: str
    description: str
    icon: str
    xp_reward: int


class XPResult(BaseModel):
    """Outcome of an XP award. The zero value is returned on any failure."""

    xp: int = 0
    level: int = 1
    gained_xp: int = 0
    leveled_up: bool = False
    unlocked_achievements: list[UnlockedAchievement] = Field(default_factory=list)


class AchievementStatus(BaseModel):
    """Catalog entry with the user's unlock state."""

    key: str
    name: str
    description: str
    icon: str
    xp_reward: int
    unlocked: bool = False
    unlocked_at: datetime | None = None
