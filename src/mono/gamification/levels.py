"""Level computation.

Levels are a pure function of XP: every ``XP_PER_LEVEL`` points is one level,
starting at level 1. The mobile client's progress bar uses the same formula.
"""

from __future__ import annotations

XP_PER_LEVEL = 100


def level_for_xp(xp: int, xp_per_level: int = XP_PER_LEVEL) -> int:
    """Return ``floor(xp / xp_per_level) + 1``; negative XP counts as zero."""
    return max(xp, 0) // xp_per_level + 1


def crossed_level(old_xp: int, new_xp: int, xp_per_level: int = XP_PER_LEVEL) -> bool:
    """True if going from ``old_xp`` to ``new_xp`` reaches a higher level."""
    return level_for_xp(new_xp, xp_per_level) > level_for_xp(old_xp, xp_per_level)
