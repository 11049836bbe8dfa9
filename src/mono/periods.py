"""Calendar helpers for monthly budgets and weekly reports.

All boundaries are computed in UTC. Every helper accepts ``now`` so callers
(and tests) can pin the clock.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC (SQLite hands them back naive)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def month_start(now: datetime | None = None) -> datetime:
    """First instant of the calendar month containing ``now``."""
    if now is None:
        now = utcnow()
    now = ensure_aware(now)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def days_ago(days: int, now: datetime | None = None) -> datetime:
    """The instant exactly ``days`` days before ``now``."""
    if now is None:
        now = utcnow()
    return ensure_aware(now) - timedelta(days=days)


def get_week_iso(dt: datetime) -> str:
    """Get ISO week string e.g. '2026-W42'. Uses %G-W%V (ISO year + ISO week)."""
    return dt.strftime("%G-W%V")
