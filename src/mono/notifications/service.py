"""Notification creation, delivery and history.

Notifications are:
1. Persisted in the database (when a user id is known)
2. Pushed to the user's devices through the Expo gateway
3. Filtered by the user's notification preferences (done by the callers)

Preference categories: budget, security, weekly, gamification. A missing key
means the category is enabled; only an explicit ``False`` disables it.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mono.db.models import Notification, User
from mono.notifications.messages import render
from mono.notifications.push import PushMessage, filter_valid_tokens, get_push_client
from mono.periods import utcnow

logger = logging.getLogger(__name__)

DEFAULT_PREFERENCES = {
    "budget": True,
    "security": True,
    "weekly": True,
    "gamification": True,
}


def is_enabled(preferences: dict[str, Any] | None, category: str) -> bool:
    """Check a preference flag with default-allow semantics."""
    if not preferences:
        return DEFAULT_PREFERENCES.get(category, True)
    return preferences.get(category, DEFAULT_PREFERENCES.get(category, True)) is not False


@dataclass
class DispatchResult:
    """What happened to one notification."""

    notification_id: int | None = None
    valid_tokens: int = 0
    batches_sent: int = 0
    batches_failed: int = 0

    @property
    def delivered(self) -> bool:
        return self.batches_sent > 0


async def _persist_notification(
    db: AsyncSession,
    user_id: int,
    title: str,
    body: str,
    data: dict[str, Any] | None,
) -> int | None:
    """Commit a history row. Failures are logged and rolled back, never raised."""
    try:
        notification = Notification(
            user_id=user_id,
            title=title,
            body=body,
            data=data,
            is_read=False,
            created_at=utcnow(),
        )
        db.add(notification)
        await db.commit()
        return notification.id
    except Exception:
        logger.exception("Failed to save notification for user %s", user_id)
        await db.rollback()
        return None


async def dispatch_push(
    db: AsyncSession,
    tokens: Sequence[str | None],
    title: str,
    body: str,
    data: dict[str, Any] | None = None,
    *,
    user_id: int | None = None,
    sound: str | None = "default",
    badge: int | None = None,
) -> DispatchResult:
    """Persist (if ``user_id`` is given) and push a message to ``tokens``.

    Having no valid token is not an error: the user simply has no device.
    Gateway failures are logged by the push client and never retried.
    """
    result = DispatchResult()
    if user_id is not None:
        result.notification_id = await _persist_notification(db, user_id, title, body, data)

    valid = filter_valid_tokens(tokens)
    result.valid_tokens = len(valid)
    if not valid:
        logger.info("No valid Expo push token (user=%s), skipping push", user_id)
        return result

    messages = [
        PushMessage(to=token, title=title, body=body, data=dict(data or {}), sound=sound, badge=badge)
        for token in valid
    ]
    try:
        sent = await get_push_client().send(messages)
    except Exception:
        logger.exception("Push delivery crashed (user=%s)", user_id)
        result.batches_failed = 1
        return result

    result.batches_sent = sent.batches_sent
    result.batches_failed = sent.batches_failed
    return result


async def send_push_notification(
    db: AsyncSession,
    user_id: int,
    title: str,
    body: str,
    data: dict[str, Any] | None = None,
) -> DispatchResult:
    """Record a notification for ``user_id`` and push it to their stored device token."""
    notification_id = await _persist_notification(db, user_id, title, body, data)

    result = await db.execute(select(User.push_token).where(User.id == user_id))
    token = result.scalar_one_or_none()

    dispatched = await dispatch_push(db, [token], title, body, data)
    dispatched.notification_id = notification_id
    return dispatched


async def send_localized(
    db: AsyncSession,
    user: User,
    message_key: str,
    data: dict[str, Any] | None = None,
    **params: object,
) -> DispatchResult:
    """Render ``message_key`` in the user's locale and send it."""
    title, body = render(message_key, user.locale, **params)
    return await send_push_notification(db, user.id, title, body, data)


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


async def get_notifications(db: AsyncSession, user_id: int, limit: int = 50) -> list[Notification]:
    """Most recent notifications first."""
    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_unread_count(db: AsyncSession, user_id: int) -> int:
    """Get count of unread notifications."""
    result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
    )
    return result.scalar_one()


async def mark_as_read(db: AsyncSession, user_id: int, notification_id: int) -> bool:
    """Mark a single notification as read. Returns True if found."""
    result = await db.execute(
        update(Notification)
        .where(Notification.id == notification_id, Notification.user_id == user_id)
        .values(is_read=True)
    )
    await db.commit()
    return result.rowcount > 0


async def mark_all_as_read(db: AsyncSession, user_id: int) -> int:
    """Mark all unread notifications as read. Returns count updated."""
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    await db.commit()
    return result.rowcount
