"""Integration: security alert for large single transactions."""

from __future__ import annotations

from decimal import Decimal

import pytest

from mono.alerts.large_transaction import check_large_transaction


class TestLargeTransaction:
    @pytest.mark.asyncio
    async def test_just_below_threshold(self, db_session, make_user, push_recorder):
        user = await make_user(db_session)

        assert await check_large_transaction(db_session, user.id, Decimal("499.99"), "Rent") is False
        assert push_recorder.messages == []

    @pytest.mark.asyncio
    async def test_at_threshold(self, db_session, make_user, push_recorder):
        user = await make_user(db_session)

        assert await check_large_transaction(db_session, user.id, Decimal("500"), "Rent") is True

        [message] = push_recorder.messages
        assert message["data"] == {"type": "large_transaction", "amount": 500.0}
        assert message["categoryId"] == "security"
        assert "500.00" in message["body"]
        assert "Rent" in message["body"]

    @pytest.mark.asyncio
    async def test_every_large_transaction_alerts(self, db_session, make_user, push_recorder):
        user = await make_user(db_session)

        await check_large_transaction(db_session, user.id, Decimal("750"), "Rent")
        await check_large_transaction(db_session, user.id, Decimal("750"), "Rent")

        assert len(push_recorder.of_type("large_transaction")) == 2

    @pytest.mark.asyncio
    async def test_security_opt_out(self, db_session, make_user, push_recorder):
        user = await make_user(db_session, notification_settings={"security": False})

        assert await check_large_transaction(db_session, user.id, Decimal("900"), "Rent") is False
        assert push_recorder.messages == []

    @pytest.mark.asyncio
    async def test_absent_flag_means_enabled(self, db_session, make_user, push_recorder):
        user = await make_user(db_session, notification_settings={"budget": False})

        assert await check_large_transaction(db_session, user.id, Decimal("900"), "Rent") is True
        assert len(push_recorder.messages) == 1

    @pytest.mark.asyncio
    async def test_threshold_from_settings(self, db_session, make_user, monkeypatch):
        from mono.config import get_settings

        monkeypatch.setenv("MONO_LARGE_TRANSACTION_THRESHOLD", "1000")
        get_settings.cache_clear()
        user = await make_user(db_session)

        assert await check_large_transaction(db_session, user.id, Decimal("900"), "Rent") is False

    @pytest.mark.asyncio
    async def test_missing_user(self, db_session, push_recorder):
        assert await check_large_transaction(db_session, 777, Decimal("900"), "Rent") is False
        assert push_recorder.messages == []

    @pytest.mark.asyncio
    async def test_failure_leaves_session_usable(self, db_session, make_user, monkeypatch):
        from mono.alerts import large_transaction
        from mono.db.models import Notification, User

        async def failing_flush(db, user, *args, **kwargs):
            db.add(Notification(user_id=user.id, title=None, body="broken"))
            await db.flush()

        monkeypatch.setattr(large_transaction, "send_localized", failing_flush)
        user = await make_user(db_session)
        user_id = user.id

        assert await check_large_transaction(db_session, user_id, Decimal("900"), "Rent") is False
        assert (await db_session.get(User, user_id)).id == user_id
