"""Integration: domain events -> alerts -> XP -> achievements, through every dispatch mode."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select

from mono.db.models import User
from mono.events.bus import SideChannel
from mono.events.pipeline import best_effort, handle_event
from mono.events.schemas import BudgetCreated, ReceiptScanned, TransactionCreated


async def _xp(db, user_id: int) -> int:
    return (await db.execute(select(User.xp).where(User.id == user_id))).scalar_one()


def _expense(user_id: int, amount: str, category: str = "Market", type: str = "EXPENSE") -> TransactionCreated:
    return TransactionCreated(
        user_id=user_id, transaction_id=1, amount=Decimal(amount), category=category, type=type
    )


class TestBestEffort:
    @pytest.mark.asyncio
    async def test_success_keeps_value(self):
        async def ok():
            return 42

        outcome = await best_effort("answer", ok())
        assert outcome.ok is True
        assert outcome.value == 42
        assert outcome.error is None

    @pytest.mark.asyncio
    async def test_failure_is_captured(self):
        async def boom():
            raise RuntimeError("kaput")

        outcome = await best_effort("boom", boom())
        assert outcome.ok is False
        assert outcome.name == "boom"
        assert "RuntimeError" in outcome.error


class TestTransactionCreated:
    @pytest.mark.asyncio
    async def test_large_expense_runs_every_side_effect(
        self, seeded_db, make_user, make_budget, make_transaction, push_recorder
    ):
        db = seeded_db
        user = await make_user(db)
        await make_budget(db, user, "Market", "700")
        await make_transaction(db, user, "600", "Market")

        outcomes = await handle_event(db, _expense(user.id, "600"))

        assert [o.name for o in outcomes] == ["large_transaction", "budget_thresholds", "xp"]
        assert all(o.ok for o in outcomes)
        types = [m["data"]["type"] for m in push_recorder.messages]
        assert types == ["large_transaction", "budget_threshold", "achievement_unlocked"]
        assert await _xp(db, user.id) == 60

    @pytest.mark.asyncio
    async def test_income_only_earns_xp(self, seeded_db, make_user, make_transaction, push_recorder):
        db = seeded_db
        user = await make_user(db)
        await make_transaction(db, user, "5000", "Salary", type="INCOME")

        outcomes = await handle_event(db, _expense(user.id, "5000", "Salary", type="INCOME"))

        assert [o.name for o in outcomes] == ["xp"]
        assert push_recorder.of_type("large_transaction") == []

    @pytest.mark.asyncio
    async def test_failing_alert_does_not_block_xp(self, seeded_db, make_user, make_transaction, monkeypatch):
        from mono.events import pipeline

        async def broken(*args, **kwargs):
            raise RuntimeError("alert store down")

        monkeypatch.setattr(pipeline, "check_large_transaction", broken)
        db = seeded_db
        user = await make_user(db)
        await make_transaction(db, user, "900", "Rent")

        outcomes = await handle_event(db, _expense(user.id, "900", "Rent"))

        assert {o.name: o.ok for o in outcomes} == {"large_transaction": False, "budget_thresholds": True, "xp": True}
        assert await _xp(db, user.id) == 60

    @pytest.mark.asyncio
    async def test_failed_large_alert_flush_does_not_lose_budget_alert(
        self, seeded_db, make_user, make_budget, make_transaction, push_recorder, monkeypatch
    ):
        from mono.alerts import large_transaction
        from mono.db.models import Notification

        async def failing_flush(db, user, *args, **kwargs):
            db.add(Notification(user_id=user.id, title=None, body="broken"))
            await db.flush()

        monkeypatch.setattr(large_transaction, "send_localized", failing_flush)
        db = seeded_db
        user = await make_user(db)
        user_id = user.id
        await make_budget(db, user, "Market", "1000")
        await make_transaction(db, user, "900", "Market")

        outcomes = await handle_event(db, _expense(user_id, "900"))

        values = {o.name: o.value for o in outcomes}
        assert values["large_transaction"] is False
        assert values["budget_thresholds"] == 0.8
        assert len(push_recorder.of_type("budget_threshold")) == 1
        assert push_recorder.of_type("large_transaction") == []


class TestOtherEvents:
    @pytest.mark.asyncio
    async def test_third_budget_unlocks_budget_hero(self, seeded_db, make_user, make_budget, push_recorder):
        db = seeded_db
        user = await make_user(db)
        for category in ("Market", "Rent", "Cafe"):
            budget = await make_budget(db, user, category)

        outcomes = await handle_event(db, BudgetCreated(user_id=user.id, budget_id=budget.id))

        [outcome] = outcomes
        assert outcome.ok is True
        assert [a.key for a in outcome.value.unlocked_achievements] == ["budget_planner"]
        assert await _xp(db, user.id) == 165

    @pytest.mark.asyncio
    async def test_receipt_scan_unlocks_ai_visionary(self, seeded_db, make_user, push_recorder):
        db = seeded_db
        user = await make_user(db)

        outcomes = await handle_event(db, ReceiptScanned(user_id=user.id))

        assert [o.name for o in outcomes] == ["xp", "ai_scanner"]
        assert outcomes[1].value.key == "ai_scanner"
        assert await _xp(db, user.id) == 100
        assert len(push_recorder.of_type("level_up")) == 1

    @pytest.mark.asyncio
    async def test_second_receipt_scan_only_earns_xp(self, seeded_db, make_user):
        db = seeded_db
        user = await make_user(db)

        await handle_event(db, ReceiptScanned(user_id=user.id))
        outcomes = await handle_event(db, ReceiptScanned(user_id=user.id))

        assert outcomes[1].value is None
        assert await _xp(db, user.id) == 125

    @pytest.mark.asyncio
    async def test_receipt_scan_runs_achievement_checks(self, seeded_db, make_user, make_transaction):
        db = seeded_db
        user = await make_user(db)
        await make_transaction(db, user, "42", "Market")

        outcomes = await handle_event(db, ReceiptScanned(user_id=user.id))

        assert [a.key for a in outcomes[0].value.unlocked_achievements] == ["first_tx"]
        assert outcomes[1].value.key == "ai_scanner"
        assert await _xp(db, user.id) == 25 + 50 + 75


class TestSideChannel:
    @pytest.mark.asyncio
    async def test_inline_mode(self, session_factory, seeded_db, make_user):
        user = await make_user(seeded_db)
        channel = SideChannel(session_factory, mode="inline")

        assert await channel.publish(ReceiptScanned(user_id=user.id)) is True
        assert await _xp(seeded_db, user.id) == 100

    @pytest.mark.asyncio
    async def test_background_mode(self, session_factory, seeded_db, make_user):
        user = await make_user(seeded_db)
        channel = SideChannel(session_factory, mode="background")

        assert await channel.publish(ReceiptScanned(user_id=user.id)) is True
        await channel.drain()

        assert await _xp(seeded_db, user.id) == 100


class TestWorkerJobs:
    @pytest.mark.asyncio
    async def test_process_event_job(self, session_factory, seeded_db, make_user):
        from mono.workers.settings import process_event

        user = await make_user(seeded_db)
        payload = ReceiptScanned(user_id=user.id).model_dump(mode="json")

        failed = await process_event({"session_factory": session_factory}, payload)

        assert failed == []
        assert await _xp(seeded_db, user.id) == 100

    @pytest.mark.asyncio
    async def test_weekly_cron_runs_once_per_week(
        self, session_factory, db_session, make_user, make_transaction, push_recorder
    ):
        from mono.workers.settings import weekly_reports

        user = await make_user(db_session)
        await make_transaction(db_session, user, "50", "Market")
        redis = AsyncMock()
        redis.set.side_effect = [True, None]  # second SET NX finds the lock taken
        ctx = {"redis": redis, "session_factory": session_factory}

        assert await weekly_reports(ctx) == 1
        assert await weekly_reports(ctx) == 0

        assert len(push_recorder.of_type("weekly_summary")) == 1
        key = redis.set.await_args_list[0].args[0]
        assert key.startswith("mono:weekly_reports:")
        assert redis.set.await_args_list[0].kwargs["nx"] is True

    @pytest.mark.asyncio
    async def test_failed_weekly_run_releases_the_week(
        self, session_factory, db_session, make_user, make_transaction, push_recorder, monkeypatch
    ):
        from mono.workers import settings as worker_settings

        user = await make_user(db_session)
        await make_transaction(db_session, user, "50", "Market")
        real_run = worker_settings.run_bulk_weekly_reports

        async def database_down(*args, **kwargs):
            raise ConnectionError("database down")

        monkeypatch.setattr(worker_settings, "run_bulk_weekly_reports", database_down)
        redis = AsyncMock()
        redis.set.side_effect = [True, True]
        ctx = {"redis": redis, "session_factory": session_factory}

        with pytest.raises(ConnectionError):
            await worker_settings.weekly_reports(ctx)

        key = redis.set.await_args_list[0].args[0]
        redis.delete.assert_awaited_once_with(key)

        monkeypatch.setattr(worker_settings, "run_bulk_weekly_reports", real_run)
        assert await worker_settings.weekly_reports(ctx) == 1
        assert len(push_recorder.of_type("weekly_summary")) == 1
