"""Shared test fixtures.

Tests run against an in-memory SQLite database (aiosqlite) built from the ORM
metadata, and every push goes to a recording ``httpx.MockTransport``; nothing
touches Postgres, Redis or the Expo gateway.
"""

from __future__ import annotations

import itertools
import json
from collections.abc import AsyncGenerator
from datetime import datetime
from decimal import Decimal
from typing import Any

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from mono.config import get_settings
from mono.db.base import Base
from mono.db.models import Budget, Transaction, User
from mono.gamification.seed import seed_achievements
from mono.notifications.push import ExpoPushClient, reset_push_client, set_push_client
from mono.periods import utcnow

TEST_PUSH_URL = "https://push.test/--/api/v2/push/send"

_emails = itertools.count(1)


class PushRecorder:
    """Stands in for the Expo gateway and remembers every batch it receives."""

    def __init__(self) -> None:
        self.batches: list[list[dict[str, Any]]] = []
        self.fail_status: int | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        batch = json.loads(request.content)
        self.batches.append(batch)
        if self.fail_status is not None:
            return httpx.Response(self.fail_status, json={"errors": [{"message": "gateway down"}]})
        return httpx.Response(200, json={"data": [{"status": "ok", "id": f"ticket-{i}"} for i in range(len(batch))]})

    @property
    def messages(self) -> list[dict[str, Any]]:
        return [message for batch in self.batches for message in batch]

    def of_type(self, kind: str) -> list[dict[str, Any]]:
        return [m for m in self.messages if m.get("data", {}).get("type") == kind]


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def push_recorder() -> Any:
    """Route all push traffic to an in-process recorder."""
    recorder = PushRecorder()
    set_push_client(ExpoPushClient(TEST_PUSH_URL, transport=httpx.MockTransport(recorder.handler)))
    yield recorder
    reset_push_client()


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def seeded_db(db_session: AsyncSession) -> AsyncSession:
    """Session with the achievement catalog in place."""
    await seed_achievements(db_session)
    return db_session


async def create_user(
    db: AsyncSession,
    *,
    push_token: str | None = "ExponentPushToken[test-device]",
    locale: str | None = "en",
    **fields: Any,
) -> User:
    user = User(
        email=fields.pop("email", f"user{next(_emails)}@example.com"),
        push_token=push_token,
        locale=locale,
        **fields,
    )
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
def make_user():
    """Factory fixture: ``await make_user(db, xp=80, notification_settings={...})``."""
    return create_user


async def create_transaction(
    db: AsyncSession,
    user: User,
    amount: str | int | Decimal,
    category: str = "Market",
    type: str = "EXPENSE",
    date: datetime | None = None,
) -> Transaction:
    tx = Transaction(
        user_id=user.id,
        amount=Decimal(str(amount)),
        category=category,
        type=type,
        date=date or utcnow(),
    )
    db.add(tx)
    await db.commit()
    return tx


async def create_budget(
    db: AsyncSession,
    user: User,
    category: str = "Market",
    amount: str | int | Decimal = "1000",
) -> Budget:
    budget = Budget(user_id=user.id, name=f"{category} budget", category=category, amount=Decimal(str(amount)))
    db.add(budget)
    await db.commit()
    return budget


@pytest.fixture
def make_transaction():
    return create_transaction


@pytest.fixture
def make_budget():
    return create_budget
