"""Side channel between the CRUD API and the event pipeline.

The request that created a transaction hands the event over and returns;
alerts and XP happen in one of three modes:

- ``inline``: awaited in the caller, on a fresh session
- ``background``: an asyncio task in the same process
- ``queue``: the ``process_event`` arq job, run by ``mono.workers.settings``
"""

from __future__ import annotations

import asyncio
import logging

from arq import create_pool
from arq.connections import ArqRedis, RedisSettings
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mono.config import get_settings
from mono.events.pipeline import StepOutcome, handle_event
from mono.events.schemas import BudgetCreated, ReceiptScanned, TransactionCreated

logger = logging.getLogger(__name__)

DISPATCH_MODES = ("inline", "background", "queue")
PROCESS_EVENT_JOB = "process_event"

Event = TransactionCreated | BudgetCreated | ReceiptScanned


class SideChannel:
    """Publishes domain events without ever failing the publisher."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        mode: str = "inline",
        arq_pool: ArqRedis | None = None,
        redis_url: str | None = None,
    ) -> None:
        if mode not in DISPATCH_MODES:
            msg = f"Unknown dispatch mode {mode!r}, expected one of {DISPATCH_MODES}"
            raise ValueError(msg)
        if mode == "queue" and arq_pool is None and redis_url is None:
            msg = "Queue mode needs an arq pool or a redis_url"
            raise ValueError(msg)
        self.session_factory = session_factory
        self.mode = mode
        self._pool = arq_pool
        self._owns_pool = arq_pool is None
        self._redis_url = redis_url
        self._tasks: set[asyncio.Task[list[StepOutcome]]] = set()

    @classmethod
    def from_settings(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        arq_pool: ArqRedis | None = None,
    ) -> SideChannel:
        """Build the channel in the configured ``alert_dispatch_mode``."""
        settings = get_settings()
        return cls(
            session_factory,
            mode=settings.alert_dispatch_mode,
            arq_pool=arq_pool,
            redis_url=settings.redis_url,
        )

    async def publish(self, event: Event) -> bool:
        """Hand ``event`` to the pipeline. Returns False if it could not be handed over."""
        try:
            if self.mode == "inline":
                await self.run(event)
            elif self.mode == "background":
                task = asyncio.create_task(self.run(event))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
            else:
                pool = await self._get_pool()
                await pool.enqueue_job(PROCESS_EVENT_JOB, event.model_dump(mode="json"))
            return True
        except Exception:
            logger.exception("Failed to publish %s for user %s", event.event, event.user_id)
            return False

    async def run(self, event: Event) -> list[StepOutcome]:
        """Run the pipeline for one event on its own session."""
        async with self.session_factory() as db:
            return await handle_event(db, event)

    async def drain(self) -> None:
        """Wait for every background task started so far."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()
        if self._pool is not None and self._owns_pool:
            await self._pool.aclose()
            self._pool = None

    async def _get_pool(self) -> ArqRedis:
        if self._pool is None:
            self._pool = await create_pool(RedisSettings.from_dsn(self._redis_url))
        return self._pool
