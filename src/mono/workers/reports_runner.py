"""Run one bulk report job and exit, for external schedulers (k8s CronJob, systemd timer).

Usage: python -m mono.workers.reports_runner {weekly,engagement}
"""

from __future__ import annotations

import asyncio
import logging
import sys

from mono.config import get_settings
from mono.database import close_db, init_db
from mono.logging_config import setup_logging
from mono.reports.engagement import run_engagement_reminders
from mono.reports.weekly import run_bulk_weekly_reports

logger = logging.getLogger(__name__)

JOBS = {
    "weekly": run_bulk_weekly_reports,
    "engagement": run_engagement_reminders,
}


async def main(job: str) -> None:
    """Run ``job`` once against the configured database."""
    if job not in JOBS:
        msg = f"Unknown job {job!r}, expected one of {sorted(JOBS)}"
        raise ValueError(msg)

    settings = get_settings()
    setup_logging(settings)
    session_factory = await init_db(settings.database_url)
    try:
        result = await JOBS[job](session_factory)
        logger.info("Job %s finished: %s", job, result)
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "weekly"))
