"""
Scheduler Service.

Shared APScheduler instance that drives every polling session: one interval
job per session for the fetch cycle and one-shot jobs for delayed reconnects.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)


class SchedulerService:
    """
    Thin wrapper around AsyncIOScheduler.

    ``max_instances=1`` means a job that is still running when its next
    tick comes due is skipped, so a slow device never has two fetches in
    flight at once.
    """

    def __init__(self) -> None:
        """Initialize scheduler."""
        self.scheduler = AsyncIOScheduler(
            job_defaults={
                "max_instances": 1,
                "coalesce": True,
                "misfire_grace_time": 30,
            },
        )

    def add_interval_job(
        self,
        job_id: str,
        func: Callable[..., Any],
        interval_seconds: float,
        run_now: bool = True,
    ) -> str:
        """
        Add (or replace) a recurring job.

        Args:
            job_id: Unique job id, e.g. "fetch:10.0.0.1:161"
            func: Callable or coroutine function to run
            interval_seconds: Seconds between runs
            run_now: Also run once immediately instead of waiting a full interval

        Returns:
            str: Job ID
        """
        kwargs: dict[str, Any] = {}
        if run_now:
            kwargs["next_run_time"] = datetime.now(timezone.utc)

        job = self.scheduler.add_job(
            func,
            trigger=IntervalTrigger(seconds=interval_seconds),
            id=job_id,
            replace_existing=True,
            **kwargs,
        )
        logger.debug("Added interval job '%s' every %.1fs", job_id, interval_seconds)
        return job.id

    def add_delayed_job(
        self,
        job_id: str,
        func: Callable[..., Any],
        delay_seconds: float,
    ) -> str:
        """Add (or replace) a job that runs once after ``delay_seconds``."""
        run_date = datetime.now(timezone.utc) + timedelta(seconds=delay_seconds)
        job = self.scheduler.add_job(
            func,
            trigger=DateTrigger(run_date=run_date),
            id=job_id,
            replace_existing=True,
        )
        logger.debug("Added one-shot job '%s' in %.1fs", job_id, delay_seconds)
        return job.id

    def remove_job(self, job_id: str) -> bool:
        """Remove a scheduled job. Returns False if it was already gone."""
        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            return False
        logger.debug("Removed job '%s'", job_id)
        return True

    def get_jobs(self) -> list[dict[str, Any]]:
        """Get list of all scheduled jobs."""
        return [
            {
                "id": job.id,
                "name": job.name,
                "next_run": str(job.next_run_time),
                "trigger": str(job.trigger),
            }
            for job in self.scheduler.get_jobs()
        ]

    def start(self) -> None:
        """Start the scheduler (needs a running event loop)."""
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Scheduler started")

    def stop(self) -> None:
        """Stop the scheduler without waiting for running jobs."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self.scheduler.running
