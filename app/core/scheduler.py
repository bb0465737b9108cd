"""
Background Job Scheduler

Runs periodic maintenance jobs using APScheduler with AsyncIO support.

Jobs are registered (id, coroutine function, trigger) before the scheduler
starts; ``start_scheduler`` adds every registered job. A job registered after
start is added immediately. Any registered job can also be run directly via
``trigger_job_manually``.

Usage:
    from app.core.scheduler import register_job, start_scheduler, stop_scheduler

    register_job("my_job", my_job, IntervalTrigger(minutes=15))

    async def lifespan(app):
        await start_scheduler()
        yield
        await stop_scheduler()
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Coroutine
from datetime import datetime
from typing import Any

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobExecutionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.base import BaseTrigger

logger = logging.getLogger(__name__)

JobFunc = Callable[[], Coroutine[Any, Any, Any]]

_scheduler: AsyncIOScheduler | None = None

# job_id -> (func, trigger)
_job_registry: dict[str, tuple[JobFunc, BaseTrigger]] = {}


class SchedulerConfig:
    """Configuration for the background scheduler."""

    TIMEZONE = "UTC"

    JOB_DEFAULTS = {
        "coalesce": True,  # Combine missed executions into one
        "max_instances": 1,
        "misfire_grace_time": 60 * 5,
    }


def _job_listener(event: JobExecutionEvent) -> None:
    if event.exception:
        logger.error(
            "Job %s failed with exception: %s",
            event.job_id,
            event.exception,
            exc_info=event.exception,
        )
    else:
        logger.info("Job %s executed successfully at %s", event.job_id, datetime.utcnow().isoformat())


def get_scheduler() -> AsyncIOScheduler | None:
    return _scheduler


def registered_jobs() -> list[str]:
    return list(_job_registry.keys())


async def start_scheduler() -> AsyncIOScheduler:
    """
    Initialize and start the background scheduler with all registered jobs.

    Must be awaited from inside the running event loop.
    """
    global _scheduler

    if _scheduler is not None and _scheduler.running:
        logger.warning("Scheduler already running, returning existing instance")
        return _scheduler

    logger.info("Initializing background job scheduler...")

    _scheduler = AsyncIOScheduler(
        timezone=SchedulerConfig.TIMEZONE,
        job_defaults=SchedulerConfig.JOB_DEFAULTS,
    )
    _scheduler.add_listener(_job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    for job_id, (func, trigger) in _job_registry.items():
        _scheduler.add_job(func, trigger=trigger, id=job_id, replace_existing=True)
        logger.info("Registered job: %s", job_id)

    _scheduler.start()

    logger.info("Background job scheduler started with %d job(s)", len(_job_registry))
    return _scheduler


async def stop_scheduler() -> None:
    """Stop the scheduler, waiting for running jobs to finish."""
    global _scheduler

    if _scheduler is None or not _scheduler.running:
        logger.debug("Scheduler not running, nothing to stop")
        _scheduler = None
        return

    logger.info("Stopping background job scheduler...")
    _scheduler.shutdown(wait=True)
    logger.info("Background job scheduler stopped")
    _scheduler = None


def register_job(
    job_id: str,
    func: JobFunc,
    trigger: BaseTrigger,
    replace_existing: bool = True,
) -> None:
    """
    Register a job with the scheduler.

    Args:
        job_id: Unique identifier for the job
        func: Async function to execute
        trigger: APScheduler trigger (IntervalTrigger, CronTrigger, etc.)
        replace_existing: Whether to replace an existing job with the same ID
    """
    if job_id in _job_registry and not replace_existing:
        raise ValueError(f"Job {job_id} is already registered")

    _job_registry[job_id] = (func, trigger)

    if _scheduler is None:
        logger.debug("Scheduler not initialized, job %s will be added on start", job_id)
        return

    _scheduler.add_job(func, trigger=trigger, id=job_id, replace_existing=replace_existing)
    logger.info("Registered job: %s", job_id)


def unregister_job(job_id: str) -> None:
    _job_registry.pop(job_id, None)
    if _scheduler is not None and _scheduler.get_job(job_id) is not None:
        _scheduler.remove_job(job_id)


async def trigger_job_manually(job_id: str) -> dict[str, Any]:
    """
    Run a registered job immediately, bypassing the scheduler.

    Returns:
        Dict with job_id, status ("success" or "error"), executed_at, and
        either the job's result or the error message.

    Raises:
        ValueError: If job_id is not found in the registry
    """
    if job_id not in _job_registry:
        raise ValueError(
            f"Job {job_id} not found in registry. Available jobs: {list(_job_registry.keys())}"
        )

    func, _trigger = _job_registry[job_id]
    executed_at = datetime.utcnow()

    logger.info("Manually triggering job: %s", job_id)

    try:
        result = await func()
    except Exception as e:
        logger.error("Manual job %s failed: %s", job_id, e, exc_info=True)
        return {
            "job_id": job_id,
            "status": "error",
            "executed_at": executed_at.isoformat(),
            "error": str(e),
        }

    return {
        "job_id": job_id,
        "status": "success",
        "executed_at": executed_at.isoformat(),
        "result": result,
    }
