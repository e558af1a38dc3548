"""Background task scheduler for the ground station."""

import logging
from datetime import datetime, timezone
from typing import Iterable, Optional

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from tasks.resilient import ResilientTask

logger = logging.getLogger("ground-station")

# Suppress apscheduler internal INFO logs (only show warnings and errors)
logging.getLogger("apscheduler").setLevel(logging.WARNING)

# Short periodic tasks share the default pool. Captures block until LOS, so
# the jobs that stop them run on a separate pool.
DEFAULT_POOL_SIZE = 4
OBSERVATIONS_POOL_SIZE = 8
FINISH_POOL_SIZE = 4

# Global scheduler instance
scheduler: Optional[BackgroundScheduler] = None


def create_scheduler(
    default_workers: int = DEFAULT_POOL_SIZE,
    observation_workers: int = OBSERVATIONS_POOL_SIZE,
    finish_workers: int = FINISH_POOL_SIZE,
) -> BackgroundScheduler:
    executors = {
        "default": ThreadPoolExecutor(default_workers),
        "observations": ThreadPoolExecutor(observation_workers),
        "finish": ThreadPoolExecutor(finish_workers),
    }
    job_defaults = {"coalesce": True, "max_instances": 1}
    return BackgroundScheduler(executors=executors, job_defaults=job_defaults, timezone="UTC")


def add_periodic_task(
    target: BackgroundScheduler, task: ResilientTask, seconds: int, run_now: bool = False
):
    """Register a resilient task to run every ``seconds`` on the default executor."""
    extra = {"next_run_time": datetime.now(timezone.utc)} if run_now else {}
    target.add_job(
        task,
        trigger=IntervalTrigger(seconds=seconds),
        id=task.name,
        name=task.name,
        executor="default",
        replace_existing=True,
        **extra,
    )


def log_jobs(target: BackgroundScheduler):
    jobs = target.get_jobs()
    job_count = len(jobs)
    logger.info(
        f"Background task scheduler started: {job_count} job{'s' if job_count != 1 else ''} scheduled"
    )
    for job in jobs:
        # Format next run time without microseconds for cleaner display
        next_run = (
            job.next_run_time.strftime("%Y-%m-%d %H:%M:%S %Z") if job.next_run_time else "N/A"
        )
        logger.info(f"  - {job.name} -> next run: {next_run}")


def start_scheduler(
    periodic_tasks: Iterable[tuple], target: Optional[BackgroundScheduler] = None
) -> BackgroundScheduler:
    """
    Initialize and start the background task scheduler.

    ``periodic_tasks`` holds ``(ResilientTask, interval_seconds, run_now)`` tuples.
    """
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler already started")
        return scheduler

    scheduler = target or create_scheduler()
    for task, seconds, run_now in periodic_tasks:
        add_periodic_task(scheduler, task, seconds, run_now)

    scheduler.start()
    log_jobs(scheduler)
    return scheduler


def get_scheduler() -> Optional[BackgroundScheduler]:
    return scheduler


def stop_scheduler():
    """Stop the background task scheduler."""
    global scheduler

    if scheduler is None:
        return

    logger.info("Stopping background task scheduler...")
    scheduler.shutdown(wait=False)
    scheduler = None
    logger.info("Background task scheduler stopped")
