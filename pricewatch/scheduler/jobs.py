"""Durable repeating jobs on top of APScheduler."""
import asyncio
import functools
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from apscheduler.jobstores.base import BaseJobStore
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.jobstores.redis import RedisJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from redis.connection import parse_url

from pricewatch.core.config import settings
from pricewatch.core.redis import mask_redis_url

logger = logging.getLogger(__name__)

Task = Callable[[], Awaitable[Any]]

# Job name -> coroutine function. Persisted jobs store only a reference to
# run_registered_task plus the job name, so the lookup has to be module level.
TASK_REGISTRY: Dict[str, Task] = {}


async def run_registered_task(job_name: str) -> None:
    """
    Run the task registered under a job name.

    Failures are logged and swallowed so the job stays scheduled; the next
    tick is the retry.
    """
    task = TASK_REGISTRY.get(job_name)
    if task is None:
        logger.warning(f"No task registered for job {job_name}, skipping")
        return

    try:
        logger.info(f"Processing job {job_name}")
        await task()
        logger.info(f"Job {job_name} completed")
    except Exception as e:
        logger.error(f"Job {job_name} failed: {e}", exc_info=True)


def create_jobstore(url: Optional[str] = None) -> BaseJobStore:
    """
    Build the job store for a URL.

    "memory" keeps jobs in process; anything else is a Redis URL.
    """
    url = url or settings.scheduler_jobstore_url
    if url == "memory":
        return MemoryJobStore()

    connect_args = parse_url(url)
    db = connect_args.pop("db", 0)
    logger.info(f"Using Redis job store at {mask_redis_url(url)}")
    return RedisJobStore(
        db=db,
        jobs_key="pricewatch.jobs",
        run_times_key="pricewatch.run_times",
        **connect_args
    )


class JobScheduler:
    """Scheduler for named repeating jobs."""

    def __init__(self, jobstore: Optional[BaseJobStore] = None):
        logger.debug("Creating AsyncIOScheduler instance")
        self.scheduler = AsyncIOScheduler(
            jobstores={"default": jobstore or create_jobstore()},
            job_defaults={
                "coalesce": True,  # Collapse missed runs into one
                "max_instances": 1,  # At most one concurrent run per job
                "misfire_grace_time": None  # Late runs always execute
            },
            timezone="UTC"
        )
        self._job_names: Set[str] = set()
        self._in_flight: Set["asyncio.Task[Any]"] = set()

    def schedule(self, job_name: str, interval_seconds: int, task: Task) -> None:
        """
        Register a repeating task.

        Re-registering a job name replaces its schedule. The first run fires
        immediately once the scheduler is running.

        Args:
            job_name: Unique job id
            interval_seconds: Seconds between runs
            task: Coroutine function to run
        """
        if interval_seconds <= 0:
            raise ValueError(f"interval must be positive, got {interval_seconds}")

        TASK_REGISTRY[job_name] = functools.partial(self._run_tracked, task)
        self._job_names.add(job_name)
        self.scheduler.add_job(
            run_registered_task,
            trigger=IntervalTrigger(seconds=interval_seconds),
            args=[job_name],
            id=job_name,
            name=job_name,
            replace_existing=True,
            next_run_time=datetime.now(timezone.utc)
        )
        logger.info(f"Job {job_name} scheduled to run every {interval_seconds} seconds")

    async def _run_tracked(self, task: Task) -> None:
        """Run a task, recording it as in flight for shutdown()."""
        current = asyncio.current_task()
        if current is not None:
            self._in_flight.add(current)
        try:
            await task()
        finally:
            if current is not None:
                self._in_flight.discard(current)

    def start(self) -> None:
        """Start the scheduler, dropping stale jobs left by a previous run."""
        self.scheduler.start(paused=True)
        self._clear_stale_jobs()
        self.scheduler.resume()
        logger.info("Scheduler started successfully")

    def _clear_stale_jobs(self) -> None:
        for job in self.scheduler.get_jobs():
            if job.id not in self._job_names:
                logger.info(f"Removing stale job {job.id}")
                self.scheduler.remove_job(job.id)

    async def shutdown(self) -> None:
        """Stop firing new runs, wait for this scheduler's in-flight runs, then shut down."""
        if not self.scheduler.running:
            return

        logger.info("Shutting down scheduler...")
        self.scheduler.pause()
        if self._in_flight:
            logger.info(f"Waiting for {len(self._in_flight)} running jobs")
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)
        self.scheduler.shutdown(wait=False)
