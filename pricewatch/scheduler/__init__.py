"""Scheduler package initialization."""
from pricewatch.scheduler.jobs import JobScheduler, create_jobstore, run_registered_task

__all__ = ["JobScheduler", "create_jobstore", "run_registered_task"]
