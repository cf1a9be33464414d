"""Unit tests for JobScheduler and the registered task runner."""
import asyncio
import logging
import pytest
import fakeredis
from datetime import timedelta

from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.triggers.interval import IntervalTrigger

from pricewatch.scheduler import jobs
from pricewatch.scheduler.jobs import JobScheduler, create_jobstore, run_registered_task


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def clean_registry():
    jobs.TASK_REGISTRY.clear()
    yield
    jobs.TASK_REGISTRY.clear()


@pytest.fixture
async def scheduler():
    """Scheduler on an in-memory job store, shut down after the test."""
    job_scheduler = JobScheduler(jobstore=MemoryJobStore())
    yield job_scheduler
    await job_scheduler.shutdown()


async def noop():
    pass


# ============================================================================
# Tests for schedule / start
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestJobScheduler:
    """Test scheduling semantics."""

    async def test_runs_immediately(self, scheduler):
        """✅ First run fires right after start, not after one interval."""
        ran = asyncio.Event()

        async def task():
            ran.set()

        scheduler.schedule("fetch-price", 600, task)
        scheduler.start()

        await asyncio.wait_for(ran.wait(), timeout=2)

    async def test_reschedule_replaces(self, scheduler):
        """✅ Same name twice → one job with the latest interval."""
        scheduler.schedule("fetch-price", 600, noop)
        scheduler.schedule("fetch-price", 120, noop)
        scheduler.start()

        scheduled = scheduler.scheduler.get_jobs()

        assert len(scheduled) == 1
        assert scheduled[0].trigger.interval == timedelta(seconds=120)

    @pytest.mark.parametrize("interval", [0, -10])
    async def test_non_positive_interval(self, scheduler, interval):
        """✅ interval <= 0 → ValueError."""
        with pytest.raises(ValueError):
            scheduler.schedule("fetch-price", interval, noop)

        assert "fetch-price" not in jobs.TASK_REGISTRY

    async def test_stale_jobs_removed(self, scheduler):
        """✅ Persisted job without a registered task is dropped on start."""
        scheduler.scheduler.add_job(
            run_registered_task,
            trigger=IntervalTrigger(seconds=60),
            args=["orphan"],
            id="orphan"
        )
        scheduler.schedule("fetch-price", 600, noop)

        scheduler.start()

        assert [job.id for job in scheduler.scheduler.get_jobs()] == ["fetch-price"]

    async def test_failing_task_keeps_job(self, scheduler, caplog):
        """✅ Task failure is logged; job stays scheduled."""
        failed = asyncio.Event()

        async def task():
            failed.set()
            raise RuntimeError("upstream down")

        scheduler.schedule("fetch-price", 600, task)
        with caplog.at_level(logging.ERROR, logger="pricewatch.scheduler.jobs"):
            scheduler.start()
            await asyncio.wait_for(failed.wait(), timeout=2)
            await asyncio.sleep(0.05)

        assert scheduler.scheduler.get_job("fetch-price") is not None
        assert any("failed" in r.getMessage() for r in caplog.records)

    async def test_shutdown_waits_for_running_job(self):
        """✅ shutdown() lets an in-flight run finish."""
        started = asyncio.Event()
        finished = []

        async def task():
            started.set()
            await asyncio.sleep(0.1)
            finished.append(True)

        job_scheduler = JobScheduler(jobstore=MemoryJobStore())
        job_scheduler.schedule("slow", 600, task)
        job_scheduler.start()
        await asyncio.wait_for(started.wait(), timeout=2)

        await job_scheduler.shutdown()

        assert finished == [True]
        assert not job_scheduler.scheduler.running

    async def test_shutdown_ignores_other_schedulers_jobs(self):
        """✅ shutdown() does not wait on runs owned by another scheduler."""
        release = asyncio.Event()
        started = asyncio.Event()

        async def blocking():
            started.set()
            await release.wait()

        busy = JobScheduler(jobstore=MemoryJobStore())
        busy.schedule("blocking", 600, blocking)
        busy.start()
        await asyncio.wait_for(started.wait(), timeout=2)

        idle = JobScheduler(jobstore=MemoryJobStore())
        idle.schedule("fetch-price", 600, noop)
        idle.start()

        await asyncio.wait_for(idle.shutdown(), timeout=1)
        assert not idle.scheduler.running

        release.set()
        await busy.shutdown()


# ============================================================================
# Tests for persistence across restarts
# ============================================================================

@pytest.fixture
def redis_server():
    """Shared fake Redis server standing in for the job store database."""
    return fakeredis.FakeServer()


@pytest.fixture
def redis_jobstore(redis_server):
    """Factory for RedisJobStores that all see the same fake server."""
    def _make():
        store = create_jobstore("redis://localhost:6379/2")
        store.redis = fakeredis.FakeRedis(server=redis_server)
        return store
    return _make


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.critical
class TestRestart:
    """Job definitions survive a process restart."""

    async def test_jobs_persist_and_reregister(self, redis_jobstore):
        """✅ After restart: same name keeps one job, unregistered names are purged."""
        first_run = JobScheduler(jobstore=redis_jobstore())
        first_run.schedule("fetch-price", 600, noop)
        first_run.schedule("retired-job", 60, noop)
        first_run.start()
        await first_run.shutdown()

        # New process: nothing registered yet
        jobs.TASK_REGISTRY.clear()
        store = redis_jobstore()
        assert sorted(job.id for job in store.get_all_jobs()) == ["fetch-price", "retired-job"]

        second_run = JobScheduler(jobstore=store)
        second_run.schedule("fetch-price", 120, noop)
        second_run.start()

        scheduled = second_run.scheduler.get_jobs()
        assert [job.id for job in scheduled] == ["fetch-price"]
        assert scheduled[0].trigger.interval == timedelta(seconds=120)
        assert [job.id for job in redis_jobstore().get_all_jobs()] == ["fetch-price"]

        await second_run.shutdown()


# ============================================================================
# Tests for run_registered_task / create_jobstore
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestRunRegisteredTask:
    """Test the serializable job entry point."""

    async def test_unknown_job_skipped(self):
        """✅ Unregistered name → no exception."""
        await run_registered_task("missing")

    async def test_failure_swallowed(self):
        """✅ Task exception does not propagate."""
        async def task():
            raise RuntimeError("boom")

        jobs.TASK_REGISTRY["fetch-price"] = task

        await run_registered_task("fetch-price")


@pytest.mark.unit
class TestCreateJobstore:
    """Test job store selection."""

    def test_memory(self):
        """✅ "memory" → MemoryJobStore."""
        assert isinstance(create_jobstore("memory"), MemoryJobStore)

    def test_redis(self):
        """✅ Redis URL → RedisJobStore on the URL's database."""
        store = create_jobstore("redis://localhost:6379/2")

        assert store.jobs_key == "pricewatch.jobs"
        assert store.redis.connection_pool.connection_kwargs["db"] == 2
