"""Tests for the Job Scheduler."""

import asyncio

import pytest
import pytest_asyncio

from sync_platform.scheduling import JobScheduler, parse_schedule
from sync_platform.shared.errors import (
    JobAlreadyScheduledError,
    JobNotFoundError,
    NotFoundError,
    ScheduleParseError,
)
from sync_platform.shared.models import Connection, ExecutionStatus, Job, JobStatus


async def eventually(predicate, timeout=2.0):
    """Poll until ``predicate`` holds or fail after ``timeout`` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest_asyncio.fixture
async def scheduler(pipeline, config_store):
    """Provide a scheduler that is shut down after the test."""
    scheduler = JobScheduler(pipeline, config_store)
    yield scheduler
    await scheduler.shutdown()


async def schedule_products(scheduler, schedule="1h"):
    return await scheduler.schedule_job(
        "conn-products",
        "shop",
        "marketplace",
        "tr-products",
        {"status": "publish"},
        schedule,
    )


class TestParseSchedule:
    """Test schedule parsing."""

    @pytest.mark.parametrize("text, seconds", [
        ("90s", 90.0),
        ("15m", 900.0),
        ("1h30m", 5400.0),
        ("250ms", 0.25),
        ("1.5h", 5400.0),
        ("2h45m30s", 9930.0),
        ("+10s", 10.0),
    ])
    def test_valid(self, text, seconds):
        assert parse_schedule(text) == pytest.approx(seconds)

    @pytest.mark.parametrize("text", ["", "soon", "10", "5 minutes", "-5m", "0s", "1d", "m5"])
    def test_invalid(self, text):
        with pytest.raises(ScheduleParseError):
            parse_schedule(text)


class TestJob:
    """Test the job state rules."""

    def test_stopped_is_terminal(self):
        job = Job("job-1", "conn-1", "shop", "marketplace", "tr-1", {}, "1h")
        job.transition(JobStatus.RUNNING)
        job.transition(JobStatus.STOPPED)
        job.transition(JobStatus.SUCCESS)
        assert job.status == JobStatus.STOPPED

    def test_error_log_is_bounded(self):
        job = Job("job-1", "conn-1", "shop", "marketplace", "tr-1", {}, "1h")
        for i in range(15):
            job.record_error(f"failure {i}")
        assert list(job.errors) == [f"failure {i}" for i in range(5, 15)]


class TestJobScheduler:
    """Test suite for Job Scheduler."""

    @pytest.mark.asyncio
    async def test_schedule_runs_immediately(self, scheduler, target_connector):
        job = await schedule_products(scheduler)

        assert job.connection_id == "conn-products"
        await eventually(lambda: scheduler.get_job_status("conn-products") == "success")
        assert len(target_connector.pushed) == 1
        assert job.last_run is not None

    @pytest.mark.asyncio
    async def test_runs_repeat_on_interval(self, scheduler, source_connector):
        await schedule_products(scheduler, "10ms")
        await eventually(lambda: len(source_connector.queries) >= 3)

    @pytest.mark.asyncio
    async def test_duplicate_schedule_is_rejected(self, scheduler):
        first = await schedule_products(scheduler)

        with pytest.raises(JobAlreadyScheduledError):
            await schedule_products(scheduler)

        assert scheduler.list_active_jobs() == [first]

    @pytest.mark.asyncio
    async def test_cancel_removes_job(self, scheduler):
        await schedule_products(scheduler)

        job = scheduler.cancel_job("conn-products")

        assert job.status == JobStatus.STOPPED
        with pytest.raises(JobNotFoundError):
            scheduler.get_job_status("conn-products")
        with pytest.raises(JobNotFoundError):
            scheduler.cancel_job("conn-products")
        assert scheduler.list_active_jobs() == []

    @pytest.mark.asyncio
    async def test_cancel_during_run_keeps_stopped(self, scheduler, source_connector, execution_store):
        """Test an in-flight run completes but does not overwrite stopped."""
        started = asyncio.Event()
        release = asyncio.Event()

        async def slow_fetch(query):
            started.set()
            await release.wait()
            return []

        source_connector.fetch = slow_fetch
        job = await schedule_products(scheduler)
        await asyncio.wait_for(started.wait(), timeout=2.0)

        scheduler.cancel_job("conn-products")
        release.set()

        def finished():
            runs = execution_store.list_by_connection("conn-products")
            return bool(runs) and runs[0].status == ExecutionStatus.SUCCESS

        await eventually(finished)
        await asyncio.sleep(0.01)
        assert job.status == JobStatus.STOPPED

    @pytest.mark.asyncio
    async def test_invalid_schedule_never_runs(self, scheduler, source_connector):
        job = await schedule_products(scheduler, "every now and then")

        await eventually(lambda: job.status == JobStatus.ERROR)
        assert source_connector.queries == []
        assert "Invalid schedule" in job.errors[-1]

    @pytest.mark.asyncio
    async def test_failures_fill_bounded_error_log(self, scheduler, source_connector):
        source_connector.fetch_error = ConnectionError("shop unreachable")

        job = await schedule_products(scheduler, "5ms")
        await eventually(lambda: len(source_connector.queries) >= 12 and job.status == JobStatus.ERROR)

        assert scheduler.get_job_status("conn-products") == "error"
        assert len(job.errors) == 10
        assert all("shop unreachable" in error for error in job.errors)

    @pytest.mark.asyncio
    async def test_shutdown_stops_every_job(self, scheduler):
        job = await schedule_products(scheduler)

        await scheduler.shutdown()

        assert job.status == JobStatus.STOPPED
        assert scheduler.list_active_jobs() == []


class TestConnectionLifecycle:
    """Test scheduling driven by connection configuration."""

    @pytest.mark.asyncio
    async def test_initialize_from_store(self, scheduler, config_store):
        config_store.save_connection(Connection("conn-paused", "shop", "marketplace", "tr-products",
                                                schedule="1h", active=False))
        config_store.save_connection(Connection("conn-manual", "shop", "marketplace", "tr-products"))

        scheduled = await scheduler.initialize_from_store()

        assert scheduled == 1
        assert [job.connection_id for job in scheduler.list_active_jobs()] == ["conn-products"]

    @pytest.mark.asyncio
    async def test_initialize_skips_already_scheduled(self, scheduler):
        await schedule_products(scheduler)
        assert await scheduler.initialize_from_store() == 0

    @pytest.mark.asyncio
    async def test_set_connection_active(self, scheduler, config_store):
        await scheduler.set_connection_active("conn-products", False)
        assert not scheduler.has_job("conn-products")
        assert config_store.get_connection("conn-products").active is False

        await scheduler.set_connection_active("conn-products", True)
        assert scheduler.has_job("conn-products")

        await scheduler.set_connection_active("conn-products", False)
        assert not scheduler.has_job("conn-products")

    @pytest.mark.asyncio
    async def test_delete_connection(self, scheduler, config_store):
        await schedule_products(scheduler)

        scheduler.delete_connection("conn-products")

        assert not scheduler.has_job("conn-products")
        with pytest.raises(NotFoundError):
            config_store.get_connection("conn-products")

    @pytest.mark.asyncio
    async def test_execute_connection(self, scheduler, target_connector):
        outcome = await scheduler.execute_connection("conn-products")

        assert outcome.status == ExecutionStatus.SUCCESS
        assert len(target_connector.pushed) == 1

    @pytest.mark.asyncio
    async def test_execute_connection_failure_is_logged(self, scheduler, execution_store, target_connector):
        target_connector.push_error = RuntimeError("marketplace down")

        assert await scheduler.execute_connection("conn-products") is None
        [execution] = execution_store.list_by_connection("conn-products")
        assert execution.status == ExecutionStatus.FAILED
