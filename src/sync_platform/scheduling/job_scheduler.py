"""Job Scheduler: recurring pipeline runs, one asyncio task per connection."""

import asyncio
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Set
import logging

from sync_platform.agents.pipeline_agent import PipelineAgent
from sync_platform.scheduling.schedule import parse_schedule
from sync_platform.shared.config import Settings
from sync_platform.shared.errors import (
    JobAlreadyScheduledError,
    JobNotFoundError,
    ScheduleParseError,
    SyncPlatformError,
)
from sync_platform.shared.models import Connection, Job, JobStatus, PipelineOutcome
from sync_platform.stores.base import ConfigurationStore


logger = logging.getLogger(__name__)


@dataclass
class _JobHandle:
    job: Job
    stop: asyncio.Event = field(default_factory=asyncio.Event)
    task: Optional[asyncio.Task] = None


class JobScheduler:
    """
    Owns the in-memory job registry.

    Construct one per process and pass it to whatever needs to schedule or
    cancel jobs. The registry lock is held only while the map is read or
    mutated; pipeline runs always happen outside of it.
    """

    def __init__(
        self,
        pipeline: PipelineAgent,
        config_store: ConfigurationStore,
        error_history: int = 10
    ):
        """
        Initialize the scheduler.

        Args:
            pipeline: Agent that performs a single pipeline run
            config_store: Source of persisted connections
            error_history: Number of recent errors kept per job
        """
        self.pipeline = pipeline
        self.config_store = config_store
        self.error_history = error_history
        self._jobs: Dict[str, _JobHandle] = {}
        self._lock = threading.Lock()
        self._background: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(
        cls,
        pipeline: PipelineAgent,
        config_store: ConfigurationStore,
        settings: Settings
    ) -> "JobScheduler":
        """Create a scheduler keeping ``SYNC_JOB_ERROR_HISTORY`` errors per job."""
        return cls(pipeline, config_store, error_history=settings.job_error_history)

    async def schedule_job(
        self,
        connection_id: str,
        source_id: str,
        target_id: str,
        transformer_id: str,
        query: Dict[str, Any],
        schedule: str
    ) -> Job:
        """
        Register a job and start its run loop without waiting for it.

        Returns:
            The scheduled job

        Raises:
            JobAlreadyScheduledError: if the connection already has a job
        """
        job = Job(
            id=f"job-{uuid.uuid4().hex[:8]}",
            connection_id=connection_id,
            source_id=source_id,
            target_id=target_id,
            transformer_id=transformer_id,
            query=query or {},
            schedule=schedule,
            error_history=self.error_history,
        )
        handle = _JobHandle(job=job)

        with self._lock:
            if connection_id in self._jobs:
                raise JobAlreadyScheduledError(f"job already scheduled for connection {connection_id}")
            self._jobs[connection_id] = handle

        handle.task = asyncio.create_task(self._run_loop(handle), name=f"job-{connection_id}")
        logger.info(f"Scheduled job {job.id} for connection {connection_id} every {schedule}")
        return job

    def cancel_job(self, connection_id: str) -> Job:
        """
        Stop a job and remove it from the registry.

        A run already in progress finishes, but its result no longer changes
        the job's status.

        Raises:
            JobNotFoundError: if no job exists for the connection
        """
        with self._lock:
            handle = self._jobs.pop(connection_id, None)
        if handle is None:
            raise JobNotFoundError(f"no job for connection {connection_id}")

        handle.stop.set()
        handle.job.transition(JobStatus.STOPPED)
        if handle.task is not None and not handle.task.done():
            # Tracked until the loop exits so shutdown can wait for it
            self._background.add(handle.task)
            handle.task.add_done_callback(self._background.discard)
        logger.info(f"Cancelled job {handle.job.id} for connection {connection_id}")
        return handle.job

    def get_job(self, connection_id: str) -> Job:
        with self._lock:
            handle = self._jobs.get(connection_id)
        if handle is None:
            raise JobNotFoundError(f"no job for connection {connection_id}")
        return handle.job

    def get_job_status(self, connection_id: str) -> str:
        """Return the current status string of a connection's job."""
        return self.get_job(connection_id).status.value

    def has_job(self, connection_id: str) -> bool:
        with self._lock:
            return connection_id in self._jobs

    def list_active_jobs(self) -> List[Job]:
        with self._lock:
            return [handle.job for handle in self._jobs.values()]

    async def shutdown(self) -> None:
        """Cancel every job and wait for the run loops to exit."""
        with self._lock:
            handles = list(self._jobs.values())
            self._jobs.clear()

        for handle in handles:
            handle.stop.set()
            handle.job.transition(JobStatus.STOPPED)

        tasks = [h.task for h in handles if h.task is not None] + list(self._background)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Scheduler shut down ({len(handles)} jobs stopped)")

    async def initialize_from_store(self) -> int:
        """
        Schedule every active connection that has a schedule.

        Returns:
            Number of jobs scheduled
        """
        scheduled = 0
        connections = await asyncio.to_thread(self.config_store.list_connections)
        for connection in connections:
            if not connection.active or not connection.schedule:
                continue
            try:
                await self._schedule_connection(connection)
                scheduled += 1
            except SyncPlatformError as e:
                logger.warning(f"Skipping connection {connection.id}: {str(e)}")
        logger.info(f"Initialized {scheduled} jobs from configuration store")
        return scheduled

    # Connection lifecycle

    async def set_connection_active(self, connection_id: str, active: bool) -> None:
        """Persist the active flag and start or stop the connection's job to match."""
        await asyncio.to_thread(self.config_store.set_active, connection_id, active)
        connection = await asyncio.to_thread(self.config_store.get_connection, connection_id)

        if active:
            if connection.schedule and not self.has_job(connection_id):
                await self._schedule_connection(connection)
        elif self.has_job(connection_id):
            self.cancel_job(connection_id)

    def delete_connection(self, connection_id: str) -> None:
        if self.has_job(connection_id):
            self.cancel_job(connection_id)
        self.config_store.delete_connection(connection_id)
        logger.info(f"Deleted connection {connection_id}")

    def execute_connection(self, connection_id: str) -> "asyncio.Task[Optional[PipelineOutcome]]":
        """Start a manual run in the background and return its task."""
        task = asyncio.create_task(self._execute_manual(connection_id), name=f"manual-{connection_id}")
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    # Run loop

    async def _schedule_connection(self, connection: Connection) -> Job:
        return await self.schedule_job(
            connection.id,
            connection.source_id,
            connection.target_id,
            connection.transformer_id,
            connection.query,
            connection.schedule,
        )

    async def _run_loop(self, handle: _JobHandle) -> None:
        job = handle.job
        try:
            interval = parse_schedule(job.schedule)
        except ScheduleParseError as e:
            job.record_error(str(e))
            job.transition(JobStatus.ERROR)
            logger.error(f"Job {job.id} not started: {str(e)}")
            return

        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while not handle.stop.is_set():
            await self._run_once(handle)

            next_tick += interval
            now = loop.time()
            if next_tick < now:
                # Runs never overlap; ticks missed during a long run are skipped
                next_tick += ((now - next_tick) // interval + 1) * interval
            try:
                await asyncio.wait_for(handle.stop.wait(), timeout=next_tick - now)
            except asyncio.TimeoutError:
                pass

        logger.debug(f"Run loop for job {job.id} exited")

    async def _run_once(self, handle: _JobHandle) -> None:
        job = handle.job
        job.transition(JobStatus.RUNNING)
        job.last_run = datetime.now()
        try:
            await self.pipeline.run_connection(job.as_connection())
        except Exception as e:
            # Job failures are recorded, never propagated
            job.record_error(f"{datetime.now().isoformat()}: {str(e)}")
            job.transition(JobStatus.ERROR)
            logger.error(f"Job {job.id} run failed: {str(e)}")
            return
        job.transition(JobStatus.SUCCESS)

    async def _execute_manual(self, connection_id: str) -> Optional[PipelineOutcome]:
        try:
            return await self.pipeline.run(connection_id)
        except Exception as e:
            logger.error(f"Manual run of connection {connection_id} failed: {str(e)}")
            return None
