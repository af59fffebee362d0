"""Recurring and event-driven pipeline execution."""

from sync_platform.scheduling.job_scheduler import JobScheduler
from sync_platform.scheduling.schedule import parse_schedule
from sync_platform.scheduling.trigger_dispatcher import TriggerDispatcher

__all__ = [
    "JobScheduler",
    "parse_schedule",
    "TriggerDispatcher",
]
