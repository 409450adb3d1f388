"""Redis-backed background job queues and supervisord-managed workers."""

from .background_jobs import BackgroundJobs
from .config import Settings, get_settings
from .exceptions import (
    BackgroundJobsDisabled,
    BackgroundJobsError,
    InvalidArgument,
    NotFound,
    SupervisorError,
)
from .models import Command, Job, JobStatus, Queue, Worker, WorkerName, WorkerStatus
from .orchestrator import WorkerOrchestrator
from .queue import JobDispatcher

__all__ = [
    "BackgroundJobs",
    "BackgroundJobsDisabled",
    "BackgroundJobsError",
    "Command",
    "InvalidArgument",
    "Job",
    "JobDispatcher",
    "JobStatus",
    "NotFound",
    "Queue",
    "Settings",
    "SupervisorError",
    "Worker",
    "WorkerName",
    "WorkerOrchestrator",
    "WorkerStatus",
    "get_settings",
]
