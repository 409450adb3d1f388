import logging
from typing import Mapping, Optional

from .config import Settings, get_settings
from .exceptions import BackgroundJobsDisabled
from .executor import Executor
from .models import Command
from .orchestrator import WorkerOrchestrator
from .queue import JobDispatcher, JobLinker
from .store import QueueStore, create_redis
from .supervisor import ProcessSupervisor, SupervisorClient

logger = logging.getLogger(__name__)


class BackgroundJobs:
    """
    Wires one Redis connection and one supervisor client into a
    dispatcher and an orchestrator sharing them.
    """

    def __init__(
        self,
        redis_client: QueueStore,
        supervisor: ProcessSupervisor,
        settings: Settings,
        executors: Optional[Mapping[Command, Executor]] = None,
        job_linker: Optional[JobLinker] = None,
    ):
        self.settings = settings
        self.redis = redis_client
        self.supervisor = supervisor
        self.dispatcher = JobDispatcher(redis_client, settings, executors=executors, job_linker=job_linker)
        self.orchestrator = WorkerOrchestrator(redis_client, supervisor, settings)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        executors: Optional[Mapping[Command, Executor]] = None,
        job_linker: Optional[JobLinker] = None,
    ) -> "BackgroundJobs":
        """
        Connect to Redis and supervisord.

        Raises:
            BackgroundJobsDisabled: `enabled` is off.
            redis.exceptions.ConnectionError: Redis is unreachable.
        """
        settings = settings or get_settings()
        if not settings.enabled:
            raise BackgroundJobsDisabled("Background jobs are disabled (BGJOBS_ENABLED=false)")

        redis_client = create_redis(settings)
        supervisor = SupervisorClient.from_settings(settings)
        logger.debug(
            f"Connected to redis {settings.redis_host}:{settings.redis_port}/{settings.redis_database}, "
            f"supervisor {settings.supervisor_host}:{settings.supervisor_port}"
        )
        return cls(redis_client, supervisor, settings, executors=executors, job_linker=job_linker)
