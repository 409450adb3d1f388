import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from .config import Settings
from .exceptions import InvalidArgument
from .executor import Executor, shell_executors
from .models import Command, Job, JobStatus, Queue
from .redis_keys import RedisKeys
from .store import QueueStore

logger = logging.getLogger(__name__)

JobLinker = Callable[[Any, str], None]


class JobDispatcher:
    """
    Redis-backed multi-queue job dispatcher.

    Design rules:
    - One Redis LIST per queue, RPUSH to enqueue, BLPOP to dequeue
    - Job status is mirrored into a separate TTL-bounded key
    - At-most-once delivery: a job popped by a worker that dies is lost
    """

    def __init__(
        self,
        redis_client: QueueStore,
        settings: Settings,
        executors: Optional[Mapping[Command, Executor]] = None,
        job_linker: Optional[JobLinker] = None,
    ):
        self.redis = redis_client
        self.settings = settings
        self.keys = RedisKeys(settings.redis_namespace)
        if executors is None:
            executors = shell_executors(settings.console_command)
        self.executors = dict(executors)
        self.job_linker = job_linker

    # ------------------------------------------------------------------
    # ENQUEUE
    # ------------------------------------------------------------------

    def enqueue(
        self,
        queue: str,
        command: str,
        args: Optional[Sequence[Any]] = None,
        track_status: Optional[bool] = None,
        related_id: Any = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Enqueue a new job.

        Args:
            queue: Queue name, e.g. 'default'.
            command: Command kind, e.g. 'event'.
            args: Arguments passed to the command handler.
            track_status: Keep the status record for the full job history TTL.
                Defaults to the `track_status` setting.
            related_id: Id of a caller-side record to link to the new job.
            metadata: Opaque caller context stored with the job.

        Returns:
            The new job id.

        Raises:
            InvalidArgument: unknown queue or command.
        """
        job = Job(
            queue=Queue.validate(queue),
            command=Command.validate(command),
            args=list(args or []),
            track_status=self.settings.track_status if track_status is None else track_status,
            metadata=metadata or {},
        )

        # Status record first: a worker may pop and finish the job right after the push
        self.update(job)
        self.redis.rpush(self.keys.queue(job.queue.value), job.to_json())
        logger.debug(f"[JOB ID: {job.id}] enqueued on {job.queue.value} ({job.command.value})")

        if related_id is not None:
            self._link(related_id, job.id)

        return job.id

    def _link(self, related_id: Any, job_id: str) -> None:
        if self.job_linker is None:
            logger.warning(
                f"[JOB ID: {job_id}] related id {related_id} given but no job linker configured"
            )
            return
        self.job_linker(related_id, job_id)

    # ------------------------------------------------------------------
    # DEQUEUE
    # ------------------------------------------------------------------

    def dequeue(self, queue: str, timeout: int = 30) -> Optional[Job]:
        """
        Pop the oldest job of a queue.

        Blocks until a job is pushed or `timeout` seconds elapse. `timeout`
        must be lower than the Redis client's socket timeout.

        A payload that cannot be parsed is dropped: it is logged and
        None is returned.
        """
        queue = Queue.validate(queue)
        if timeout <= 0:
            raise InvalidArgument("dequeue timeout must be a positive number of seconds")

        popped = self.redis.blpop([self.keys.queue(queue.value)], timeout=timeout)
        if not popped:
            return None

        _, raw = popped
        try:
            return Job.from_json(raw)
        except InvalidArgument as e:
            logger.error(f"Failed to parse job, invalid format: {raw}. exception: {e}")
            return None

    # ------------------------------------------------------------------
    # STATUS
    # ------------------------------------------------------------------

    def get_job(self, job_id: str) -> Optional[Job]:
        raw = self.redis.get(self.keys.job_status(job_id))
        if not raw:
            return None
        return Job.from_json(raw)

    def update(self, job: Job) -> None:
        """
        Stamp `updated_at` and overwrite the job's status record.
        """
        job.updated_at = time.time()
        ttl = (
            self.settings.max_job_history_ttl
            if job.track_status
            else self.settings.track_status_ttl
        )
        self.redis.setex(self.keys.job_status(job.id), ttl, job.to_json())

    # ------------------------------------------------------------------
    # RUN
    # ------------------------------------------------------------------

    def run(self, job: Job) -> int:
        """
        Run a job synchronously and record its outcome.

        Returns:
            The command's return code, uninterpreted.

        Raises:
            InvalidArgument: no handler is registered for the job's command.
            Exception: whatever the handler raised; the job is stored as failed first.
        """
        job.status = JobStatus.RUNNING
        logger.info(f"[JOB ID: {job.id}] - started.")
        self.update(job)

        executor = self.executors.get(job.command)
        try:
            if executor is None:
                raise InvalidArgument(f"No handler registered for command {job.command.value!r}")
            result = executor.run(job)
        except Exception as e:
            job.status = JobStatus.FAILED
            job.error = str(e)
            self.update(job)
            logger.error(f"[JOB ID: {job.id}] - failed: {e}", exc_info=True)
            raise

        job.return_code = result.return_code
        job.output = result.output
        job.error = result.error
        job.status = JobStatus.SUCCESS if result.return_code == 0 else JobStatus.FAILED
        self.update(job)

        logger.info(f"[JOB ID: {job.id}] - {job.status.value} (return code {job.return_code}).")
        return job.return_code

    # ------------------------------------------------------------------
    # QUEUES
    # ------------------------------------------------------------------

    def get_queues(self) -> List[str]:
        return Queue.names()

    def get_queue_size(self, queue: str) -> int:
        queue = Queue.validate(queue)
        return self.redis.llen(self.keys.queue(queue.value))

    def get_queue_sizes(self) -> Dict[str, int]:
        """Return the length of every queue."""
        pipe = self.redis.pipeline()
        for name in Queue.names():
            pipe.llen(self.keys.queue(name))
        return dict(zip(Queue.names(), pipe.execute()))

    def clear_queue(self, queue: str) -> bool:
        """
        Drop all pending jobs of a queue.

        Returns:
            True if the queue held any job.
        """
        queue = Queue.validate(queue)
        return bool(self.redis.delete(self.keys.queue(queue.value)))

    def purge_queue(self, queue: str) -> None:
        self.clear_queue(queue)
