import logging
import os
import signal
import time
from typing import Optional

from bgjobs.models import Job, Queue, Worker as WorkerRecord, WorkerStatus
from bgjobs.orchestrator import WorkerOrchestrator
from bgjobs.queue import JobDispatcher

logger = logging.getLogger(__name__)


class Worker:
    """
    Background job worker for a single queue.

    Responsibilities:
    - Register itself in Redis under its pid
    - Block on the queue for jobs and run them
    - Mirror idle/running into its status record
    - Gracefully handle shutdown signals
    """

    def __init__(
        self,
        queue: str,
        dispatcher: JobDispatcher,
        orchestrator: WorkerOrchestrator,
        timeout: int = 30,
        install_signal_handlers: bool = True,
    ):
        """
        Initialize the Worker.

        Args:
            queue (str): Name of the queue to drain.
            dispatcher (JobDispatcher): Used to dequeue and run jobs.
            orchestrator (WorkerOrchestrator): Used to publish this worker's status.
            timeout (int): BLPOP timeout in seconds, bounds shutdown latency.
        """
        self.queue = Queue.validate(queue)
        self.dispatcher = dispatcher
        self.orchestrator = orchestrator
        self.timeout = timeout
        self.pid = os.getpid()
        self._running = False
        self._shutdown_requested = False

        if install_signal_handlers:
            # Hook signals for graceful shutdown
            signal.signal(signal.SIGINT, self._signal_handler)
            signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, signum, frame):
        logger.info(f"Signal {signum} received. Stopping worker gracefully...")
        self.stop()

    def start(self, max_runtime: Optional[float] = None) -> None:
        """
        Start the Worker loop.

        Args:
            max_runtime (Optional[float]): Max duration to run the worker (seconds). None = infinite.
        """
        self._running = True
        self._shutdown_requested = False
        start_time = time.time()

        self.orchestrator.register_worker(WorkerRecord(pid=self.pid, queue=self.queue))
        logger.info(f"Worker {self.pid} started on queue '{self.queue.value}'.")

        try:
            while self._running and not self._shutdown_requested:
                if max_runtime and (time.time() - start_time > max_runtime):
                    logger.info("Worker max runtime reached. Stopping.")
                    break

                try:
                    job = self.dispatcher.dequeue(self.queue.value, timeout=self.timeout)
                    if job:
                        self._process_job(job)

                except Exception as e:
                    # Unexpected worker loop error
                    logger.error(f"Unexpected error in worker loop: {e}", exc_info=True)
                    time.sleep(1)
        finally:
            self.orchestrator.unregister_worker(self.pid)
            self._running = False
            logger.info(f"Worker {self.pid} stopped.")

    def stop(self) -> None:
        """
        Request a graceful stop. A job already running is finished first.
        """
        logger.info("Stopping worker...")
        self._shutdown_requested = True
        self._running = False

    def _process_job(self, job: Job) -> None:
        """
        Run one job between running/idle status updates. Handler failures
        are already recorded on the job, so they are only logged here.
        """
        self.orchestrator.update_worker_status(self.pid, WorkerStatus.RUNNING)
        try:
            self.dispatcher.run(job)
        except Exception as e:
            logger.error(f"Job {job.id} failed: {e}")
        finally:
            self.orchestrator.update_worker_status(self.pid, WorkerStatus.IDLE)
