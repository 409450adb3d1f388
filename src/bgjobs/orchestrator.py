import logging
import time
from typing import List, Optional, Union

from .config import Settings
from .exceptions import InvalidArgument, NotFound
from .models import Worker, WorkerName, WorkerStatus
from .redis_keys import RedisKeys
from .store import QueueStore
from .supervisor import ProcessInfo, ProcessSupervisor

logger = logging.getLogger(__name__)

SCAN_COUNT = 100


class WorkerOrchestrator:
    """
    Tracks worker status records in Redis and drives worker processes
    through supervisord.

    supervisord is the source of truth for process liveness. The Redis
    records are written by the workers themselves and may drift from it.
    """

    def __init__(self, redis_client: QueueStore, supervisor: ProcessSupervisor, settings: Settings):
        self.redis = redis_client
        self.supervisor = supervisor
        self.settings = settings
        self.keys = RedisKeys(settings.redis_namespace)

    @property
    def process_group(self) -> str:
        return self.settings.process_group

    # ------------------------------------------------------------------
    # STATUS RECORDS
    # ------------------------------------------------------------------

    def register_worker(self, worker: Worker) -> None:
        self.redis.set(self.keys.worker_status(worker.pid), worker.to_json())

    def update_worker_status(self, pid: int, status: WorkerStatus) -> bool:
        """
        Overwrite the status of a registered worker.

        Returns:
            False when no record exists for `pid`; nothing is written then.
        """
        worker = self.get_worker(pid)
        if worker is None:
            logger.warning(f"update_worker_status: worker with PID: {pid} not found.")
            return False

        worker.status = WorkerStatus.validate(status)
        worker.updated_at = time.time()
        self.redis.set(self.keys.worker_status(pid), worker.to_json())
        return True

    def unregister_worker(self, pid: int) -> None:
        self.redis.delete(self.keys.worker_status(pid))

    def get_worker(self, pid: int) -> Optional[Worker]:
        raw = self.redis.get(self.keys.worker_status(pid))
        if not raw:
            return None
        return Worker.from_json(raw)

    def get_workers(self) -> List[Worker]:
        """
        Snapshot of all registered workers.

        Keys are collected with SCAN (which may return partial batches and
        duplicates) and then fetched with a single MGET. Records deleted in
        between are skipped.
        """
        keys = []
        seen = set()
        cursor = 0

        while True:
            cursor, batch = self.redis.scan(
                cursor=cursor, match=self.keys.worker_status_pattern(), count=SCAN_COUNT
            )
            for key in batch:
                if key not in seen:
                    seen.add(key)
                    keys.append(key)

            if cursor == 0:
                break

        if not keys:
            return []

        workers = []
        for key, raw in zip(keys, self.redis.mget(keys)):
            if raw is None:
                continue
            try:
                workers.append(Worker.from_json(raw))
            except InvalidArgument as e:
                logger.error(f"Skipping malformed worker record {key}: {e}")

        return workers

    # ------------------------------------------------------------------
    # PROCESS CONTROL
    # ------------------------------------------------------------------

    def _full_name(self, name: WorkerName) -> str:
        return f"{self.process_group}:{name}"

    def start_worker(self, name: str, wait: bool = False) -> bool:
        worker_name = WorkerName.parse(name)
        return self.supervisor.start_process(self._full_name(worker_name), wait)

    def stop_worker(self, id_or_pid: Union[str, int], wait: bool = False) -> bool:
        """
        Stop a worker given its process name (`default_00`) or its pid.

        Raises:
            NotFound: a pid was given and no worker process has it.
            InvalidArgument: the name is not a valid worker name.
        """
        if isinstance(id_or_pid, int) or (str(id_or_pid).isascii() and str(id_or_pid).isdigit()):
            name = self.get_process_by_pid(int(id_or_pid)).name
        else:
            name = id_or_pid

        worker_name = WorkerName.parse(name)
        return self.supervisor.stop_process(self._full_name(worker_name), wait)

    def restart_workers(self, wait: bool = False) -> None:
        self.supervisor.stop_process_group(self.process_group, wait)
        self.supervisor.start_process_group(self.process_group, wait)

    def restart_dead_workers(self, wait: bool = False) -> None:
        """
        Start the whole worker group. supervisord leaves running
        processes alone, so only stopped or crashed ones come back.
        """
        self.supervisor.start_process_group(self.process_group, wait)

    def get_processes(self) -> List[ProcessInfo]:
        return [
            proc
            for proc in self.supervisor.get_all_process_info()
            if proc.group == self.process_group
        ]

    def get_process_by_pid(self, pid: int) -> ProcessInfo:
        for proc in self.get_processes():
            if proc.pid == pid:
                return proc

        raise NotFound(f"Worker with pid={pid} not found.")
