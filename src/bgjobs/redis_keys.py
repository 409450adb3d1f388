from enum import Enum


class KeyPrefix(str, Enum):
    """
    Centralized Redis key prefixes.

    This file is the single source of truth for all Redis structures.
    """

    JOB_STATUS = "job_status"  # STRING (SETEX) → job status record
    WORKER_STATUS = "worker_status"  # STRING (SET)   → worker status record


class RedisKeys:
    """
    Builds namespaced keys.

    Queues are LISTs stored directly under `<namespace>:<queue>`.
    """

    def __init__(self, namespace: str):
        self.namespace = namespace

    def _key(self, *parts) -> str:
        return ":".join([self.namespace, *(str(p) for p in parts)])

    def queue(self, queue: str) -> str:
        return self._key(queue)

    def job_status(self, job_id: str) -> str:
        return self._key(KeyPrefix.JOB_STATUS.value, job_id)

    def worker_status(self, pid: int) -> str:
        return self._key(KeyPrefix.WORKER_STATUS.value, pid)

    def worker_status_pattern(self) -> str:
        return self._key(KeyPrefix.WORKER_STATUS.value, "*")
