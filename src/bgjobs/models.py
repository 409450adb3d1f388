import json
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .exceptions import InvalidArgument


class Queue(str, Enum):
    DEFAULT = "default"
    EMAIL = "email"
    CACHE = "cache"
    PRIO = "prio"
    UPDATE = "update"

    @classmethod
    def names(cls) -> List[str]:
        return [q.value for q in cls]

    @classmethod
    def validate(cls, queue) -> "Queue":
        """Return the Queue member for `queue` or raise InvalidArgument."""
        try:
            return cls(queue)
        except ValueError:
            raise InvalidArgument(
                f"Invalid background job queue {queue!r}, "
                f"must be one of: [{', '.join(cls.names())}]"
            ) from None


class Command(str, Enum):
    EVENT = "event"
    SERVER = "server"
    ADMIN = "admin"

    @classmethod
    def validate(cls, command) -> "Command":
        try:
            return cls(command)
        except ValueError:
            raise InvalidArgument(
                f"Invalid command {command!r}, "
                f"must be one of: [{', '.join(c.value for c in cls)}]"
            ) from None


class JobStatus(str, Enum):
    NEW = "new"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCESS, JobStatus.FAILED)


class WorkerStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"

    @classmethod
    def validate(cls, status) -> "WorkerStatus":
        return _coerce(cls, status, "worker status")


def _coerce(enum_cls, value, label: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidArgument(f"Invalid {label}: {value!r}") from None


def _loads(raw) -> Dict[str, Any]:
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise InvalidArgument(f"Invalid JSON payload: {e}") from None
    if not isinstance(data, dict):
        raise InvalidArgument("Invalid payload, expected a JSON object")
    return data


@dataclass
class Job:
    """
    Represents one unit of background work.

    IMPORTANT:
    - id is fixed once the job exists
    - args and metadata are opaque to the dispatcher
    - status is only mutated by whoever currently owns the job
    """

    queue: Queue
    command: Command
    args: List[Any] = field(default_factory=list)

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    track_status: bool = True
    metadata: Dict[str, Any] = field(default_factory=dict)

    status: JobStatus = JobStatus.NEW
    created_at: float = field(default_factory=time.time)
    updated_at: Optional[float] = None

    # Execution result (only set once the job terminated)
    return_code: Optional[int] = None
    output: Optional[str] = None
    error: Optional[str] = None

    def __post_init__(self):
        self.queue = Queue.validate(self.queue)
        self.command = Command.validate(self.command)
        self.status = _coerce(JobStatus, self.status, "job status")
        self.args = list(self.args or [])
        self.metadata = dict(self.metadata or {})

    def __setattr__(self, name, value):
        if name == "id" and "id" in self.__dict__:
            raise AttributeError("Job id is immutable")
        super().__setattr__(name, value)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.__dict__)
        data["queue"] = self.queue.value
        data["command"] = self.command.value
        data["status"] = self.status.value
        return data

    def to_json(self) -> str:
        """Serialize job to JSON for Redis storage."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, raw) -> "Job":
        """
        Deserialize job from Redis JSON.

        Raises:
            InvalidArgument: payload is not a well-formed job.
        """
        data = _loads(raw)
        if not data.get("id"):
            raise InvalidArgument("Invalid job payload, missing 'id'")
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        try:
            return cls(**known)
        except (TypeError, ValueError) as e:
            raise InvalidArgument(f"Invalid job payload: {e}") from None


@dataclass
class Worker:
    """Status record of one worker process, keyed by pid."""

    pid: int
    queue: Queue
    status: WorkerStatus = WorkerStatus.IDLE
    created_at: float = field(default_factory=time.time)
    updated_at: Optional[float] = None

    def __post_init__(self):
        self.pid = int(self.pid)
        self.queue = Queue.validate(self.queue)
        self.status = _coerce(WorkerStatus, self.status, "worker status")

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.__dict__)
        data["queue"] = self.queue.value
        data["status"] = self.status.value
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, raw) -> "Worker":
        data = _loads(raw)
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        try:
            return cls(**known)
        except (TypeError, ValueError) as e:
            raise InvalidArgument(f"Invalid worker payload: {e}") from None


@dataclass(frozen=True)
class WorkerName:
    """
    Supervisor process name of a worker: `{queue}_{index}`, e.g. `default_00`.
    """

    queue: Queue
    index: str

    SEPARATOR = "_"

    @classmethod
    def parse(cls, name: str) -> "WorkerName":
        error = InvalidArgument(
            f"Invalid worker name {name!r}, must be of format "
            "{queue_name}_{process_id}, example: default_00"
        )
        queue, sep, index = str(name).rpartition(cls.SEPARATOR)
        if not sep or not (index.isascii() and index.isdigit()):
            raise error
        try:
            return cls(Queue(queue), index)
        except ValueError:
            raise error from None

    def __str__(self) -> str:
        return f"{self.queue.value}{self.SEPARATOR}{self.index}"
