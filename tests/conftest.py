"""Pytest configuration and fixtures."""

import fakeredis
import pytest

from bgjobs.config import Settings, reset_settings
from bgjobs.exceptions import SupervisorError
from bgjobs.executor import CallableExecutor
from bgjobs.models import Command
from bgjobs.orchestrator import WorkerOrchestrator
from bgjobs.queue import JobDispatcher
from bgjobs.supervisor import ProcessInfo

GROUP = "bgjobs-workers"


class StubSupervisor:
    """In-memory stand-in for supervisord's process control API."""

    def __init__(self, processes=None):
        self.processes = {p.full_name: p for p in (processes or [])}
        self.calls = []

    def add(self, name, pid, state="RUNNING", group=GROUP):
        proc = ProcessInfo(name=name, group=group, pid=pid, state=state)
        self.processes[proc.full_name] = proc
        return proc

    def _get(self, full_name):
        if full_name not in self.processes:
            raise SupervisorError(f"BAD_NAME: {full_name}", code=10)
        return self.processes[full_name]

    def start_process(self, name, wait=True):
        self.calls.append(("start_process", name, wait))
        self._get(name).state = "RUNNING"
        return True

    def stop_process(self, name, wait=True):
        self.calls.append(("stop_process", name, wait))
        self._get(name).state = "STOPPED"
        return True

    def start_process_group(self, group, wait=True):
        self.calls.append(("start_process_group", group, wait))
        results = []
        for proc in self.processes.values():
            if proc.group == group and not proc.is_running:
                proc.state = "RUNNING"
                results.append({"name": proc.name, "group": group, "status": 80})
        return results

    def stop_process_group(self, group, wait=True):
        self.calls.append(("stop_process_group", group, wait))
        for proc in self.processes.values():
            if proc.group == group:
                proc.state = "STOPPED"
        return []

    def get_all_process_info(self):
        return list(self.processes.values())


@pytest.fixture(autouse=True)
def _reset_settings():
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings():
    return Settings(
        redis_namespace="test_jobs",
        max_job_history_ttl=3600,
        track_status_ttl=60,
        process_group=GROUP,
        dequeue_timeout=1,
        redis_socket_timeout=5,
        _env_file=None,
    )


@pytest.fixture
def redis_client():
    client = fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
    yield client
    client.flushall()


@pytest.fixture
def supervisor():
    return StubSupervisor()


@pytest.fixture
def handled():
    """Arguments received by the in-process command handlers, per command."""
    return {command: [] for command in Command}


@pytest.fixture
def executors(handled):
    def make(command):
        def handler(*args):
            handled[command].append(list(args))
            return 2 if "fail" in args else 0

        return CallableExecutor(handler)

    return {command: make(command) for command in Command}


@pytest.fixture
def dispatcher(redis_client, settings, executors):
    return JobDispatcher(redis_client, settings, executors=executors)


@pytest.fixture
def orchestrator(redis_client, supervisor, settings):
    return WorkerOrchestrator(redis_client, supervisor, settings)
