"""Tests for the worker orchestrator."""

import random

import pytest

from bgjobs.exceptions import InvalidArgument, NotFound
from bgjobs.models import Queue, Worker, WorkerStatus

from .conftest import GROUP


class TestWorkerRecords:
    def test_register_and_get(self, orchestrator):
        orchestrator.register_worker(Worker(pid=100, queue="email"))

        worker = orchestrator.get_worker(100)

        assert worker.pid == 100
        assert worker.queue is Queue.EMAIL
        assert worker.status is WorkerStatus.IDLE

    def test_register_is_an_upsert(self, orchestrator):
        orchestrator.register_worker(Worker(pid=100, queue="email"))
        orchestrator.register_worker(Worker(pid=100, queue="prio", status=WorkerStatus.RUNNING))

        worker = orchestrator.get_worker(100)
        assert worker.queue is Queue.PRIO
        assert worker.status is WorkerStatus.RUNNING

    def test_worker_records_have_no_ttl(self, orchestrator, redis_client):
        orchestrator.register_worker(Worker(pid=100, queue="email"))

        assert redis_client.ttl("test_jobs:worker_status:100") == -1

    def test_unregister(self, orchestrator):
        orchestrator.register_worker(Worker(pid=100, queue="email"))

        orchestrator.unregister_worker(100)

        assert orchestrator.get_worker(100) is None

    def test_unregister_unknown_is_fine(self, orchestrator):
        orchestrator.unregister_worker(999)

    def test_update_status(self, orchestrator):
        orchestrator.register_worker(Worker(pid=100, queue="default"))

        assert orchestrator.update_worker_status(100, WorkerStatus.RUNNING) is True

        worker = orchestrator.get_worker(100)
        assert worker.status is WorkerStatus.RUNNING
        assert worker.updated_at is not None

    def test_update_status_rejects_unknown_status(self, orchestrator):
        orchestrator.register_worker(Worker(pid=100, queue="default"))

        with pytest.raises(InvalidArgument):
            orchestrator.update_worker_status(100, "sleeping")

        assert orchestrator.get_worker(100).status is WorkerStatus.IDLE

    def test_update_status_of_missing_worker(self, orchestrator, caplog):
        assert orchestrator.update_worker_status(555, WorkerStatus.RUNNING) is False

        assert orchestrator.get_worker(555) is None
        assert "not found" in caplog.text

    def test_get_workers_returns_registered_set(self, orchestrator):
        pids = list(range(1000, 1250))
        random.shuffle(pids)
        for pid in pids:
            orchestrator.register_worker(Worker(pid=pid, queue="default"))
        orchestrator.unregister_worker(pids[0])

        workers = orchestrator.get_workers()

        assert {w.pid for w in workers} == set(pids[1:])
        assert len(workers) == len(pids) - 1

    def test_get_workers_empty(self, orchestrator):
        assert orchestrator.get_workers() == []

    def test_get_workers_ignores_other_keys(self, orchestrator, dispatcher, redis_client):
        dispatcher.enqueue("default", "event")
        redis_client.set("other_namespace:worker_status:1", "{}")
        orchestrator.register_worker(Worker(pid=7, queue="cache"))

        assert [w.pid for w in orchestrator.get_workers()] == [7]

    def test_get_workers_skips_malformed(self, orchestrator, redis_client):
        orchestrator.register_worker(Worker(pid=7, queue="cache"))
        redis_client.set("test_jobs:worker_status:8", "garbage")

        assert [w.pid for w in orchestrator.get_workers()] == [7]


class TestProcessControl:
    def test_start_worker(self, orchestrator, supervisor):
        supervisor.add("default_00", pid=0, state="STOPPED")

        assert orchestrator.start_worker("default_00", wait=True) is True

        assert supervisor.calls == [("start_process", f"{GROUP}:default_00", True)]
        assert supervisor.processes[f"{GROUP}:default_00"].is_running

    @pytest.mark.parametrize("name", ["bogus_00", "default_x"])
    def test_start_worker_invalid_name(self, orchestrator, supervisor, name):
        with pytest.raises(InvalidArgument):
            orchestrator.start_worker(name)

        assert supervisor.calls == []

    def test_stop_worker_by_name(self, orchestrator, supervisor):
        supervisor.add("prio_12", pid=321)

        orchestrator.stop_worker("prio_12")

        assert supervisor.calls == [("stop_process", f"{GROUP}:prio_12", False)]

    @pytest.mark.parametrize("pid", [321, "321"])
    def test_stop_worker_by_pid(self, orchestrator, supervisor, pid):
        supervisor.add("email_01", pid=111)
        supervisor.add("email_02", pid=321)

        orchestrator.stop_worker(pid)

        assert supervisor.calls == [("stop_process", f"{GROUP}:email_02", False)]

    def test_stop_worker_pid_outside_group(self, orchestrator, supervisor):
        supervisor.add("default_00", pid=321, group="something-else")

        with pytest.raises(NotFound):
            orchestrator.stop_worker(321)

    def test_stop_worker_non_ascii_digits_are_a_name(self, orchestrator, supervisor):
        with pytest.raises(InvalidArgument):
            orchestrator.stop_worker("²")

        assert supervisor.calls == []

    def test_stop_worker_unknown_pid(self, orchestrator):
        with pytest.raises(NotFound):
            orchestrator.stop_worker(42)

    def test_restart_workers(self, orchestrator, supervisor):
        orchestrator.restart_workers(wait=True)

        assert supervisor.calls == [
            ("stop_process_group", GROUP, True),
            ("start_process_group", GROUP, True),
        ]

    def test_restart_dead_workers_only_starts_group(self, orchestrator, supervisor):
        running = supervisor.add("default_00", pid=10)
        dead = supervisor.add("default_01", pid=0, state="FATAL")

        orchestrator.restart_dead_workers()

        assert supervisor.calls == [("start_process_group", GROUP, False)]
        assert running.pid == 10
        assert dead.is_running

    def test_get_processes_filters_group(self, orchestrator, supervisor):
        supervisor.add("default_00", pid=10)
        supervisor.add("monitor", pid=11, group="bgjobs-monitor")

        assert [p.name for p in orchestrator.get_processes()] == ["default_00"]
