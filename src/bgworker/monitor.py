import logging
import signal
import time
from dataclasses import dataclass, field
from typing import List, Optional

from redis.exceptions import RedisError

from bgjobs.exceptions import SupervisorError
from bgjobs.orchestrator import WorkerOrchestrator
from bgjobs.supervisor import ProcessInfo

logger = logging.getLogger(__name__)


@dataclass
class HealthReport:
    """What one monitor pass saw."""

    not_running: List[ProcessInfo] = field(default_factory=list)
    # Redis worker records whose pid supervisord does not know about
    orphaned_pids: List[int] = field(default_factory=list)

    @property
    def healthy(self) -> bool:
        return not self.not_running and not self.orphaned_pids


class Monitor:
    """
    Keeps the worker group alive.

    Every `interval` seconds it asks supervisord to start the worker group
    (which only touches processes that are not running) and logs drift
    between supervisord and the Redis worker records. Orphaned records are
    reported, never deleted: workers own their records.
    """

    def __init__(self, orchestrator: WorkerOrchestrator, interval: float = 30.0, install_signal_handlers: bool = True):
        self.orchestrator = orchestrator
        self.interval = interval
        self._running = False

        if install_signal_handlers:
            signal.signal(signal.SIGINT, self._signal_handler)
            signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, signum, frame):
        logger.info(f"Signal {signum} received. Stopping monitor...")
        self.stop()

    def check(self) -> HealthReport:
        processes = self.orchestrator.get_processes()
        report = HealthReport(not_running=[p for p in processes if not p.is_running])

        live_pids = {p.pid for p in processes if p.pid}
        report.orphaned_pids = sorted(
            w.pid for w in self.orchestrator.get_workers() if w.pid not in live_pids
        )

        for proc in report.not_running:
            logger.warning(f"Monitor: {proc.full_name} is {proc.state}")
        if report.orphaned_pids:
            logger.warning(f"Monitor: worker records without a supervised process: {report.orphaned_pids}")

        return report

    def tick(self) -> HealthReport:
        """
        One monitor pass: health check, then restart dead workers.

        The restart does not depend on the check, which reads Redis.
        """
        try:
            report = self.check()
            if report.not_running:
                logger.info(f"Monitor: restarting {len(report.not_running)} dead worker(s)")
        finally:
            self.orchestrator.restart_dead_workers()
        return report

    def start(self, max_iterations: Optional[int] = None) -> None:
        self._running = True
        iterations = 0
        logger.info(f"Monitor started (interval={self.interval}s).")

        while self._running:
            try:
                self.tick()
            except SupervisorError as e:
                logger.error(f"Monitor: supervisor call failed: {e}")
            except RedisError as e:
                logger.error(f"Monitor: redis call failed: {e}")

            iterations += 1
            if max_iterations is not None and iterations >= max_iterations:
                break

            time.sleep(self.interval)

        self._running = False
        logger.info("Monitor stopped.")

    def stop(self) -> None:
        self._running = False
