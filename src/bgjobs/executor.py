import logging
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from .models import Command, Job

logger = logging.getLogger(__name__)

COMMAND_SHELLS: Dict[Command, str] = {
    Command.EVENT: "EventShell",
    Command.SERVER: "ServerShell",
    Command.ADMIN: "AdminShell",
}


@dataclass
class ExecutionResult:
    """
    Outcome of one command handler run.
    """

    return_code: int
    output: Optional[str] = None
    error: Optional[str] = None


class Executor(ABC):
    """
    Abstract base class for command handlers.
    """

    @abstractmethod
    def run(self, job: Job) -> ExecutionResult:
        """
        Execute the job's command synchronously.

        Args:
           job (Job): The job being run. Its args are passed to the command.

        Returns:
            ExecutionResult: return code plus captured output.
        """
        pass


class ShellExecutor(Executor):
    """
    Runs a console shell as a child process:

        <console_command...> <ShellName> <args...>

    The return code is passed through untouched.
    """

    def __init__(self, console_command: Sequence[str], shell: str, timeout: Optional[float] = None):
        self.console_command = list(console_command)
        self.shell = shell
        self.timeout = timeout

    def build_argv(self, job: Job) -> List[str]:
        return [*self.console_command, self.shell, *[str(a) for a in job.args]]

    def run(self, job: Job) -> ExecutionResult:
        argv = self.build_argv(job)
        logger.info(f"ShellExecutor: [JOB ID: {job.id}] running {argv}")

        completed = subprocess.run(
            argv,
            capture_output=True,
            text=True,
            timeout=self.timeout,
            check=False,
        )

        if completed.returncode != 0:
            logger.warning(
                f"ShellExecutor: [JOB ID: {job.id}] exited with code {completed.returncode}"
            )

        return ExecutionResult(
            return_code=completed.returncode,
            output=completed.stdout or None,
            error=completed.stderr or None,
        )


class CallableExecutor(Executor):
    """
    Runs an in-process function. It receives the job args and returns
    the exit code (None counts as 0).
    """

    def __init__(self, func: Callable[..., Optional[int]]):
        self.func = func

    def run(self, job: Job) -> ExecutionResult:
        rc = self.func(*job.args)
        return ExecutionResult(return_code=0 if rc is None else int(rc))


def shell_executors(console_command: Sequence[str], timeout: Optional[float] = None) -> Dict[Command, Executor]:
    """Build the default command → ShellExecutor mapping."""
    return {
        command: ShellExecutor(console_command, shell, timeout=timeout)
        for command, shell in COMMAND_SHELLS.items()
    }
