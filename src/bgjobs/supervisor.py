import logging
import xmlrpc.client
from dataclasses import dataclass
from typing import Any, Dict, List, Protocol
from urllib.parse import quote

from .config import Settings
from .exceptions import SupervisorError

logger = logging.getLogger(__name__)


@dataclass
class ProcessInfo:
    """
    One entry of supervisord's getAllProcessInfo().
    """

    name: str
    group: str
    pid: int
    state: str  # supervisord statename: RUNNING, STOPPED, FATAL, ...
    description: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.group}:{self.name}"

    @property
    def is_running(self) -> bool:
        return self.state == "RUNNING"

    @classmethod
    def from_dict(cls, info: Dict[str, Any]) -> "ProcessInfo":
        return cls(
            name=info["name"],
            group=info["group"],
            pid=int(info.get("pid") or 0),
            state=info.get("statename", "UNKNOWN"),
            description=info.get("description", ""),
        )


class ProcessSupervisor(Protocol):
    """Remote process control operations used by the worker orchestrator."""

    def start_process(self, name: str, wait: bool = True) -> bool:
        ...

    def stop_process(self, name: str, wait: bool = True) -> bool:
        ...

    def start_process_group(self, group: str, wait: bool = True) -> List[Dict[str, Any]]:
        ...

    def stop_process_group(self, group: str, wait: bool = True) -> List[Dict[str, Any]]:
        ...

    def get_all_process_info(self) -> List[ProcessInfo]:
        ...


class SupervisorClient:
    """
    XML-RPC client for supervisord's `supervisor.*` namespace.

    `wait` maps to supervisord's own wait flag: when True the daemon only
    answers once the process reached its target state.
    """

    def __init__(self, proxy: xmlrpc.client.ServerProxy):
        self.proxy = proxy

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupervisorClient":
        return cls(xmlrpc.client.ServerProxy(cls.build_url(settings), allow_none=True))

    @staticmethod
    def build_url(settings: Settings) -> str:
        auth = ""
        if settings.supervisor_user and settings.supervisor_password:
            auth = (
                f"{quote(settings.supervisor_user, safe='')}:"
                f"{quote(settings.supervisor_password, safe='')}@"
            )
        return f"http://{auth}{settings.supervisor_host}:{settings.supervisor_port}/RPC2"

    def _call(self, method: str, *args):
        try:
            return getattr(self.proxy.supervisor, method)(*args)
        except xmlrpc.client.Fault as e:
            logger.warning(f"Supervisor: {method}{args} failed: {e.faultString}")
            raise SupervisorError(e.faultString, code=e.faultCode) from e
        except (OSError, xmlrpc.client.ProtocolError) as e:
            raise SupervisorError(f"Supervisor unreachable: {e}") from e

    def get_state(self) -> Dict[str, Any]:
        return self._call("getState")

    def start_process(self, name: str, wait: bool = True) -> bool:
        logger.info(f"Supervisor: starting {name} (wait={wait})")
        return bool(self._call("startProcess", name, wait))

    def stop_process(self, name: str, wait: bool = True) -> bool:
        logger.info(f"Supervisor: stopping {name} (wait={wait})")
        return bool(self._call("stopProcess", name, wait))

    def start_process_group(self, group: str, wait: bool = True) -> List[Dict[str, Any]]:
        logger.info(f"Supervisor: starting group {group} (wait={wait})")
        return self._call("startProcessGroup", group, wait)

    def stop_process_group(self, group: str, wait: bool = True) -> List[Dict[str, Any]]:
        logger.info(f"Supervisor: stopping group {group} (wait={wait})")
        return self._call("stopProcessGroup", group, wait)

    def get_all_process_info(self) -> List[ProcessInfo]:
        return [ProcessInfo.from_dict(info) for info in self._call("getAllProcessInfo")]

