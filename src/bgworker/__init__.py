from .monitor import HealthReport, Monitor
from .worker import Worker

__all__ = [
    "HealthReport",
    "Monitor",
    "Worker",
]
