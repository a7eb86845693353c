"""Services for monitor storage, claiming, recording and checking."""
from .checker import CheckerService
from .claim_scheduler import ClaimScheduler
from .monitor_service import MonitorService
from .monitor_store import MonitorStore
from .recorder import ResultRecorder
from .result_store import ResultStore
from .scheduler import SchedulerService
from .worker_client import WorkerClientService

__all__ = [
    "CheckerService",
    "ClaimScheduler",
    "MonitorService",
    "MonitorStore",
    "ResultRecorder",
    "ResultStore",
    "SchedulerService",
    "WorkerClientService",
]
