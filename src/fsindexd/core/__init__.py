from .config import BatchConfig
from .errors import FsIndexError, SchedulerClosedError
from .facade import SearchFacade
from .handler import EventHandler
from .models import ChangeRecord, EventKind, MountEntry, MountSnapshot
from .mounts import MountAwarenessFilter, MountManager
from .records import FileRecordGenerator
from .scheduler import BatchScheduler, BatchWorker, LifecycleController, PendingStage
from .service import ServiceEndpoint, ServiceRegistry
from .settings import settings

__all__ = [
    "BatchConfig",
    "FsIndexError",
    "SchedulerClosedError",
    "SearchFacade",
    "EventHandler",
    "ChangeRecord",
    "EventKind",
    "MountEntry",
    "MountSnapshot",
    "MountAwarenessFilter",
    "MountManager",
    "FileRecordGenerator",
    "BatchScheduler",
    "BatchWorker",
    "LifecycleController",
    "PendingStage",
    "ServiceEndpoint",
    "ServiceRegistry",
    "settings",
]
