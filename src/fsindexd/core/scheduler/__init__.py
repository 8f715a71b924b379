from .batch import BatchScheduler, BatchWindow, StopToken
from .pending import PendingStage
from .worker import BatchWorker, LifecycleController

__all__ = ["BatchScheduler", "BatchWindow", "StopToken", "PendingStage", "BatchWorker", "LifecycleController"]
