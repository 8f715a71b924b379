import threading
from typing import Optional

from fsindexd.core.logging_utils import get_logger

from .batch import BatchScheduler

logger = get_logger("fsindexd.worker")


class BatchWorker:
    """
    The single background consumer of a BatchScheduler.

    Waiting -> (signal or timeout) -> Draining -> Waiting, leaving only when
    the stop flag is seen at a wake. A batch in flight always completes. If
    the engine raises, the worker logs the failure and terminates; it is not
    restarted.
    """

    def __init__(self, scheduler: BatchScheduler, name: str = "fsindexd-batch-worker"):
        self.scheduler = scheduler
        self.observed_stop = False
        self.failure: Optional[BaseException] = None
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    @property
    def name(self) -> str:
        return self._thread.name

    @property
    def started(self) -> bool:
        return self._thread.ident is not None

    def start(self) -> None:
        if not self.started:
            self._thread.start()

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def join(self, timeout: Optional[float] = None) -> bool:
        if not self.started:
            return True
        self._thread.join(timeout=timeout)
        return not self._thread.is_alive()

    def _run(self) -> None:
        scheduler = self.scheduler
        logger.info("worker_started", thread=self.name)
        try:
            while True:
                with scheduler.lock:
                    if scheduler.wait_for_work() and scheduler.stop_token.requested:
                        self.observed_stop = True
                        break
                    # timeout alone is enough; the flush re-checks elapsed time
                    scheduler.flush_ready_additions()
                    scheduler.flush_ready_deletions()

            if scheduler.config.drain_on_shutdown:
                flushed = scheduler.drain_all()
                logger.info("worker_drained", thread=self.name, flushed=flushed)
        except Exception as e:
            self.failure = e
            logger.exception("worker_failed", thread=self.name, error=str(e))


class LifecycleController:
    """Stops a BatchWorker: flip the stop flag, wake the worker, wait for it."""

    def __init__(self, scheduler: BatchScheduler, worker: BatchWorker):
        self.scheduler = scheduler
        self.worker = worker
        self._shutdown_lock = threading.Lock()
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        with self._shutdown_lock:
            if self._finished:
                return True
            self.scheduler.request_stop()
            exited = self.worker.join(timeout)
            if not exited:
                logger.warning("worker_join_timeout", thread=self.worker.name, timeout=timeout)
                return False

            self._finished = True
            additions = self.scheduler.addition_queue_size()
            pending = self.scheduler.pending_size()
            if additions or pending:
                logger.warning("records_dropped_at_shutdown", additions=additions, pending=pending)
            logger.info("worker_exited", thread=self.worker.name, observed_stop=self.worker.observed_stop)
            return True
