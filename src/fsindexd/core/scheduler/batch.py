import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Iterable, Optional

from fsindexd.core.config import BatchConfig
from fsindexd.core.errors import SchedulerClosedError
from fsindexd.core.interfaces import IndexEngine
from fsindexd.core.logging_utils import get_logger
from fsindexd.core.models import ChangeRecord

from .pending import PendingStage

logger = get_logger("fsindexd.scheduler")


@dataclass
class BatchWindow:
    batch_size: int
    batch_interval: float
    last_flush_time: float = 0.0

    def is_due(self, queue_length: int, now: float) -> bool:
        return queue_length > self.batch_size or (now - self.last_flush_time) >= self.batch_interval


class StopToken:
    """Write-once stop flag. Callers hold the scheduler lock."""

    def __init__(self):
        self._requested = False

    @property
    def requested(self) -> bool:
        return self._requested

    def cancel(self) -> bool:
        if self._requested:
            return False
        self._requested = True
        return True


class BatchScheduler:
    """
    Dual-trigger batching of index additions and deletions.

    Additions are queued here; deletions live in the engine's own delayed
    queue and are only polled for readiness. Every piece of shared state
    (pending stage, addition queue, stop flag, flush window) is guarded by
    one condition variable, which is also the signal the worker waits on.
    """

    def __init__(self, engine: IndexEngine, config: Optional[BatchConfig] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.engine = engine
        self.config = config or BatchConfig.from_settings()
        self.pending = PendingStage()
        self.window = BatchWindow(self.config.batch_size, self.config.batch_interval)
        self.stop_token = StopToken()
        self._additions: Deque[ChangeRecord] = deque()
        self._cond = threading.Condition()
        self._clock = clock

    @property
    def lock(self) -> threading.Condition:
        return self._cond

    @property
    def stop_requested(self) -> bool:
        with self._cond:
            return self.stop_token.requested

    def _ensure_open(self, operation: str) -> None:
        if self.stop_token.requested:
            raise SchedulerClosedError(operation)

    # --- ingestion ---

    def stage_incoming(self, records: Iterable[ChangeRecord]) -> int:
        with self._cond:
            self._ensure_open("stage_incoming")
            return self.pending.extend(records)

    def drain_staged_to_queue(self, cap: Optional[int] = None) -> int:
        limit = self.config.drain_cap if cap is None else cap
        with self._cond:
            self._ensure_open("drain_staged_to_queue")
            batch = self.pending.drain(limit)
            self._additions.extend(batch)
            self._cond.notify()
        return len(batch)

    def enqueue_addition(self, record: ChangeRecord) -> None:
        with self._cond:
            self._ensure_open("enqueue_addition")
            self._additions.append(record)
            if len(self._additions) > self.window.batch_size:
                self._cond.notify()

    def enqueue_deletion(self, term: str) -> None:
        with self._cond:
            self._ensure_open("enqueue_deletion")
            self.engine.schedule_deletion(term)
            if self.engine.deletion_batch_ready():
                self._cond.notify()

    # --- introspection ---

    def pending_size(self) -> int:
        with self._cond:
            return len(self.pending)

    def addition_queue_size(self) -> int:
        with self._cond:
            return len(self._additions)

    # --- worker side ---

    def wake_ready(self) -> bool:
        return (
            len(self._additions) > self.window.batch_size
            or self.engine.deletion_batch_ready()
            or self.stop_token.requested
        )

    def wait_for_work(self, timeout: Optional[float] = None) -> bool:
        """Block until there is work or the timeout elapses. Caller holds the lock."""
        wait = self.config.wake_timeout if timeout is None else timeout
        return self._cond.wait_for(self.wake_ready, timeout=wait)

    def flush_ready_additions(self) -> int:
        with self._cond:
            if not self.window.is_due(len(self._additions), self._clock()):
                return 0
            count = min(self.window.batch_size, len(self._additions))
            for _ in range(count):
                self.engine.commit_addition(self._additions[0])
                self._additions.popleft()
            if count:
                self.engine.commit()
                logger.debug("additions_flushed", count=count, remaining=len(self._additions))
            self.window.last_flush_time = self._clock()
            return count

    def flush_ready_deletions(self) -> int:
        with self._cond:
            if not self.engine.deletion_batch_ready():
                return 0
            count = self.engine.process_deletion_batch()
            logger.debug("deletions_flushed", count=count)
            return count

    def drain_all(self) -> int:
        """Commit everything still queued, ignoring both triggers."""
        flushed = 0
        with self._cond:
            self._additions.extend(self.pending.drain(len(self.pending)))
            while self._additions:
                count = min(self.window.batch_size, len(self._additions))
                for _ in range(count):
                    self.engine.commit_addition(self._additions[0])
                    self._additions.popleft()
                self.engine.commit()
                flushed += count
            self.window.last_flush_time = self._clock()
            while True:
                count = self.engine.process_deletion_batch()
                if not count:
                    break
                flushed += count
        return flushed

    def request_stop(self) -> bool:
        with self._cond:
            changed = self.stop_token.cancel()
            self._cond.notify_all()
            return changed
