from typing import List

from fsindexd.core.errors import SchedulerClosedError
from fsindexd.core.interfaces import IndexEngine, RecordSource
from fsindexd.core.logging_utils import get_logger
from fsindexd.core.scheduler import BatchScheduler

logger = get_logger("fsindexd.facade")


class SearchFacade:
    """
    Synchronous search/add/remove/exists operations.

    All engine access goes through the scheduler lock, so callers are
    serialized with the batch worker.
    """

    def __init__(self, scheduler: BatchScheduler, engine: IndexEngine, records: RecordSource):
        self.scheduler = scheduler
        self.engine = engine
        self.records = records

    def search(self, path: str, keywords: str, offset: int, max_count: int) -> List[str]:
        if offset < 0:
            return []
        with self.scheduler.lock:
            return list(self.engine.search(path, keywords, offset, max_count, True))

    def remove_path(self, path: str) -> bool:
        # Absent before the call still counts as success.
        with self.scheduler.lock:
            self.engine.remove_document(path)
            return not self.engine.document_exists(path)

    def has_document(self, path: str) -> bool:
        with self.scheduler.lock:
            return self.engine.document_exists(path)

    def add_path(self, path: str) -> bool:
        """
        Queue path for delayed addition.

        Returns the committed state at call time, which is normally False
        for a new path until the next flush.
        """
        record = self.records.generate_record(path)
        if record is None:
            return False
        with self.scheduler.lock:
            try:
                self.scheduler.enqueue_addition(record)
            except SchedulerClosedError as e:
                logger.info("add_path_rejected", path=path, reason=str(e))
                return False
            return self.engine.document_exists(path)
