from typing import Dict, Iterable, List, Optional

from fsindexd.core.config import BatchConfig
from fsindexd.core.facade import SearchFacade
from fsindexd.core.interfaces import ChangeFilter, IndexEngine, MountTable
from fsindexd.core.logging_utils import configure_logging, get_logger
from fsindexd.core.models import ChangeRecord
from fsindexd.core.mounts import MountAwarenessFilter, MountManager
from fsindexd.core.records import FileRecordGenerator
from fsindexd.core.scheduler import BatchScheduler, BatchWorker, LifecycleController
from fsindexd.core.service import ServiceEndpoint, ServiceRegistry
from fsindexd.core.settings import Settings, settings

logger = get_logger("fsindexd.handler")


class EventHandler:
    """
    Ingestion front of the index updater.

    The upstream watcher stages change records here; the batch worker,
    started at construction, feeds them to the engine. Search operations are
    served through the facade and, when a registry is given, published as a
    service endpoint.
    """

    def __init__(
            self,
            engine: IndexEngine,
            config: Optional[BatchConfig] = None,
            mounts: Optional[MountTable] = None,
            records: Optional[FileRecordGenerator] = None,
            registry: Optional[ServiceRegistry] = None,
            settings_obj: Optional[Settings] = None,
            configure_logs: bool = False):
        self.settings = settings_obj or settings
        if configure_logs:
            configure_logging(self.settings)
        self.engine = engine
        self.config = config or BatchConfig.from_settings(self.settings)
        self.records = records or FileRecordGenerator()
        self.mount_filter = MountAwarenessFilter(mounts or MountManager(), settings_obj=self.settings)

        self.scheduler = BatchScheduler(engine, self.config)
        self.facade = SearchFacade(self.scheduler, engine, self.records)

        self.endpoint: Optional[ServiceEndpoint] = None
        if registry is not None:
            self.endpoint = ServiceEndpoint(self.facade, registry, settings_obj=self.settings)
            self.endpoint.publish()

        self.worker = BatchWorker(self.scheduler)
        self.lifecycle = LifecycleController(self.scheduler, self.worker)
        self.worker.start()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
        return False

    # --- ingestion (upstream watcher) ---

    def ignored_event(self, path: str, ignored: bool = False) -> bool:
        return self.mount_filter.is_suppressed(path, ignored)

    def insert_pending_records(self, records: Iterable[ChangeRecord]) -> int:
        return self.scheduler.stage_incoming(records)

    def record_size(self) -> int:
        return self.scheduler.pending_size()

    def run_scheduled_task(self) -> int:
        return self.scheduler.drain_staged_to_queue(self.config.drain_cap)

    def add_index_delay(self, record: ChangeRecord) -> None:
        self.scheduler.enqueue_addition(record)

    def remove_index_delay(self, term: str) -> None:
        self.scheduler.enqueue_deletion(term)

    def index_files_in_directory(self, directory: str) -> int:
        """Stage a record for every entry below directory. Returns how many were staged."""
        staged: List[ChangeRecord] = [
            rec for rec in self.records.iter_directory_records(directory)
            if not self.mount_filter.is_suppressed(rec.path)
        ]
        count = self.scheduler.stage_incoming(staged)
        logger.info("directory_staged", directory=directory, records=count)
        return count

    def pending_counts(self) -> Dict[str, int]:
        return {
            "pending": self.scheduler.pending_size(),
            "additions": self.scheduler.addition_queue_size(),
        }

    # --- mounts ---

    def refresh_mount_status(self) -> None:
        self.mount_filter.refresh()

    def device_available(self, device_id: int) -> bool:
        return self.mount_filter.contains_device(device_id)

    def mount_point_for_device(self, device_id: int) -> str:
        return self.mount_filter.mount_point_for(device_id)

    # --- engine passthrough ---

    def index_directory(self) -> str:
        return self.engine.index_directory()

    def set_index_change_filter(self, predicate: Optional[ChangeFilter]) -> None:
        with self.scheduler.lock:
            self.engine.set_change_filter(predicate)

    # --- search facade ---

    def search(self, path: str, keywords: str, offset: int, max_count: int) -> List[str]:
        return self.facade.search(path, keywords, offset, max_count)

    def add_path(self, path: str) -> bool:
        return self.facade.add_path(path)

    def remove_path(self, path: str) -> bool:
        return self.facade.remove_path(path)

    def has_document(self, path: str) -> bool:
        return self.facade.has_document(path)

    # --- lifecycle ---

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        done = self.lifecycle.shutdown(timeout)
        if done and self.endpoint is not None:
            self.endpoint.unpublish()
        return done
