from typing import Callable, List, Optional, Protocol, runtime_checkable

from fsindexd.core.models import ChangeRecord

ChangeFilter = Callable[[str], bool]


@runtime_checkable
class IndexEngine(Protocol):
    """Document index consumed by the scheduler and the search facade.

    The engine owns the delayed-deletion queue. Additions are owned by the
    scheduler and reach the engine one record at a time via commit_addition,
    followed by a single commit() per flushed batch.
    """

    def commit_addition(self, record: ChangeRecord) -> None: ...
    def commit(self) -> None: ...
    def schedule_deletion(self, term: str) -> None: ...
    def deletion_batch_ready(self) -> bool: ...
    def process_deletion_batch(self) -> int: ...
    def remove_document(self, path: str) -> None: ...
    def document_exists(self, path: str) -> bool: ...
    def search(self, path: str, keywords: str, offset: int, count: int, nrt: bool = True) -> List[str]: ...
    def index_directory(self) -> str: ...
    def set_change_filter(self, predicate: Optional[ChangeFilter]) -> None: ...


@runtime_checkable
class MountTable(Protocol):
    def refresh(self) -> None: ...
    def path_matches_type(self, path: str, fs_type: str) -> bool: ...
    def contains_device(self, device_id: int) -> bool: ...
    def mount_point_for(self, device_id: int) -> str: ...


@runtime_checkable
class RecordSource(Protocol):
    def generate_record(self, path: str) -> Optional[ChangeRecord]: ...
