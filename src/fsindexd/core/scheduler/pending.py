from collections import deque
from typing import Deque, Iterable, List

from fsindexd.core.models import ChangeRecord


class PendingStage:
    """
    Unbounded FIFO of freshly ingested records.

    Not thread-safe on its own; the scheduler guards it with its lock.
    """

    def __init__(self):
        self._records: Deque[ChangeRecord] = deque()

    def extend(self, records: Iterable[ChangeRecord]) -> int:
        before = len(self._records)
        self._records.extend(records)
        return len(self._records) - before

    def drain(self, cap: int) -> List[ChangeRecord]:
        count = min(max(0, cap), len(self._records))
        return [self._records.popleft() for _ in range(count)]

    def __len__(self) -> int:
        return len(self._records)
