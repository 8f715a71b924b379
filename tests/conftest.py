import os
import time
from collections import deque

import pytest

from fsindexd.core.config import BatchConfig
from fsindexd.core.models import ChangeRecord, EventKind


class FakeEngine:
    """In-memory stand-in for the index engine."""

    def __init__(self, deletion_batch_size: int = 3):
        self.deletion_batch_size = deletion_batch_size
        self.docs = set()
        self.committed = []
        self.commits = 0
        self.deletions = deque()
        self.processed_deletions = []
        self.removed = []
        self.search_calls = []
        self.change_filter = None

    def commit_addition(self, record):
        self.committed.append(record)
        self.docs.add(record.path)

    def commit(self):
        self.commits += 1

    def schedule_deletion(self, term):
        self.deletions.append(term)

    def deletion_batch_ready(self):
        return len(self.deletions) >= self.deletion_batch_size

    def process_deletion_batch(self):
        count = min(self.deletion_batch_size, len(self.deletions))
        for _ in range(count):
            term = self.deletions.popleft()
            self.docs.discard(term)
            self.processed_deletions.append(term)
        return count

    def remove_document(self, path):
        self.removed.append(path)
        self.docs.discard(path)

    def document_exists(self, path):
        return path in self.docs

    def search(self, path, keywords, offset, count, nrt=True):
        self.search_calls.append((path, keywords, offset, count, nrt))
        hits = sorted(p for p in self.docs if p.startswith(path) and keywords in os.path.basename(p))
        return hits[offset:offset + count]

    def index_directory(self):
        return "/var/cache/fsindexd/index"

    def set_change_filter(self, predicate):
        self.change_filter = predicate


class FakeMounts:
    """Mount table keyed by mount point; records every type lookup."""

    def __init__(self, types=None, devices=None):
        self.types = dict(types or {})
        self.devices = dict(devices or {})
        self.calls = []
        self.refreshes = 0

    def refresh(self):
        self.refreshes += 1

    def path_matches_type(self, path, fs_type):
        self.calls.append((path, fs_type))
        best = ""
        for mount_point in self.types:
            prefix = mount_point.rstrip("/") + "/"
            if (path == mount_point or path.startswith(prefix)) and len(mount_point) > len(best):
                best = mount_point
        return bool(best) and self.types[best] == fs_type

    def contains_device(self, device_id):
        return device_id in self.devices

    def mount_point_for(self, device_id):
        return self.devices.get(device_id, "")


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_records(count, prefix="/data/docs"):
    return [
        ChangeRecord(path=f"{prefix}/file_{i:04d}.txt", kind=EventKind.CREATED, device_id=2049, timestamp=float(i))
        for i in range(count)
    ]


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def mounts():
    return FakeMounts(types={"/": "ext4", "/media/longnames": "fuse.dlnfs"}, devices={2049: "/"})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def records():
    return make_records


@pytest.fixture
def fast_config():
    return BatchConfig(batch_size=100, batch_interval=0.1, drain_cap=500, wake_timeout=0.05)


@pytest.fixture
def wait_until():
    def _wait(predicate, timeout=2.0, interval=0.01):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()
    return _wait
