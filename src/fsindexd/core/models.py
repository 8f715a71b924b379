from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Optional


class EventKind(str, Enum):
    CREATED = "CREATED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    MOVED = "MOVED"
    SCANNED = "SCANNED"


@dataclass(frozen=True)
class ChangeRecord:
    """A single filesystem change normalized for indexing."""
    path: str
    kind: EventKind = EventKind.CREATED
    device_id: int = 0
    timestamp: float = 0.0
    is_dir: bool = False
    size: int = 0

    @property
    def name(self) -> str:
        return os.path.basename(self.path.rstrip("/")) or self.path


@dataclass(frozen=True)
class MountEntry:
    device_id: int
    mount_point: str
    fs_type: str
    source: str = ""


@dataclass(frozen=True)
class MountSnapshot:
    """
    Point-in-time view of the mount table.

    Replaced wholesale on refresh; never updated in place.
    """
    by_device: Mapping[int, MountEntry] = field(default_factory=dict)
    by_mount_point: Mapping[str, MountEntry] = field(default_factory=dict)

    @classmethod
    def build(cls, entries: Iterator[MountEntry] | list[MountEntry]) -> "MountSnapshot":
        by_device: Dict[int, MountEntry] = {}
        by_mount_point: Dict[str, MountEntry] = {}
        # later entries are stacked on top of earlier ones
        for entry in entries:
            by_device[entry.device_id] = entry
            by_mount_point[entry.mount_point] = entry
        return cls(
            by_device=MappingProxyType(by_device),
            by_mount_point=MappingProxyType(by_mount_point),
        )

    def entry_for_device(self, device_id: int) -> Optional[MountEntry]:
        return self.by_device.get(device_id)

    def __len__(self) -> int:
        return len(self.by_mount_point)
