import os
import threading
from typing import List, Optional

import psutil

from fsindexd.core.interfaces import MountTable
from fsindexd.core.logging_utils import get_logger
from fsindexd.core.models import MountEntry, MountSnapshot
from fsindexd.core.settings import Settings, settings

logger = get_logger("fsindexd.mounts")


def _normalize(path: str) -> str:
    return os.path.normpath(os.path.abspath(path))


class MountManager:
    """
    Mount table backed by psutil.

    Each mount point is stat()ed once per refresh to learn its device id, so
    lookups by device id and by path never touch the filesystem.
    """

    def __init__(self, refresh_on_init: bool = True):
        self._snapshot = MountSnapshot.build([])
        self._refresh_lock = threading.Lock()
        if refresh_on_init:
            self.refresh()

    @property
    def snapshot(self) -> MountSnapshot:
        return self._snapshot

    def refresh(self) -> None:
        with self._refresh_lock:
            try:
                partitions = psutil.disk_partitions(all=True)
            except Exception as e:
                logger.warning("mount_refresh_failed", error=str(e), kept=len(self._snapshot))
                return

            entries: List[MountEntry] = []
            for part in partitions:
                try:
                    st = os.stat(part.mountpoint)
                except OSError as e:
                    logger.debug("mount_stat_failed", mount_point=part.mountpoint, error=str(e))
                    continue
                entries.append(MountEntry(
                    device_id=int(st.st_dev),
                    mount_point=_normalize(part.mountpoint),
                    fs_type=part.fstype,
                    source=part.device,
                ))
            self._snapshot = MountSnapshot.build(entries)
            logger.debug("mount_refreshed", mounts=len(self._snapshot))

    def find_mount(self, path: str) -> Optional[MountEntry]:
        """Nearest mount boundary at or above path."""
        snapshot = self._snapshot
        current = _normalize(path)
        while True:
            entry = snapshot.by_mount_point.get(current)
            if entry is not None:
                return entry
            parent = os.path.dirname(current)
            if parent == current:
                return None
            current = parent

    def path_matches_type(self, path: str, fs_type: str) -> bool:
        entry = self.find_mount(path)
        return entry is not None and entry.fs_type == fs_type

    def contains_device(self, device_id: int) -> bool:
        return device_id in self._snapshot.by_device

    def mount_point_for(self, device_id: int) -> str:
        entry = self._snapshot.entry_for_device(device_id)
        return entry.mount_point if entry else ""


class MountAwarenessFilter:
    """Decides which change events never reach the pending stage."""

    def __init__(self, mounts: MountTable, fs_type: Optional[str] = None,
                 longname_suffix: Optional[str] = None, settings_obj: Optional[Settings] = None):
        s = settings_obj or settings
        self.mounts = mounts
        self.fs_type = fs_type or s.SUPPRESSED_FS_TYPE
        self.longname_suffix = longname_suffix or s.LONGNAME_SUFFIX

    def refresh(self) -> None:
        self.mounts.refresh()

    def contains_device(self, device_id: int) -> bool:
        return self.mounts.contains_device(device_id)

    def mount_point_for(self, device_id: int) -> str:
        return self.mounts.mount_point_for(device_id)

    def is_suppressed_type(self, path: str, fs_type: Optional[str] = None) -> bool:
        try:
            return self.mounts.path_matches_type(path, fs_type or self.fs_type)
        except Exception as e:
            logger.warning("mount_lookup_failed", path=path, error=str(e))
            return False

    def is_suppressed(self, path: str, prior_suppressed: bool = False) -> bool:
        # Shadow records for long file names are never indexed.
        if path.endswith(self.longname_suffix):
            logger.debug("event_suppressed", path=path, reason="longname")
            return True

        # When the previous record was already suppressed, the caller carries
        # that decision; the mount lookup is skipped.
        if not prior_suppressed and self.is_suppressed_type(path):
            logger.debug("event_suppressed", path=path, reason="fs_type", fs_type=self.fs_type)
            return True

        return False
