import os
import stat
from typing import Iterator, Optional

from fsindexd.core.logging_utils import get_logger
from fsindexd.core.models import ChangeRecord, EventKind

logger = get_logger("fsindexd.records")


class FileRecordGenerator:
    """Turns filesystem paths into ChangeRecords from lstat() metadata."""

    def __init__(self, kind: EventKind = EventKind.CREATED):
        self.kind = kind

    def generate_record(self, path: str, kind: Optional[EventKind] = None) -> Optional[ChangeRecord]:
        if not path:
            return None
        try:
            st = os.lstat(path)
        except (FileNotFoundError, NotADirectoryError):
            return None
        except OSError as e:
            logger.debug("record_stat_failed", path=path, error=str(e))
            return None

        is_dir = stat.S_ISDIR(st.st_mode)
        return ChangeRecord(
            path=os.path.normpath(path),
            kind=kind or self.kind,
            device_id=int(st.st_dev),
            timestamp=float(st.st_mtime),
            is_dir=is_dir,
            size=0 if is_dir else int(st.st_size),
        )

    def iter_directory_records(self, directory: str) -> Iterator[ChangeRecord]:
        """Yield a record for every entry below directory (symlinks are not followed)."""
        def _on_error(e: OSError) -> None:
            logger.debug("directory_walk_skipped", path=getattr(e, "filename", ""), error=str(e))

        for dirpath, dirnames, filenames in os.walk(directory, onerror=_on_error, followlinks=False):
            for name in dirnames + filenames:
                rec = self.generate_record(os.path.join(dirpath, name), kind=EventKind.SCANNED)
                if rec is not None:
                    yield rec
