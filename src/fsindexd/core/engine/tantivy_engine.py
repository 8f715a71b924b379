import os
import shutil
import threading
import time
from collections import deque
from pathlib import Path
from typing import Callable, Deque, List, Optional

import tantivy

from fsindexd.core.interfaces import ChangeFilter
from fsindexd.core.logging_utils import get_logger
from fsindexd.core.models import ChangeRecord
from fsindexd.core.settings import Settings, settings

_MAX_TOKEN_BYTES = 40


def _ancestors(path: str) -> List[str]:
    out: List[str] = []
    current = os.path.dirname(path)
    while current and current not in out:
        out.append(current)
        parent = os.path.dirname(current)
        if parent == current:
            break
        current = parent
    return out


class TantivyIndexEngine:
    """
    Tantivy-backed document index for filesystem paths.

    Documents are keyed by absolute path; every ancestor directory is stored
    in the `dirs` field so directory-scoped searches and recursive deletes
    are single term queries. Deletions are delayed in an engine-owned FIFO
    and become ready by size or by age.
    """

    def __init__(self, index_dir: Optional[str] = None, logger=None, settings_obj: Optional[Settings] = None,
                 deletion_batch_size: Optional[int] = None, deletion_interval: Optional[float] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.settings = settings_obj or settings
        self.index_path = Path(index_dir or self.settings.INDEX_DIR)
        self.logger = logger or get_logger("fsindexd.engine")
        self.deletion_batch_size = deletion_batch_size or self.settings.DELETION_BATCH_SIZE
        if deletion_interval is None:
            deletion_interval = self.settings.DELETION_INTERVAL_MS / 1000.0
        self.deletion_interval = deletion_interval
        self._clock = clock
        self._deletions: Deque[str] = deque()
        self._last_deletion_ts = clock()
        self._change_filter: Optional[ChangeFilter] = None
        self._writer = None
        self._dirty = False
        self._last_reload_ts = 0.0
        self._writer_lock = threading.RLock()
        self._setup_schema()
        self._init_index()

    def _setup_schema(self) -> None:
        schema_builder = tantivy.SchemaBuilder()
        schema_builder.add_text_field("path", stored=True, tokenizer_name="raw")
        schema_builder.add_text_field("name", stored=True, tokenizer_name="default")
        schema_builder.add_text_field("dirs", stored=False, tokenizer_name="raw")
        schema_builder.add_text_field("kind", stored=True, tokenizer_name="raw")
        schema_builder.add_integer_field("device", stored=True, indexed=True)
        schema_builder.add_integer_field("mtime", stored=True, indexed=True)
        self._schema = schema_builder.build()

    def _init_index(self) -> None:
        self.index_path.mkdir(parents=True, exist_ok=True)
        try:
            self._index = tantivy.Index(self._schema, path=str(self.index_path))
        except Exception as e:
            self.logger.warning("index_recreate", path=str(self.index_path), error=str(e))
            shutil.rmtree(self.index_path)
            self.index_path.mkdir(parents=True, exist_ok=True)
            self._index = tantivy.Index(self._schema, path=str(self.index_path))

    def _get_writer(self):
        if self._writer is None:
            memory_budget = self.settings.ENGINE_INDEX_MEM_MB * 1024 * 1024
            self._writer = self._index.writer(memory_budget, 1)
        return self._writer

    @staticmethod
    def _delete_term(writer, field: str, value: str) -> None:
        if hasattr(writer, "delete_documents_by_term"):
            writer.delete_documents_by_term(field, value)
        else:
            writer.delete_documents(field, value)

    def _is_filtered(self, path: str) -> bool:
        return bool(self._change_filter and self._change_filter(path))

    # --- additions ---

    def commit_addition(self, record: ChangeRecord) -> None:
        path = os.path.normpath(record.path)
        if self._is_filtered(path):
            return
        doc = tantivy.Document()
        doc.add_text("path", path)
        doc.add_text("name", record.name)
        for d in _ancestors(path):
            doc.add_text("dirs", d)
        doc.add_text("kind", "dir" if record.is_dir else "file")
        doc.add_integer("device", int(record.device_id))
        doc.add_integer("mtime", int(record.timestamp))
        with self._writer_lock:
            writer = self._get_writer()
            self._delete_term(writer, "path", path)
            writer.add_document(doc)
            self._dirty = True

    def commit(self) -> None:
        with self._writer_lock:
            if self._writer is not None and self._dirty:
                self._writer.commit()
                self._dirty = False

    # --- delayed deletions ---

    def schedule_deletion(self, term: str) -> None:
        path = os.path.normpath(term)
        if self._is_filtered(path):
            return
        with self._writer_lock:
            self._deletions.append(path)

    def pending_deletions(self) -> int:
        return len(self._deletions)

    def deletion_batch_ready(self) -> bool:
        pending = len(self._deletions)
        if pending >= self.deletion_batch_size:
            return True
        return pending > 0 and (self._clock() - self._last_deletion_ts) >= self.deletion_interval

    def process_deletion_batch(self) -> int:
        with self._writer_lock:
            count = min(self.deletion_batch_size, len(self._deletions))
            if not count:
                return 0
            writer = self._get_writer()
            for _ in range(count):
                path = self._deletions.popleft()
                self._delete_term(writer, "path", path)
                self._delete_term(writer, "dirs", path)
            writer.commit()
            self._dirty = False
            self._last_deletion_ts = self._clock()
            self.logger.debug("deletion_batch_committed", count=count, remaining=len(self._deletions))
            return count

    def remove_document(self, path: str) -> None:
        path = os.path.normpath(path)
        with self._writer_lock:
            writer = self._get_writer()
            self._delete_term(writer, "path", path)
            self._delete_term(writer, "dirs", path)
            writer.commit()
            self._dirty = False

    # --- reads ---

    def _reload(self, force: bool = False) -> None:
        now = time.time()
        reload_interval = max(0, self.settings.ENGINE_RELOAD_MS) / 1000.0
        if force or reload_interval == 0 or (now - self._last_reload_ts) >= reload_interval:
            self._index.reload()
            self._last_reload_ts = now

    def document_exists(self, path: str) -> bool:
        self._reload(force=True)
        searcher = self._index.searcher()
        query = tantivy.Query.term_query(self._schema, "path", os.path.normpath(path))
        return len(searcher.search(query, 1).hits) > 0

    def _keyword_tokens(self, keywords: str) -> List[str]:
        # mirrors the `default` tokenizer on `name`: alphanumeric runs, lowercased, long tokens dropped
        words = "".join(ch if ch.isalnum() else " " for ch in keywords).split()
        return [w.lower() for w in words if len(w.encode("utf-8")) < _MAX_TOKEN_BYTES]

    def search(self, path: str, keywords: str, offset: int, count: int, nrt: bool = True) -> List[str]:
        if count <= 0 or offset < 0:
            return []
        self._reload(force=nrt)
        searcher = self._index.searcher()

        clauses = []
        if path:
            norm = os.path.normpath(path)
            clauses.append((tantivy.Occur.Must, tantivy.Query.term_query(self._schema, "dirs", norm)))
        if keywords and keywords.strip():
            tokens = self._keyword_tokens(keywords)
            if not tokens:
                return []
            for token in tokens:
                clauses.append((tantivy.Occur.Must, tantivy.Query.term_query(self._schema, "name", token)))

        if not clauses:
            query = tantivy.Query.all_query()
        elif len(clauses) == 1:
            query = clauses[0][1]
        else:
            query = tantivy.Query.boolean_query(clauses)

        hits = searcher.search(query, count, offset=offset).hits
        return [searcher.doc(address)["path"][0] for _score, address in hits]

    # --- misc ---

    def index_directory(self) -> str:
        return str(self.index_path)

    def set_change_filter(self, predicate: Optional[ChangeFilter]) -> None:
        self._change_filter = predicate

    def close(self) -> None:
        with self._writer_lock:
            if self._writer is not None:
                if self._dirty:
                    self._writer.commit()
                self._writer = None
                self._dirty = False
