"""Index manager: owns the vector index and document catalog lifecycle.

The manager is the single writer of index state. Full builds, incremental
updates and clears are serialized on one write lock. Readers take the
published (index, catalog) snapshot without locking: writers never mutate a
published catalog, they fill a copy and publish the new pair in one
assignment. A search may therefore observe a slightly stale index while a
write is in progress, never a half-applied one.

File-system events are published to a queue and consumed by a worker
thread that coalesces them per path and fires once no new event has
arrived for ``debounce_seconds``. Each batch is persisted once.
"""

import dataclasses
import queue
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from ..config import IndexingConfig, get_indexing_config
from ..logging_config import get_logger
from .catalog import Chunk, DocumentCatalog, DocumentEntry, IndexMetadata, read_metadata, write_metadata
from .chunker import chunk_text
from .embeddings import EmbeddingProvider, get_embedder
from .errors import EmbeddingError, EmbeddingModelError, IndexingError, IndexLoadError, ValidationError
from .scanner import is_eligible, scan_workspace
from .validation import MAX_SEARCH_K, validate_directory, validate_positive_number, validate_search_query
from .vector_index import VectorIndex
from .watcher import EVENT_ADD, EVENT_CHANGE, EVENT_UNLINK, WorkspaceWatcher

logger = get_logger(__name__)

INDEX_DIR_NAME = ".indexing"
INDEX_FILE = "index.bin"
METADATA_FILE = "metadata.json"

_STOP = object()


class IndexState(str, Enum):
    """Lifecycle state of the indexing manager."""
    UNINITIALIZED = "uninitialized"
    LOADING_MODEL = "loading_model"
    INDEX_LOADED = "index_loaded"
    BUILDING_INDEX = "building_index"
    READY = "ready"
    REINDEXING = "reindexing"
    UPDATING = "updating"
    DISABLED = "disabled"
    FAILED = "failed"          # Embedding model could not be loaded


@dataclass
class RetrievalResult:
    """A chunk returned by a similarity search."""

    path: str  # Workspace-relative path
    full_path: str
    text: str
    chunk_ordinal: int
    score: float  # 1 / (1 + squared distance), higher is closer

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "full_path": self.full_path,
            "text": self.text,
            "chunk_index": self.chunk_ordinal,
            "score": self.score,
        }


@dataclass
class WatchEvent:
    kind: str  # "add", "change" or "unlink"
    path: str  # Absolute path


@dataclass(frozen=True)
class IndexSnapshot:
    """An index generation paired with the catalog describing it."""

    index: Optional[VectorIndex]
    catalog: DocumentCatalog


class LabelAllocator:
    """Hands out vector labels, unique within one index generation."""

    def __init__(self, start: int = 0):
        self._next = start
        self._lock = threading.Lock()

    @property
    def next_label(self) -> int:
        return self._next

    def allocate(self) -> int:
        with self._lock:
            label = self._next
            self._next += 1
            return label


def distance_to_score(distance: float) -> float:
    """Map a squared L2 distance to a similarity in (0, 1]."""
    return 1.0 / (1.0 + max(distance, 0.0))


class IndexingManager:
    """Builds, updates, persists and searches the workspace index."""

    def __init__(
        self,
        config: Optional[IndexingConfig] = None,
        embedder: Optional[EmbeddingProvider] = None,
        watch: bool = True,
    ):
        """Create a manager. Nothing is loaded until :meth:`initialize`.

        Args:
            config: Indexing configuration (defaults to the ``indexing`` config section)
            embedder: Embedding provider (defaults to the shared sentence-transformers model)
            watch: Start a watchdog observer on the workspace when enabled
        """
        self.config = dataclasses.replace(config) if config else get_indexing_config()
        self.embedder = embedder
        self.watch = watch

        self.workspace_path: Optional[Path] = None
        self.index_path: Optional[Path] = None
        self.last_error: Optional[str] = None

        self._snapshot = IndexSnapshot(index=None, catalog=DocumentCatalog())
        self._labels = LabelAllocator()
        self._state = IndexState.UNINITIALIZED
        self._enabled = True

        self._write_lock = threading.RLock()
        self._build_thread: Optional[threading.Thread] = None

        self._watcher: Optional[WorkspaceWatcher] = None
        self._events: queue.Queue = queue.Queue()
        self._pending: dict[str, str] = {}
        self._pending_lock = threading.Lock()
        self._deadline: Optional[float] = None
        self._worker: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> IndexState:
        if self._state in (IndexState.UNINITIALIZED, IndexState.LOADING_MODEL, IndexState.FAILED):
            return self._state
        if not self._enabled and self._state == IndexState.READY:
            return IndexState.DISABLED
        return self._state

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def is_indexing(self) -> bool:
        return self._state in (IndexState.BUILDING_INDEX, IndexState.REINDEXING)

    @property
    def is_available(self) -> bool:
        """True when searches can be served (possibly against a partial index)."""
        return (
            self._enabled
            and self._index is not None
            and self._state not in (IndexState.UNINITIALIZED, IndexState.LOADING_MODEL, IndexState.FAILED)
        )

    def _set_state(self, state: IndexState) -> None:
        if state != self._state:
            logger.debug("State %s -> %s", self._state.value, state.value)
        self._state = state

    @property
    def catalog(self) -> DocumentCatalog:
        """The published catalog. Treat as read-only."""
        return self._snapshot.catalog

    @property
    def _index(self) -> Optional[VectorIndex]:
        return self._snapshot.index

    @property
    def _catalog(self) -> DocumentCatalog:
        return self._snapshot.catalog

    def _publish(self, index: Optional[VectorIndex], catalog: DocumentCatalog) -> None:
        # Caller holds the write lock.
        self._snapshot = IndexSnapshot(index=index, catalog=catalog)

    @property
    def _index_file(self) -> Path:
        return self.index_path / INDEX_FILE

    @property
    def _metadata_file(self) -> Path:
        return self.index_path / METADATA_FILE

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(
        self,
        workspace_path,
        storage_path,
        background: bool = True,
        build_missing: bool = True,
    ) -> bool:
        """Load the embedding model and the persisted index, or start a build.

        The call does not wait for a build: the index is searchable (empty
        at first) while the build runs in a background thread. With
        ``background=False`` the build runs inline, which the CLI and tests use.
        With ``build_missing=False`` a missing or incompatible index is replaced
        by an empty one and nothing is built, for callers that are about to
        reindex or clear anyway.

        Returns:
            False when the embedding model failed to load (indexing disabled)
        """
        workspace = validate_directory(workspace_path, "workspace_path")
        if not workspace.is_dir():
            raise ValidationError(f"Invalid workspace_path: {workspace} does not exist")
        storage = validate_directory(storage_path, "storage_path")

        logger.info("Initializing index for %s", workspace)
        self.stop_watcher()
        self.workspace_path = workspace
        self.index_path = storage / INDEX_DIR_NAME
        self.index_path.mkdir(parents=True, exist_ok=True)

        self._set_state(IndexState.LOADING_MODEL)
        if not self._load_embedding_model():
            return False

        if self.load_index():
            self._set_state(IndexState.INDEX_LOADED)
            self._set_state(IndexState.READY)
        else:
            with self._write_lock:
                self._publish(self._new_index(), DocumentCatalog())
                self._labels = LabelAllocator()
            if self._enabled and build_missing:
                self._start_build(IndexState.BUILDING_INDEX, background, reset=False)
            else:
                self._set_state(IndexState.READY)

        if self._enabled:
            self.start_watcher()

        logger.info("Initialized successfully%s", " (indexing in background)" if self.is_indexing else "")
        return True

    def _load_embedding_model(self) -> bool:
        if self.embedder is None:
            self.embedder = get_embedder(self.config.embedding_model)
        try:
            self.embedder.load()
        except EmbeddingModelError as e:
            logger.error("Failed to load embedding model, indexing disabled: %s", e)
            self.last_error = str(e)
            self._set_state(IndexState.FAILED)
            return False

        self.config.embedding_model = self.embedder.model_name
        if self.embedder.dimension != self.config.embedding_dim:
            logger.warning(
                "Configured embedding_dim %s does not match model dimension %s; using the model's",
                self.config.embedding_dim,
                self.embedder.dimension,
            )
            self.config.embedding_dim = self.embedder.dimension
        return True

    def shutdown(self) -> None:
        """Stop the watcher and persist a non-empty index."""
        logger.info("Shutting down")
        self.stop_watcher()
        self.wait_until_idle(timeout=None)
        with self._write_lock:
            if self._index is not None and len(self._catalog) > 0:
                self.save_index()
        logger.info("Shutdown complete")

    def wait_until_idle(self, timeout: Optional[float] = None) -> bool:
        """Wait for a background build to finish. Returns False on timeout."""
        thread = self._build_thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _new_index(self) -> VectorIndex:
        return VectorIndex.create(
            self.config.embedding_dim,
            capacity=self.config.initial_capacity,
            m=self.config.hnsw_m,
            ef_construction=self.config.ef_construction,
            ef_search=self.config.ef_search,
        )

    def load_index(self) -> bool:
        """Load ``index.bin`` + ``metadata.json`` if both exist and match the config."""
        try:
            catalog, metadata = read_metadata(self._metadata_file)
            if not metadata.is_compatible(self.config.to_dict()):
                logger.info("Persisted index was built with another configuration, rebuilding")
                return False
            index = VectorIndex.load(
                self._index_file,
                self.config.embedding_dim,
                capacity=self.config.initial_capacity,
                ef_search=self.config.ef_search,
            )
        except IndexLoadError as e:
            logger.info("No usable persisted index: %s", e)
            return False

        stored = index.labels()
        missing = catalog.labels() - stored
        if missing:
            logger.warning(
                "Catalog references %s labels missing from the vector index; "
                "they are ignored until the next rebuild",
                len(missing),
            )
        next_label = max(metadata.next_label, max(stored, default=-1) + 1)

        with self._write_lock:
            self._publish(index, catalog)
            self._labels = LabelAllocator(next_label)

        logger.info("Index loaded (%s documents, %s chunks)", len(catalog), catalog.chunk_count)
        return True

    def save_index(self) -> None:
        """Persist the vector index and the catalog."""
        if self._index is None or self.index_path is None:
            raise IndexingError("Index is not initialized")
        with self._write_lock:
            snapshot = self._snapshot
            metadata = IndexMetadata(config=self.config.to_dict(), next_label=self._labels.next_label)
            try:
                snapshot.index.save(self._index_file)
                write_metadata(self._metadata_file, snapshot.catalog, metadata)
            except OSError as e:
                logger.error("Failed to save index: %s", e)
                raise
        logger.info("Index saved")

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def get_file_id(self, file_path) -> str:
        """Workspace-relative path with forward slashes."""
        try:
            return Path(file_path).resolve().relative_to(self.workspace_path).as_posix()
        except ValueError:
            raise ValidationError(f"{file_path} is outside the workspace {self.workspace_path}") from None

    def scan_workspace(self) -> list[Path]:
        return scan_workspace(
            self.workspace_path,
            self.config.extensions,
            self.config.ignore_dirs,
            skip_paths=[self.index_path],
            max_file_size=self.config.max_file_size,
        )

    def is_eligible(self, file_path) -> bool:
        """True when a full scan would pick up ``file_path`` as it is now."""
        path = Path(file_path)
        return path.is_file() and is_eligible(
            path.resolve(),
            self.workspace_path,
            self.config.extensions,
            self.config.ignore_dirs,
            skip_paths=[self.index_path.resolve()],
            max_file_size=self.config.max_file_size,
        )

    def _index_file_into(
        self,
        file_path,
        index: VectorIndex,
        catalog: DocumentCatalog,
        labels: LabelAllocator,
    ) -> DocumentEntry:
        path = Path(file_path).resolve()
        file_id = self.get_file_id(path)
        text = path.read_text(encoding="utf-8")
        pieces = chunk_text(text, self.config.chunk_size, self.config.chunk_overlap)

        embedded = []
        for ordinal, piece in enumerate(pieces):
            try:
                embedded.append((ordinal, piece, self.embedder.embed(piece)))
            except Exception as e:
                logger.error("Failed to embed chunk %s of %s: %s", ordinal, file_id, e)
        if pieces and not embedded:
            raise EmbeddingError(f"No chunk of {file_id} could be embedded")

        chunks = []
        for ordinal, piece, vector in embedded:
            if index.is_full:
                logger.warning("Vector index full at %s vectors, growing", index.capacity)
                index.resize(index.capacity * 2)
            label = labels.allocate()
            index.add(vector, label)
            chunks.append(Chunk(text=piece, ordinal=ordinal, label=label))

        entry = DocumentEntry(file_id=file_id, absolute_path=str(path), chunks=chunks)
        catalog.upsert(entry)
        return entry

    def index_file(self, file_path) -> DocumentEntry:
        """Chunk, embed and add one file, replacing any previous entry."""
        with self._write_lock:
            snapshot = self._snapshot
            if snapshot.index is None:
                raise IndexingError("Index is not initialized")
            catalog = snapshot.catalog.copy()
            entry = self._index_file_into(file_path, snapshot.index, catalog, self._labels)
            self._publish(snapshot.index, catalog)
            return entry

    def remove_file(self, file_path) -> bool:
        """Drop a file from the catalog. Its vectors stay in the index as orphans."""
        file_id = self.get_file_id(file_path)
        with self._write_lock:
            snapshot = self._snapshot
            removed = file_id in snapshot.catalog
            if removed:
                catalog = snapshot.catalog.copy()
                catalog.remove(file_id)
                self._publish(snapshot.index, catalog)
        if removed:
            logger.debug("File removed from index: %s", file_path)
        return removed

    def update_file(self, file_path) -> DocumentEntry:
        """Re-index a file: old chunks are dropped, new ones allocated."""
        with self._write_lock:
            snapshot = self._snapshot
            if snapshot.index is None:
                raise IndexingError("Index is not initialized")
            catalog = snapshot.catalog.copy()
            catalog.remove(self.get_file_id(file_path))
            entry = self._index_file_into(file_path, snapshot.index, catalog, self._labels)
            self._publish(snapshot.index, catalog)
        logger.debug("File updated in index: %s", file_path)
        return entry

    def build_index(self, state: IndexState = IndexState.BUILDING_INDEX) -> dict:
        """Index every eligible workspace file into a new index generation.

        The new index and catalog replace the current ones once every file
        was processed; a failing file is logged and skipped.

        Returns:
            Stats dictionary with files_indexed, files_failed, chunks_created, time_taken
        """
        stats = {"files_indexed": 0, "files_failed": 0, "chunks_created": 0, "time_taken": 0.0}
        if not self._enabled:
            logger.info("Indexing disabled, skipping build")
            return stats

        with self._write_lock:
            self._set_state(state)
            try:
                start_time = time.time()
                index = self._new_index()
                catalog = DocumentCatalog()
                labels = LabelAllocator()

                files = self.scan_workspace()
                logger.info("Starting workspace indexing: %s files found", len(files))

                for file_path in files:
                    try:
                        entry = self._index_file_into(file_path, index, catalog, labels)
                    except Exception as e:
                        stats["files_failed"] += 1
                        logger.error("Failed to index file %s: %s", file_path, e)
                        continue

                    stats["files_indexed"] += 1
                    stats["chunks_created"] += len(entry.chunks)
                    if stats["files_indexed"] % 10 == 0:
                        logger.info(
                            "Indexing progress: %s/%s files (%.1fs)",
                            stats["files_indexed"],
                            len(files),
                            time.time() - start_time,
                        )

                self._publish(index, catalog)
                self._labels = labels
                self.save_index()

                stats["time_taken"] = time.time() - start_time
                logger.info(
                    "Indexing complete: %s files, %s chunks in %.1fs",
                    stats["files_indexed"],
                    stats["chunks_created"],
                    stats["time_taken"],
                )
            finally:
                self._set_state(IndexState.READY)
        return stats

    def _start_build(self, state: IndexState, background: bool, reset: bool) -> bool:
        if self._build_thread is not None and self._build_thread.is_alive():
            logger.warning("Indexing already in progress")
            return False

        def run():
            if reset:
                self.clear_index()
            self.build_index(state)

        self._set_state(state)
        if not background:
            try:
                run()
            finally:
                self._set_state(IndexState.READY)
            return True

        def run_in_background():
            try:
                run()
            except Exception as e:
                logger.error("Background indexing failed: %s", e, exc_info=True)
                self.last_error = str(e)
            finally:
                self._set_state(IndexState.READY)

        self._build_thread = threading.Thread(target=run_in_background, name="ctxgraph-build", daemon=True)
        self._build_thread.start()
        return True

    def reindex(self, background: bool = True) -> bool:
        """Clear the index, rebuild it from the workspace and persist it.

        Returns:
            False when a build is already running
        """
        if self._index is None:
            raise IndexingError("Index is not initialized")
        logger.info("Reindexing workspace")
        return self._start_build(IndexState.REINDEXING, background, reset=True)

    def clear_index(self) -> None:
        """Empty the catalog and replace the vector index with a fresh one."""
        if self.index_path is None:
            raise IndexingError("Index is not initialized")
        logger.info("Clearing index")
        self.stop_watcher()
        with self._write_lock:
            self._publish(self._new_index(), DocumentCatalog())
            self._labels = LabelAllocator()
            self.save_index()
        if self._enabled:
            self.start_watcher()
        logger.info("Index cleared")

    @property
    def orphaned_vectors(self) -> int:
        snapshot = self._snapshot
        if snapshot.index is None:
            return 0
        return max(0, snapshot.index.count - snapshot.catalog.chunk_count)

    def compact(self) -> int:
        """Rebuild the vector index from live labels. Returns vectors dropped."""
        with self._write_lock:
            if self._index is None:
                return 0
            dropped = self.orphaned_vectors
            if dropped:
                logger.info("Compacting vector index (%s orphaned vectors)", dropped)
                snapshot = self._snapshot
                self._publish(snapshot.index.rebuilt(snapshot.catalog.labels()), snapshot.catalog)
            return dropped

    def _maybe_compact(self) -> None:
        ratio = self.config.compact_ratio
        if ratio is None:
            return
        orphans = self.orphaned_vectors
        if orphans and orphans > ratio * max(self._catalog.chunk_count, 1):
            self.compact()

    def process_batch(self, changes: dict[str, str]) -> dict:
        """Apply coalesced file changes, then persist once.

        Args:
            changes: absolute path -> "add" | "change" | "unlink"

        Returns:
            Stats dictionary with updated, removed, failed
        """
        stats = {"updated": 0, "removed": 0, "failed": 0}
        if not changes:
            return stats

        with self._write_lock:
            snapshot = self._snapshot
            if snapshot.index is None:
                logger.warning("Dropping %s file changes: index is not initialized", len(changes))
                return stats

            self._set_state(IndexState.UPDATING)
            try:
                catalog = snapshot.catalog.copy()
                for file_path, kind in changes.items():
                    try:
                        file_id = self.get_file_id(file_path)
                    except ValidationError as e:
                        logger.warning("Ignoring change: %s", e)
                        continue

                    catalog.remove(file_id)
                    if kind == EVENT_UNLINK or not self.is_eligible(file_path):
                        stats["removed"] += 1
                        continue
                    try:
                        self._index_file_into(file_path, snapshot.index, catalog, self._labels)
                        stats["updated"] += 1
                    except Exception as e:
                        stats["failed"] += 1
                        logger.error("Failed to update file %s: %s", file_id, e)

                self._publish(snapshot.index, catalog)
                self._maybe_compact()
                self.save_index()
            finally:
                self._set_state(IndexState.READY)

        logger.info(
            "Index updated: %s updated, %s removed, %s failed",
            stats["updated"],
            stats["removed"],
            stats["failed"],
        )
        return stats

    def sync_with_workspace(self) -> dict:
        """Re-index files modified since they were indexed and drop deleted ones.

        Catches up on changes made while no watcher was running.
        """
        known = {entry.file_id: entry for entry in self._catalog.all()}
        seen = set()
        changes: dict[str, str] = {}

        for path in self.scan_workspace():
            file_id = self.get_file_id(path)
            seen.add(file_id)
            entry = known.get(file_id)
            if entry is None:
                changes[str(path)] = EVENT_ADD
                continue
            try:
                modified = path.stat().st_mtime
                indexed = datetime.fromisoformat(entry.indexed_at).timestamp()
            except (OSError, ValueError):
                changes[str(path)] = EVENT_CHANGE
                continue
            if modified > indexed:
                changes[str(path)] = EVENT_CHANGE

        for file_id, entry in known.items():
            if file_id not in seen:
                changes[entry.absolute_path] = EVENT_UNLINK

        touched = sum(1 for kind in changes.values() if kind != EVENT_UNLINK)
        logger.info("Found %s changed files (%s unchanged)", len(changes), len(seen) - touched)
        return self.process_batch(changes)

    # ------------------------------------------------------------------
    # Watching and debouncing
    # ------------------------------------------------------------------

    def notify(self, kind: str, file_path) -> None:
        """Queue a file-system event (``add``, ``change`` or ``unlink``)."""
        if kind not in (EVENT_ADD, EVENT_CHANGE, EVENT_UNLINK):
            raise ValidationError(f"Unknown file event: {kind}")
        if not self._enabled:
            return
        self._events.put(WatchEvent(kind=kind, path=str(Path(file_path).resolve())))

    def _drain_events(self) -> None:
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                return
            if event is not _STOP:
                self._record(event)

    def _record(self, event: WatchEvent) -> None:
        with self._pending_lock:
            self._pending[event.path] = event.kind
            self._deadline = time.monotonic() + self.config.debounce_seconds

    def _take_due_batch(self) -> Optional[dict[str, str]]:
        with self._pending_lock:
            if not self._pending or self._deadline is None or time.monotonic() < self._deadline:
                return None
            batch = dict(self._pending)
            self._pending.clear()
            self._deadline = None
            return batch

    def _poll_timeout(self) -> float:
        with self._pending_lock:
            if self._deadline is None:
                return 0.5
            return max(0.01, self._deadline - time.monotonic())

    @property
    def pending_changes(self) -> dict[str, str]:
        with self._pending_lock:
            return dict(self._pending)

    def flush_pending(self) -> dict:
        """Process queued and pending changes now, without waiting for the debounce."""
        self._drain_events()
        with self._pending_lock:
            batch = dict(self._pending)
            self._pending.clear()
            self._deadline = None
        return self.process_batch(batch)

    def _worker_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            try:
                event = self._events.get(timeout=self._poll_timeout())
            except queue.Empty:
                event = None

            if event is _STOP:
                continue
            if event is not None:
                self._record(event)
                continue

            batch = self._take_due_batch()
            if not batch or not self._enabled:
                continue
            try:
                self.process_batch(batch)
            except Exception as e:
                logger.error("Failed to process file updates: %s", e, exc_info=True)

    def start_watcher(self) -> None:
        """Start the debounce worker and, when ``watch`` is set, the file observer."""
        if self.workspace_path is None or not self._enabled:
            return
        if self._worker is None:
            self._stop_event = threading.Event()
            self._worker = threading.Thread(
                target=self._worker_loop,
                args=(self._stop_event,),
                name="ctxgraph-watch",
                daemon=True,
            )
            self._worker.start()
        if self.watch and self._watcher is None:
            self._watcher = WorkspaceWatcher(
                self.workspace_path,
                self.notify,
                self.config.extensions,
                self.config.ignore_dirs,
                skip_paths=[self.index_path],
            )
            self._watcher.start()

    def stop_watcher(self) -> None:
        """Stop the observer and the worker. Changes not yet processed are dropped."""
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None
        if self._worker is not None:
            self._stop_event.set()
            self._events.put(_STOP)
            self._worker.join(timeout=5.0)
            self._worker = None

        self._drain_events()
        with self._pending_lock:
            if self._pending:
                logger.debug("Dropping %s pending file changes", len(self._pending))
            self._pending.clear()
            self._deadline = None

    def set_enabled(self, enabled: bool) -> None:
        """Enable or disable indexing. Does not trigger a rebuild."""
        if not isinstance(enabled, bool):
            raise ValidationError("Enabled must be a boolean")
        logger.info("Setting indexing enabled: %s", enabled)
        self._enabled = enabled
        if enabled:
            if self._state != IndexState.FAILED:
                self.start_watcher()
        else:
            self.stop_watcher()

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def search(self, query: str, k: int = 5) -> list[RetrievalResult]:
        """Return the chunks most similar to ``query``, best first.

        Returns an empty list when indexing is disabled, not initialized or
        nothing is indexed yet.
        """
        query = validate_search_query(query)
        k = validate_positive_number(k, "k", MAX_SEARCH_K)

        snapshot = self._snapshot
        index, catalog = snapshot.index, snapshot.catalog
        if not self.is_available or index is None or len(catalog) == 0:
            return []

        vector = self.embedder.embed(query)
        wanted = min(k, self.config.max_neighbors)
        orphans = max(0, index.count - catalog.chunk_count)

        results = []
        for label, distance in index.search(vector, wanted + orphans):
            located = catalog.locate(label)
            if located is None:
                continue
            entry, chunk = located
            results.append(
                RetrievalResult(
                    path=entry.file_id,
                    full_path=entry.absolute_path,
                    text=chunk.text,
                    chunk_ordinal=chunk.ordinal,
                    score=distance_to_score(distance),
                )
            )
            if len(results) >= wanted:
                break
        return results

    def get_stats(self) -> dict:
        """Snapshot of the index state. No side effects."""
        snapshot = self._snapshot
        index, catalog = snapshot.index, snapshot.catalog
        return {
            "enabled": self._enabled,
            "is_indexing": self.is_indexing,
            "is_initialized": index is not None,
            "documents_count": len(catalog),
            "chunks_count": catalog.chunk_count,
            "vectors_count": index.count if index is not None else 0,
            "state": self.state.value,
            "index_path": str(self.index_path) if self.index_path else None,
        }
