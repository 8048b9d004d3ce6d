"""File-system watcher feeding change events to the indexing manager."""

from pathlib import Path
from typing import Callable, Iterable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..logging_config import get_logger
from .scanner import is_eligible

logger = get_logger(__name__)

EVENT_ADD = "add"
EVENT_CHANGE = "change"
EVENT_UNLINK = "unlink"


class IndexEventHandler(FileSystemEventHandler):
    """Translate watchdog events into ``add`` / ``change`` / ``unlink`` notifications."""

    def __init__(
        self,
        root: Path,
        publish: Callable[[str, str], None],
        extensions: Iterable[str],
        ignore_dirs: Iterable[str],
        skip_paths: Iterable[Path] = (),
    ):
        super().__init__()
        self.root = Path(root)
        self.publish = publish
        self.extensions = list(extensions)
        self.ignore_dirs = list(ignore_dirs)
        self.skip_paths = list(skip_paths)

    def _emit(self, kind: str, raw_path) -> None:
        path = Path(raw_path if isinstance(raw_path, str) else raw_path.decode())
        if not is_eligible(path, self.root, self.extensions, self.ignore_dirs, self.skip_paths):
            return
        logger.debug("File %s: %s", kind, path)
        self.publish(kind, str(path))

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._emit(EVENT_ADD, event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._emit(EVENT_CHANGE, event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._emit(EVENT_UNLINK, event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._emit(EVENT_UNLINK, event.src_path)
            self._emit(EVENT_ADD, event.dest_path)


class WorkspaceWatcher:
    """Owns a watchdog observer over the workspace root."""

    def __init__(
        self,
        root: Path | str,
        publish: Callable[[str, str], None],
        extensions: Iterable[str],
        ignore_dirs: Iterable[str],
        skip_paths: Iterable[Path] = (),
    ):
        self.root = Path(root).resolve()
        self.handler = IndexEventHandler(self.root, publish, extensions, ignore_dirs, skip_paths)
        self._observer = None

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        if self._observer is not None:
            return
        logger.info("Starting file watcher on %s", self.root)
        observer = Observer()
        observer.schedule(self.handler, str(self.root), recursive=True)
        observer.start()
        self._observer = observer

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._observer = None
        logger.info("File watcher stopped")
