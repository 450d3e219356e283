"""
File system watcher for codescope.

Collects change notifications for source files and, once changes settle,
asks the sync engine to bring the index up to date. The watcher decides
only when to sync; what to re-index is the engine's job.
"""

import logging
import threading
import time
from pathlib import Path
from typing import Callable, Optional
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .languages import SupportedLanguage
from .models import SyncReport
from .sync import SyncEngine
from .walker import FileWalker

logger = logging.getLogger(__name__)


class SourceChangeHandler(FileSystemEventHandler):
    """
    Event handler that records which source files changed.

    Events for unsupported extensions and ignored directories are dropped.
    """

    def __init__(self, root: Path, walker: FileWalker, debounce_seconds: float = 1.0):
        """
        Initialize the change handler.

        Args:
            root: Watched root directory
            walker: Supplies the ignore rules
            debounce_seconds: Quiet period required before changes are released
        """
        super().__init__()
        self.root = Path(root).resolve()
        self.walker = walker
        self.debounce_seconds = debounce_seconds

        self._pending: dict[str, str] = {}  # relative path -> event type
        self._last_event_time = 0.0
        self._lock = threading.Lock()

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._queue_change(event.src_path, "created")

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._queue_change(event.src_path, "modified")

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._queue_change(event.src_path, "deleted")

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._queue_change(event.src_path, "deleted")
        dest = getattr(event, "dest_path", None)
        if dest:
            self._queue_change(dest, "created")

    def _queue_change(self, path: str, event_type: str) -> None:
        try:
            rel_path = Path(path).resolve().relative_to(self.root).as_posix()
        except ValueError:
            return

        if SupportedLanguage.from_path(rel_path) is None or self.walker.is_ignored(rel_path):
            return

        with self._lock:
            self._pending[rel_path] = event_type
            self._last_event_time = time.monotonic()
        logger.debug(f"Queued {event_type} event for {rel_path}")

    @property
    def has_pending(self) -> bool:
        with self._lock:
            return bool(self._pending)

    def take_ready_changes(self, now: Optional[float] = None) -> dict[str, str]:
        """
        Return and clear pending changes once the debounce period has passed.

        Args:
            now: Current monotonic time (defaults to time.monotonic())

        Returns:
            Pending changes by relative path, or an empty dict while events
            are still arriving
        """
        now = time.monotonic() if now is None else now
        with self._lock:
            if not self._pending or now - self._last_event_time < self.debounce_seconds:
                return {}
            changes = dict(self._pending)
            self._pending.clear()
        return changes


class FileWatcher:
    """
    Watches a root directory and re-syncs its index after changes settle.

    Uses watchdog for notifications; each settled batch of changes triggers
    one SyncEngine.sync() call.
    """

    def __init__(
        self,
        engine: SyncEngine,
        root: Path,
        debounce_seconds: float = 1.0,
        on_sync: Optional[Callable[[SyncReport], None]] = None,
    ):
        """
        Initialize the file watcher.

        Args:
            engine: Engine used for each sync
            root: Directory to watch
            debounce_seconds: Quiet period before a sync is triggered
            on_sync: Optional callback receiving each SyncReport
        """
        self.engine = engine
        self.root = Path(root).resolve()
        self.on_sync = on_sync
        self.handler = SourceChangeHandler(self.root, engine.walker, debounce_seconds)
        self.observer: Optional[Observer] = None
        self._running = False

    def poll(self) -> Optional[SyncReport]:
        """
        Sync if settled changes are pending.

        Returns:
            The SyncReport of the triggered run, or None if nothing ran
        """
        changes = self.handler.take_ready_changes()
        if not changes:
            return None

        logger.info(f"Processing {len(changes)} changed files under {self.root}")
        try:
            report = self.engine.sync(self.root)
        except Exception as e:
            logger.error(f"Sync after file changes failed: {e}")
            return None

        if self.on_sync:
            self.on_sync(report)
        return report

    def start(self, poll_interval: float = 0.2) -> None:
        """
        Watch until stop() is called or the process is interrupted.

        Blocks the calling thread.
        """
        if self._running:
            logger.warning("Watcher is already running")
            return
        if not self.root.is_dir():
            raise ValueError(f"Path is not a directory: {self.root}")

        self.observer = Observer()
        self.observer.schedule(self.handler, str(self.root), recursive=True)
        self.observer.start()
        self._running = True
        logger.info(f"Watching {self.root} for changes")

        try:
            while self._running:
                time.sleep(poll_interval)
                self.poll()
        except KeyboardInterrupt:
            logger.info("Interrupted")
        finally:
            self.stop()

    def stop(self) -> None:
        """Stop the file watcher."""
        self._running = False
        if self.observer:
            self.observer.stop()
            self.observer.join()
            self.observer = None
            logger.info("File watcher stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    def __repr__(self) -> str:
        """String representation."""
        status = "running" if self._running else "stopped"
        return f"FileWatcher({self.root}, {status})"
