"""
Tests for change notification handling and watcher-triggered syncs.
"""

import pytest
from watchdog.events import (
    DirModifiedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from codescope.sync import SyncEngine
from codescope.walker import FileWalker
from codescope.watcher import FileWatcher, SourceChangeHandler


@pytest.fixture
def handler(temp_dir):
    """Create a change handler with a one-second debounce."""
    return SourceChangeHandler(temp_dir, FileWalker(exclude=["generated/"]), debounce_seconds=1.0)


class TestSourceChangeHandler:
    """Test suite for SourceChangeHandler."""

    def test_queues_source_files(self, handler, temp_dir):
        """Events for supported files are queued by relative path."""
        handler.on_modified(FileModifiedEvent(str(temp_dir / "src" / "lib.rs")))
        handler.on_created(FileCreatedEvent(str(temp_dir / "main.go")))

        changes = handler.take_ready_changes(now=float("inf"))

        assert changes == {"src/lib.rs": "modified", "main.go": "created"}

    def test_ignores_unsupported_and_ignored(self, handler, temp_dir):
        """Other extensions, ignored directories and directory events are dropped."""
        handler.on_modified(FileModifiedEvent(str(temp_dir / "README.md")))
        handler.on_modified(FileModifiedEvent(str(temp_dir / "target" / "out.rs")))
        handler.on_modified(FileModifiedEvent(str(temp_dir / ".codescope" / "state.py")))
        handler.on_modified(FileModifiedEvent(str(temp_dir / "generated" / "api.py")))
        handler.on_modified(DirModifiedEvent(str(temp_dir / "src")))

        assert not handler.has_pending

    def test_outside_root_ignored(self, handler, temp_dir):
        """Events outside the watched root are dropped."""
        handler.on_modified(FileModifiedEvent(str(temp_dir.parent / "elsewhere.py")))

        assert not handler.has_pending

    def test_move_is_delete_plus_create(self, handler, temp_dir):
        """A rename queues the old path as deleted and the new one as created."""
        handler.on_moved(FileMovedEvent(str(temp_dir / "old.py"), str(temp_dir / "new.py")))

        changes = handler.take_ready_changes(now=float("inf"))

        assert changes == {"old.py": "deleted", "new.py": "created"}

    def test_debounce(self, handler, temp_dir):
        """Changes are held back until the debounce period has passed."""
        handler.on_deleted(FileDeletedEvent(str(temp_dir / "gone.py")))
        last_event = handler._last_event_time

        assert handler.take_ready_changes(now=last_event + 0.5) == {}
        assert handler.has_pending

        assert handler.take_ready_changes(now=last_event + 1.5) == {"gone.py": "deleted"}
        assert not handler.has_pending

    def test_latest_event_wins(self, handler, temp_dir):
        """Repeated events for one file collapse to the latest."""
        path = str(temp_dir / "a.py")
        handler.on_created(FileCreatedEvent(path))
        handler.on_modified(FileModifiedEvent(path))

        assert handler.take_ready_changes(now=float("inf")) == {"a.py": "modified"}


class TestFileWatcher:
    """Test suite for FileWatcher."""

    def test_poll_without_changes(self, recording_store, fake_embedder, config, sample_codebase):
        """Nothing pending means no sync."""
        engine = SyncEngine(recording_store, fake_embedder, config)
        watcher = FileWatcher(engine, sample_codebase, debounce_seconds=0.0)

        assert watcher.poll() is None

    def test_poll_syncs_settled_changes(self, recording_store, fake_embedder, config, sample_codebase):
        """Settled changes trigger one sync and the callback."""
        engine = SyncEngine(recording_store, fake_embedder, config)
        engine.sync(sample_codebase)
        reports = []
        watcher = FileWatcher(engine, sample_codebase, debounce_seconds=0.0, on_sync=reports.append)

        new_file = sample_codebase / "app" / "extra.py"
        new_file.write_text("def extra():\n    return 1\n")
        watcher.handler.on_created(FileCreatedEvent(str(new_file)))

        report = watcher.poll()

        assert report is not None
        assert report.added == ["app/extra.py"]
        assert reports == [report]
        assert watcher.poll() is None

    def test_sync_errors_are_logged(self, fake_embedder, config, sample_codebase, recording_store):
        """A failing sync does not stop the watcher."""
        recording_store.fail_create = True
        engine = SyncEngine(recording_store, fake_embedder, config)
        watcher = FileWatcher(engine, sample_codebase, debounce_seconds=0.0)
        watcher.handler.on_modified(FileModifiedEvent(str(sample_codebase / "pkg" / "point.go")))

        assert watcher.poll() is None

    def test_repr(self, recording_store, fake_embedder, config, sample_codebase):
        """The watcher reports whether it is running."""
        watcher = FileWatcher(SyncEngine(recording_store, fake_embedder, config), sample_codebase)

        assert not watcher.is_running
        assert "stopped" in repr(watcher)
