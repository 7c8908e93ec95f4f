"""
Test suite for the debounced file watcher and watched configuration stores

Debounce behavior is tested by dispatching watchdog events straight into the
watcher's event handler; store reloads are tested against the real file
system with a short quiet period.
"""

import json
import logging
import os
import threading
import time
from unittest.mock import Mock

import pytest
from watchdog.events import (
    DirModifiedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from hmac_auth.config import (
    FileWatcher,
    FileWatcherEvent,
    FileWatcherEventKind,
    HmacConfigurationStore,
)
from hmac_auth.exceptions import ConfigurationParseError

DELAY = 0.1
TIMEOUT = 5.0


def wait_until(predicate, timeout=TIMEOUT):
    """Poll a predicate until it holds or the timeout expires"""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


def document(*names, scheme="HMAC"):
    return json.dumps({"configurations": [{"name": name, "authorizationScheme": scheme} for name in names]})


class RecordingCallback:
    """Callback collecting delivered events"""

    def __init__(self):
        self.events = []
        self.delivered = threading.Event()

    def __call__(self, event):
        self.events.append(event)
        self.delivered.set()


class TestFileWatcherDebounce:
    """Test event coalescing without a running observer"""

    @pytest.fixture
    def watched_path(self, tmp_path):
        return str(tmp_path / "hmac.json")

    @pytest.fixture
    def callback(self):
        return RecordingCallback()

    @pytest.fixture
    def watcher(self, watched_path, callback):
        watcher = FileWatcher(watched_path, callback, delay=DELAY)
        yield watcher
        watcher.close()

    def test_burst_delivers_once(self, watcher, watched_path, callback):
        """Test a burst of events results in a single delivery"""
        for _ in range(5):
            watcher.event_handler.dispatch(FileModifiedEvent(watched_path))

        assert callback.delivered.wait(TIMEOUT)
        time.sleep(DELAY * 3)
        assert callback.events == [
            FileWatcherEvent(FileWatcherEventKind.MODIFIED, watcher.path)
        ]

    def test_last_event_wins(self, watcher, watched_path, callback):
        """Test the settled state is the last event of a burst"""
        watcher.event_handler.dispatch(FileModifiedEvent(watched_path))
        watcher.event_handler.dispatch(FileDeletedEvent(watched_path))

        assert callback.delivered.wait(TIMEOUT)
        assert [event.kind for event in callback.events] == [FileWatcherEventKind.DELETED]

    def test_timer_reset_on_every_event(self, tmp_path, callback):
        """Test events keep postponing delivery until things are quiet"""
        path = str(tmp_path / "hmac.json")
        watcher = FileWatcher(path, callback, delay=0.3)
        try:
            start = time.monotonic()
            for _ in range(4):
                watcher.event_handler.dispatch(FileModifiedEvent(path))
                time.sleep(0.15)

            assert callback.delivered.wait(TIMEOUT)
            assert time.monotonic() - start >= 0.6
            assert len(callback.events) == 1
        finally:
            watcher.close()

    def test_move_away(self, watcher, watched_path, callback, tmp_path):
        """Test moving the file away reports the destination"""
        destination = str(tmp_path / "renamed.json")
        watcher.event_handler.dispatch(FileMovedEvent(watched_path, destination))

        assert callback.delivered.wait(TIMEOUT)
        event = callback.events[0]
        assert event.kind == FileWatcherEventKind.MOVED
        assert event.new_path == destination

    def test_move_onto(self, watcher, watched_path, callback, tmp_path):
        """Test a file moved onto the watched path is reported as created"""
        watcher.event_handler.dispatch(FileMovedEvent(str(tmp_path / "tmp.json"), watched_path))

        assert callback.delivered.wait(TIMEOUT)
        assert callback.events[0].kind == FileWatcherEventKind.CREATED

    def test_other_files_ignored(self, watcher, callback, tmp_path):
        """Test events of other files and directories are ignored"""
        watcher.event_handler.dispatch(FileModifiedEvent(str(tmp_path / "other.json")))
        watcher.event_handler.dispatch(FileCreatedEvent(str(tmp_path / "other.json")))
        watcher.event_handler.dispatch(DirModifiedEvent(str(tmp_path)))

        assert not callback.delivered.wait(DELAY * 4)

    def test_close_cancels_pending_delivery(self, watcher, watched_path, callback):
        """Test closing drops an event that has not been delivered yet"""
        watcher.event_handler.dispatch(FileModifiedEvent(watched_path))
        watcher.close()

        assert not callback.delivered.wait(DELAY * 4)
        assert watcher.is_closed

    def test_events_after_close_ignored(self, watcher, watched_path, callback):
        """Test events arriving after close are ignored"""
        watcher.close()
        watcher.event_handler.dispatch(FileModifiedEvent(watched_path))

        assert not callback.delivered.wait(DELAY * 4)

    def test_callback_errors_are_logged(self, watched_path, caplog):
        """Test a failing callback does not break the watcher"""
        callback = Mock(side_effect=RuntimeError("boom"))
        watcher = FileWatcher(watched_path, callback, delay=DELAY)
        try:
            watcher.notify(FileWatcherEventKind.MODIFIED)
            assert wait_until(lambda: callback.called)
            assert wait_until(lambda: "callback failed" in caplog.text)
        finally:
            watcher.close()

    def test_invalid_arguments(self, watched_path):
        """Test invalid constructor arguments"""
        with pytest.raises(TypeError):
            FileWatcher(None, Mock())
        with pytest.raises(TypeError):
            FileWatcher(watched_path, None)
        with pytest.raises(ValueError):
            FileWatcher(watched_path, Mock(), delay=-1)


class TestFileWatcherObserver:
    """Test the watcher against the real file system"""

    def test_detects_modification(self, tmp_path):
        """Test writing the file is detected"""
        path = tmp_path / "hmac.json"
        path.write_text("{}", encoding="utf-8")
        callback = RecordingCallback()

        with FileWatcher(path, callback, delay=DELAY):
            time.sleep(DELAY)
            path.write_text('{"changed": true}', encoding="utf-8")
            assert callback.delivered.wait(TIMEOUT)

        assert callback.events[-1].kind in (FileWatcherEventKind.MODIFIED, FileWatcherEventKind.CREATED)


class TestWatchedStore:
    """Test stores reloading watched files"""

    @pytest.fixture
    def path(self, tmp_path):
        path = tmp_path / "hmac.json"
        path.write_text(document("first"), encoding="utf-8")
        return path

    @pytest.fixture
    def store(self):
        store = HmacConfigurationStore(watch_delay=DELAY)
        yield store
        store.close()

    def test_reload_on_change(self, store, path):
        """Test changes to the file are picked up"""
        assert store.load_from_file_and_watch(path)
        assert store.contains("first")

        path.write_text(document("second"), encoding="utf-8")

        assert wait_until(lambda: store.contains("second"))
        assert not store.contains("first")

    def test_failed_reload_keeps_snapshot(self, path):
        """Test a broken file leaves the previous configurations active"""
        on_error = Mock()
        with HmacConfigurationStore(on_error=on_error, watch_delay=DELAY) as store:
            store.load_from_file_and_watch(path)
            path.write_text("{broken", encoding="utf-8")

            assert wait_until(lambda: on_error.called)
            assert isinstance(on_error.call_args[0][0], ConfigurationParseError)
            assert store.contains("first")

    def test_watch_reload_errors_logged_without_handler(self, store, path, caplog):
        """Test reload failures are logged when no error handler is set"""
        store.load_from_file_and_watch(path)
        path.write_text("{broken", encoding="utf-8")

        assert wait_until(lambda: "Failed to reload configurations" in caplog.text)
        assert store.contains("first")

    def test_delete_keeps_snapshot(self, store, path):
        """Test deleting the file keeps the configurations until it is recreated"""
        store.load_from_file_and_watch(path)
        os.remove(path)
        time.sleep(DELAY * 5)
        assert store.contains("first")

        path.write_text(document("recreated"), encoding="utf-8")
        assert wait_until(lambda: store.contains("recreated"))

    def test_move_retargets_watch(self, store, path, tmp_path):
        """Test a moved file is followed and loaded from its new path"""
        store.load_from_file_and_watch(path)
        destination = tmp_path / "moved.json"
        destination_path = os.path.abspath(str(destination))

        store.watcher.event_handler.dispatch(FileMovedEvent(str(path), str(destination)))
        os.replace(path, destination)

        assert wait_until(lambda: store.watched_path == destination_path)
        destination.write_text(document("after-move"), encoding="utf-8")
        assert wait_until(lambda: store.contains("after-move"))

    def test_replace_by_move(self, store, path, tmp_path):
        """Test a file moved onto the watched path is loaded"""
        store.load_from_file_and_watch(path)
        staging = tmp_path / "staging.json"
        staging.write_text(document("atomic"), encoding="utf-8")

        os.replace(staging, path)

        assert wait_until(lambda: store.contains("atomic"))

    def test_close_stops_watching(self, path):
        """Test changes after close are not loaded and the watcher is released"""
        store = HmacConfigurationStore(watch_delay=DELAY)
        store.load_from_file_and_watch(path)
        watcher = store.watcher

        store.close()
        path.write_text(document("too-late"), encoding="utf-8")
        time.sleep(DELAY * 5)

        assert watcher.is_closed
        assert store.watcher is None
        assert store.is_closed

    def test_watch_replaces_previous_watch(self, store, path, tmp_path):
        """Test only the most recently watched file is followed"""
        other = tmp_path / "other.json"
        other.write_text(document("other"), encoding="utf-8")

        store.load_from_file_and_watch(path)
        first_watcher = store.watcher
        store.load_from_file_and_watch(other)

        assert first_watcher.is_closed
        assert store.contains("other")

        path.write_text(document("ignored"), encoding="utf-8")
        other.write_text(document("followed"), encoding="utf-8")
        assert wait_until(lambda: store.contains("followed"))
        assert not store.contains("ignored")


class TestWatchReloadRaces:
    """Test watch reloads that finish after the store changed"""

    @pytest.fixture
    def store(self, caplog):
        caplog.set_level(logging.DEBUG, logger="hmac_auth.config.store")
        store = HmacConfigurationStore(watch_delay=DELAY)
        yield store
        store.close()

    @pytest.fixture
    def first(self, tmp_path):
        path = tmp_path / "a.json"
        path.write_text(document("from-a"), encoding="utf-8")
        return path

    def hold_watch_parse(self, store):
        """Make parses on the watch thread wait until released"""
        parsing = threading.Event()
        release = threading.Event()
        parse_file = store._parse_file

        def held_parse(path, format):
            if threading.current_thread() is not threading.main_thread():
                parsing.set()
                assert release.wait(TIMEOUT)
            return parse_file(path, format)

        store._parse_file = held_parse
        return parsing, release

    def test_retarget_wins_over_pending_reload(self, store, first, tmp_path, caplog):
        """Test a reload of the old file does not replace the newly watched one"""
        second = tmp_path / "b.json"
        second.write_text(document("from-b"), encoding="utf-8")
        store.load_from_file_and_watch(first)
        parsing, release = self.hold_watch_parse(store)

        store.watcher.notify(FileWatcherEventKind.MODIFIED)
        assert parsing.wait(TIMEOUT)
        store.load_from_file_and_watch(second)
        release.set()

        assert wait_until(lambda: "Dropping reload" in caplog.text)
        assert store.watched_path == os.path.abspath(str(second))
        assert sorted(store.names()) == ["default", "from-b"]

    def test_synchronous_load_wins_over_pending_reload(self, store, first, caplog):
        """Test a load made while a watch reload parses is kept"""
        store.load_from_file_and_watch(first)
        parsing, release = self.hold_watch_parse(store)

        store.watcher.notify(FileWatcherEventKind.MODIFIED)
        assert parsing.wait(TIMEOUT)
        store.load_from_string(document("from-string"), "json")
        release.set()

        assert wait_until(lambda: "Dropping reload" in caplog.text)
        assert sorted(store.names()) == ["default", "from-string"]

    def test_reload_applies_without_concurrent_change(self, store, first):
        """Test an undisturbed watch reload still replaces the snapshot"""
        store.load_from_file_and_watch(first)
        first.write_text(document("updated"), encoding="utf-8")

        store.watcher.notify(FileWatcherEventKind.MODIFIED)

        assert wait_until(lambda: store.contains("updated"))
        assert not store.contains("from-a")
