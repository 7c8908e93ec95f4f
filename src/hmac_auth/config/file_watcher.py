"""
Debounced watch of a single file

FileWatcher observes the directory of one file with a watchdog observer and
reports changes to that file. Bursts of events are coalesced: every event
restarts a timer, and only when no event arrived for the whole delay is the
last event delivered to the callback, on the timer thread.
"""

import logging
import os
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Union

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

DEFAULT_WATCH_DELAY = 1.0


class FileWatcherEventKind(str, Enum):
    """Kind of change reported for the watched file"""
    CREATED = "created"
    MODIFIED = "modified"
    MOVED = "moved"
    DELETED = "deleted"


@dataclass(frozen=True)
class FileWatcherEvent:
    """
    Change of the watched file

    Attributes:
        kind: Kind of change
        path: Watched path
        new_path: Destination when the file was moved away, otherwise None
    """
    kind: FileWatcherEventKind
    path: str
    new_path: Optional[str] = None


FileWatcherCallback = Callable[[FileWatcherEvent], None]


def _normalize_path(path: Union[str, bytes, Path]) -> str:
    return os.path.normcase(os.path.abspath(os.fsdecode(path)))


class _WatchedFileHandler(FileSystemEventHandler):
    """Translates directory events into events of the watched file"""

    def __init__(self, watcher: 'FileWatcher'):
        super().__init__()
        self._watcher = watcher

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._is_watched(event.src_path):
            self._watcher.notify(FileWatcherEventKind.CREATED)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._is_watched(event.src_path):
            self._watcher.notify(FileWatcherEventKind.MODIFIED)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._is_watched(event.src_path):
            self._watcher.notify(FileWatcherEventKind.DELETED)

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        if self._is_watched(event.src_path):
            self._watcher.notify(FileWatcherEventKind.MOVED, os.fsdecode(event.dest_path))
        elif self._is_watched(event.dest_path):
            # Another file replaced the watched one
            self._watcher.notify(FileWatcherEventKind.CREATED)

    def _is_watched(self, path: Union[str, bytes]) -> bool:
        return bool(path) and _normalize_path(path) == self._watcher.normalized_path


class FileWatcher:
    """
    Debounced watcher of a single file.

    The watcher does nothing until start() is called. close() cancels a
    pending delivery and stops the observer; a timer that fires after
    close() delivers nothing.
    """

    def __init__(self, path: Union[str, Path], callback: FileWatcherCallback, delay: float = DEFAULT_WATCH_DELAY):
        """
        Initialize the watcher.

        Args:
            path: File to watch; its directory must exist when started
            callback: Called with the settled event on the timer thread
            delay: Quiet period in seconds before an event is delivered
        """
        if path is None:
            raise TypeError("The watched path cannot be None")
        if callback is None:
            raise TypeError("The callback cannot be None")
        if delay < 0:
            raise ValueError("The delay cannot be negative")

        self.path = os.path.abspath(os.fsdecode(path))
        self.normalized_path = _normalize_path(path)
        self.callback = callback
        self.delay = delay
        self.event_handler = _WatchedFileHandler(self)

        self._lock = threading.Lock()
        self._observer: Optional[Observer] = None
        self._timer: Optional[threading.Timer] = None
        self._pending: Optional[FileWatcherEvent] = None
        self._generation = 0
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        """Start observing the directory of the watched file."""
        with self._lock:
            if self._closed:
                raise RuntimeError("The file watcher has been closed")
            if self._observer is not None:
                return

            directory = os.path.dirname(self.path)
            observer = Observer()
            observer.schedule(self.event_handler, directory, recursive=False)
            observer.daemon = True
            observer.start()
            self._observer = observer

        logger.debug(f"Watching {self.path} (delay {self.delay}s)")

    def notify(self, kind: FileWatcherEventKind, new_path: Optional[str] = None) -> None:
        """
        Record a change of the watched file and restart the quiet period.

        Args:
            kind: Kind of change
            new_path: Destination of a move
        """
        event = FileWatcherEvent(kind=kind, path=self.path, new_path=new_path)

        with self._lock:
            if self._closed:
                return
            if self._timer is not None:
                self._timer.cancel()

            self._pending = event
            self._generation += 1
            timer = threading.Timer(self.delay, self._deliver, args=(self._generation,))
            timer.daemon = True
            self._timer = timer
            timer.start()

    def close(self) -> None:
        """Cancel any pending delivery and stop the observer."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._pending = None
            observer = self._observer
            self._observer = None

        if observer is not None:
            observer.unschedule_all()
            observer.stop()
            if observer is not threading.current_thread():
                observer.join()

        logger.debug(f"Stopped watching {self.path}")

    def _deliver(self, generation: int) -> None:
        with self._lock:
            if self._closed or generation != self._generation or self._pending is None:
                return
            event = self._pending
            self._pending = None
            self._timer = None

        try:
            self.callback(event)
        except Exception:
            logger.exception(f"File watcher callback failed for {event.kind.value} event on {event.path}")

    def __enter__(self) -> 'FileWatcher':
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
