"""
Hot-reloadable store of named HMAC configurations

The store holds one snapshot of name -> configuration. Every read returns a
deep copy and every reload replaces the whole snapshot at once: sources are
parsed completely before the lock is taken, so a failed parse leaves the
previous snapshot in place and readers never see a partial map.
"""

import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from ..exceptions import (
    ConfigurationNotFoundError,
    ConfigurationParseError,
    ConfigurationStoreClosedError,
)
from .file_watcher import DEFAULT_WATCH_DELAY, FileWatcher, FileWatcherEvent, FileWatcherEventKind
from .hmac_configuration import DEFAULT_CONFIGURATION_NAME, HmacConfiguration
from .parsers import format_from_path, parse_configurations, parse_section

logger = logging.getLogger(__name__)

ErrorHandler = Callable[[ConfigurationParseError], None]


class HmacConfigurationStore:
    """
    Thread-safe store of named configurations with optional file watching.

    Example:
        >>> store = HmacConfigurationStore()
        >>> store.load_from_file_and_watch("hmac.json")
        >>> configuration = store.get("partner-api")
        >>> store.close()
    """

    def __init__(
        self,
        default_name: str = DEFAULT_CONFIGURATION_NAME,
        on_error: Optional[ErrorHandler] = None,
        watch_delay: float = DEFAULT_WATCH_DELAY
    ):
        """
        Initialize an empty store.

        Args:
            default_name: Name of the default configuration
            on_error: Receives parse errors instead of them being raised
                (synchronous loads) or logged (watch-triggered reloads)
            watch_delay: Quiet period in seconds before a file change is reloaded
        """
        if not default_name:
            raise ValueError("The default configuration name cannot be empty")

        self.default_name = default_name
        self.on_error = on_error
        self.watch_delay = watch_delay

        self._lock = threading.RLock()
        self._configurations: Dict[str, HmacConfiguration] = {}
        self._watcher: Optional[FileWatcher] = None
        self._watched_path: Optional[str] = None
        self._watched_format: Optional[str] = None
        # Bumped on every snapshot swap; watch reloads started before a swap are dropped
        self._generation = 0
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def watched_path(self) -> Optional[str]:
        """Path of the watched file, or None when not watching"""
        with self._lock:
            return self._watched_path

    @property
    def watcher(self) -> Optional[FileWatcher]:
        with self._lock:
            return self._watcher

    def get_default(self) -> HmacConfiguration:
        """Get a copy of the default configuration."""
        return self.get(self.default_name)

    def get(self, name: Optional[str] = None) -> HmacConfiguration:
        """
        Get a copy of a configuration.

        Args:
            name: Configuration name; None selects the default

        Returns:
            HmacConfiguration: Deep copy of the stored configuration

        Raises:
            ConfigurationNotFoundError: If no configuration has the name
            ConfigurationStoreClosedError: If the store has been closed
        """
        configuration = self.try_get(name)
        if configuration is None:
            raise ConfigurationNotFoundError(name)
        return configuration

    def try_get(self, name: Optional[str] = None) -> Optional[HmacConfiguration]:
        """Get a copy of a configuration, or None when the name is unknown."""
        with self._lock:
            self._check_open()
            self._ensure_default()
            configuration = self._configurations.get(name if name is not None else self.default_name)
            return configuration.clone() if configuration is not None else None

    def contains(self, name: str) -> bool:
        """Check whether a configuration with the name exists."""
        with self._lock:
            self._check_open()
            self._ensure_default()
            return name in self._configurations

    def names(self) -> List[str]:
        """Get the names of all configurations."""
        with self._lock:
            self._check_open()
            self._ensure_default()
            return list(self._configurations)

    def load_from_string(self, text: str, format: str = 'json') -> bool:
        """
        Replace all configurations with those of a document.

        Args:
            text: Document text
            format: Document format ("json", "xml", "yaml" or a registered format)

        Returns:
            bool: True when the store was reloaded, False when a parse error
            was passed to on_error

        Raises:
            ConfigurationParseError: If the document is invalid and no
                on_error handler is set
        """
        self._check_open()
        try:
            configurations = parse_configurations(text, format, self.default_name)
        except ConfigurationParseError as e:
            self._handle_parse_error(e, synchronous=True)
            return False

        self._replace(configurations, f"{format} string")
        return True

    def load_from_file(self, path: Union[str, Path], format: Optional[str] = None) -> bool:
        """
        Replace all configurations with those of a file.

        Args:
            path: Document path
            format: Document format; inferred from the suffix when None

        Returns:
            bool: True when the store was reloaded, False when a parse error
            was passed to on_error
        """
        self._check_open()
        format = format or format_from_path(path)
        try:
            configurations = self._parse_file(path, format)
        except ConfigurationParseError as e:
            self._handle_parse_error(e, synchronous=True)
            return False

        self._replace(configurations, str(path))
        return True

    def load_from_file_and_watch(self, path: Union[str, Path], format: Optional[str] = None) -> bool:
        """
        Load a file and reload it whenever it changes.

        A file moved away is followed to its new path, a deleted file is
        ignored until it is created again. Only one file is watched at a
        time; watching a new file stops the previous watch.

        Args:
            path: Document path
            format: Document format; inferred from the suffix when None

        Returns:
            bool: Result of the initial load
        """
        format = format or format_from_path(path)
        loaded = self.load_from_file(path, format)
        self._watch(str(path), format)
        return loaded

    def load_from_section(self, section: Mapping[str, Any]) -> bool:
        """
        Replace all configurations with those of an already decoded mapping.

        Args:
            section: Mapping with a "configurations" list, as found in the
                host application's settings

        Returns:
            bool: True when the store was reloaded, False when a parse error
            was passed to on_error
        """
        self._check_open()
        try:
            configurations = parse_section(section, self.default_name)
        except ConfigurationParseError as e:
            self._handle_parse_error(e, synchronous=True)
            return False

        self._replace(configurations, "section")
        return True

    def close(self) -> None:
        """Stop watching and mark the store closed. Closing twice is allowed."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._stop_watching()
            self._configurations = {}

        logger.debug("Configuration store closed")

    def _watch(self, path: str, format: str) -> None:
        with self._lock:
            self._check_open()
            self._stop_watching()
            watcher = FileWatcher(path, self._on_file_event, self.watch_delay)
            watcher.start()
            self._watcher = watcher
            self._watched_path = watcher.path
            self._watched_format = format

        logger.info(f"Watching configuration file {path}")

    def _stop_watching(self) -> None:
        watcher = self._watcher
        self._watcher = None
        self._watched_path = None
        self._watched_format = None
        if watcher is not None:
            watcher.close()

    def _on_file_event(self, event: FileWatcherEvent) -> None:
        with self._lock:
            if self._closed or event.path != self._watched_path:
                return
            format = self._watched_format

            if event.kind == FileWatcherEventKind.DELETED:
                logger.info(f"Configuration file {event.path} was deleted; keeping the current configurations")
                return

            path = event.path
            if event.kind == FileWatcherEventKind.MOVED and event.new_path:
                logger.info(f"Configuration file moved from {event.path} to {event.new_path}")
                path = event.new_path
                self._stop_watching()
                watcher = FileWatcher(path, self._on_file_event, self.watch_delay)
                watcher.start()
                self._watcher = watcher
                self._watched_path = watcher.path
                self._watched_format = format

            generation = self._generation
            watcher = self._watcher

        try:
            configurations = self._parse_file(path, format)
        except ConfigurationParseError as e:
            self._handle_parse_error(e, synchronous=False)
            return

        with self._lock:
            if self._closed:
                return
            if generation != self._generation or watcher is not self._watcher:
                logger.debug(f"Dropping reload of {path}; the configurations changed while it was parsed")
                return
            self._configurations = configurations
            self._generation += 1

        logger.info(f"Reloaded {len(configurations)} configuration(s) from {path}")

    def _parse_file(self, path: Union[str, Path], format: str) -> Dict[str, HmacConfiguration]:
        try:
            text = Path(path).read_text(encoding='utf-8-sig')
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigurationParseError(
                f"Cannot read configuration file '{path}': {e}",
                details={"path": str(path)}
            ) from e

        return parse_configurations(text, format, self.default_name)

    def _replace(self, configurations: Dict[str, HmacConfiguration], source: str) -> None:
        with self._lock:
            self._check_open()
            self._configurations = configurations
            self._generation += 1

        logger.info(f"Loaded {len(configurations)} configuration(s) from {source}")

    def _ensure_default(self) -> None:
        if self.default_name not in self._configurations:
            self._configurations[self.default_name] = HmacConfiguration(name=self.default_name)

    def _check_open(self) -> None:
        if self._closed:
            raise ConfigurationStoreClosedError()

    def _handle_parse_error(self, error: ConfigurationParseError, synchronous: bool) -> None:
        if self.on_error is not None:
            self.on_error(error)
            return
        if synchronous:
            raise error
        logger.warning(f"Failed to reload configurations: {error}")

    def __enter__(self) -> 'HmacConfigurationStore':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
