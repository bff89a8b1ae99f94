"""Watch a logging configuration file and react when it changes."""

from __future__ import annotations

import os
from typing import Any, Callable

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

_TRIGGERING_EVENTS = frozenset({EVENT_TYPE_MODIFIED, EVENT_TYPE_CREATED, EVENT_TYPE_MOVED})


def _normalise(path: Any) -> str:
    return os.path.realpath(os.fsdecode(path))


class _ConfigEventHandler(FileSystemEventHandler):
    def __init__(self, watcher: FileWatcher) -> None:
        super().__init__()
        self._watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        self._watcher._on_event(event)


class FileWatcher:
    """Watches the directory holding a config file and calls back when the file changes.

    The parent directory is watched because the file itself may not exist yet.
    """

    def __init__(self, log: Any, config_file_path: str, replace_logger: Callable[[], Any]) -> None:
        self.log = log
        self.config_file_path = config_file_path
        self.replace_logger = replace_logger
        self._target = _normalise(config_file_path)
        self._handler = _ConfigEventHandler(self)
        self._observer: Any = None

    def start(self) -> None:
        """Start watching; failures are logged and leave the watcher inactive."""
        self.log.debugf("Start File Watcher On: %s", self.config_file_path)
        dir_path = os.path.dirname(self.config_file_path) or "."
        self.log.debugf("Start Watcher on directory: %s", dir_path)

        if not os.path.isdir(dir_path):
            self.log.errorf(
                "Error adding the directory to watcher: %s",
                FileNotFoundError(f"no such directory: {dir_path}"),
            )
            return

        try:
            observer = Observer()
        except Exception as exc:  # the platform may refuse to create an observer
            self.log.errorf("Error initializing the watcher: %s", exc)
            return

        try:
            observer.schedule(self._handler, dir_path, recursive=False)
            observer.start()
        except OSError as exc:
            self.log.errorf("Error adding the directory to watcher: %s", exc)
            return

        self._observer = observer

    def _on_event(self, event: FileSystemEvent) -> None:
        self.log.debugf("Event on file %s : %s", event.src_path, event)
        if event.event_type not in _TRIGGERING_EVENTS:
            return
        paths = [event.src_path]
        dest = getattr(event, "dest_path", "")
        if dest:
            paths.append(dest)
        if any(_normalise(p) == self._target for p in paths):
            self.log.debugf("File Watcher Triggers Function Execution: %s", self.config_file_path)
            self.replace_logger()

    def stop(self) -> None:
        """Stop watching, if started."""
        self.log.infof("Stop the filewatcher on :%s", self.config_file_path)
        observer, self._observer = self._observer, None
        if observer is None:
            return
        try:
            observer.stop()
            observer.join()
        except Exception as exc:
            self.log.debugf("Error Closing the filewatcher :%s", exc)

    def __enter__(self) -> FileWatcher:
        self.start()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.stop()