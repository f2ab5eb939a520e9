"""Watching the directories of several file groups and dispatching changes."""

from __future__ import annotations

import logging
import os
import threading
from typing import Any, Callable, Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from chatlog.filegroup import FileEvent, FileGroup, Op

_log = logging.getLogger(__name__)

_OPS = {
    "created": Op.CREATE,
    "modified": Op.WRITE,
    "deleted": Op.REMOVE,
}


class _EventBridge(FileSystemEventHandler):
    """Turns watcher events into :class:`FileEvent` values for a sink."""

    def __init__(self, sink: Callable[[FileEvent], None]) -> None:
        super().__init__()
        self._sink = sink

    def _emit(self, name: str, op: Op) -> None:
        try:
            self._sink(FileEvent(name=name, op=op))
        except Exception:
            _log.exception("Error handling event for %s", name)

    def dispatch(self, event: Any) -> None:
        kind = event.event_type
        src = os.fsdecode(event.src_path)
        if kind == "moved":
            self._emit(src, Op.RENAME)
            dest = os.fsdecode(getattr(event, "dest_path", "") or "")
            if dest:
                self._emit(dest, Op.CREATE)
            return
        op = _OPS.get(kind)
        if op is None or (event.is_directory and op is Op.WRITE):
            return
        self._emit(src, op)


class FileMonitor:
    """Watches the directories holding files of its groups and forwards changes."""

    def __init__(self) -> None:
        self._groups: dict[str, FileGroup] = {}
        self._watch_dirs: dict[str, Any] = {}
        self._blacklist: list[str] = []
        self._lock = threading.RLock()
        self._state_lock = threading.RLock()
        self._observer: Optional[Any] = None
        self._running = False
        self._bridge = _EventBridge(self._on_event)

    @property
    def watched_dirs(self) -> set[str]:
        """The directories currently being watched."""
        with self._lock:
            return set(self._watch_dirs)

    def set_blacklist(self, blacklist: list[str]) -> None:
        """Set substrings that exclude a directory from being watched."""
        with self._lock:
            self._blacklist = list(blacklist)

    def add_group(self, group: FileGroup) -> None:
        """Add a group; if the monitor runs, start watching its directories.

        Raises TypeError for None, ValueError for a duplicate id and OSError
        when watching fails.
        """
        if group is None:
            raise TypeError("group cannot be None")
        running = self.is_running()
        with self._lock:
            if group.id in self._groups:
                raise ValueError(f"group with ID '{group.id}' already exists")
            self._groups[group.id] = group
        if running:
            try:
                self._setup_watch_for_group(group)
            except (OSError, RuntimeError):
                with self._lock:
                    self._groups.pop(group.id, None)
                raise

    def create_group(self, group_id: str, root_dir: str, pattern: str,
                     blacklist: list[str] | None = None) -> FileGroup:
        """Create a group and add it to the monitor."""
        group = FileGroup(group_id, root_dir, pattern, blacklist)
        self.add_group(group)
        return group

    def remove_group(self, group_id: str) -> None:
        """Remove a group. Raises KeyError when there is none with that id."""
        with self._lock:
            if group_id not in self._groups:
                raise KeyError(f"group with ID '{group_id}' does not exist")
            del self._groups[group_id]

    def get_groups(self) -> list[FileGroup]:
        """Return all groups."""
        with self._lock:
            return list(self._groups.values())

    def get_group(self, group_id: str) -> Optional[FileGroup]:
        """Return the group with ``group_id``, or None."""
        with self._lock:
            return self._groups.get(group_id)

    def start(self) -> None:
        """Start watching. Raises RuntimeError if already running, OSError on failure."""
        with self._state_lock:
            if self._running:
                raise RuntimeError("file monitor is already running")
            observer = Observer()
            self._observer = observer
            with self._lock:
                groups = list(self._groups.values())
                self._watch_dirs = {}
            observer.start()
            self._running = True

        for group in groups:
            try:
                self._setup_watch_for_group(group)
            except OSError as exc:
                self._shutdown(observer)
                with self._state_lock:
                    self._observer = None
                    self._running = False
                with self._lock:
                    self._watch_dirs = {}
                raise OSError(
                    f"failed to setup watch for group '{group.id}': {exc}"
                ) from exc

    def stop(self) -> None:
        """Stop watching. Raises RuntimeError if not running."""
        with self._state_lock:
            if not self._running:
                raise RuntimeError("file monitor is not running")
            observer = self._observer
            self._running = False
        if observer is not None:
            self._shutdown(observer)
            with self._state_lock:
                self._observer = None

    def is_running(self) -> bool:
        """Tell whether the monitor is running."""
        with self._state_lock:
            return self._running

    def refresh_watches(self) -> None:
        """Re-scan the groups and watch exactly the directories now needed."""
        if not self.is_running():
            raise RuntimeError("file monitor is not running")
        with self._lock:
            groups = list(self._groups.values())
            old_watches = self._watch_dirs
            self._watch_dirs = {}

        for group in groups:
            try:
                self._setup_watch_for_group(group)
            except OSError as exc:
                raise OSError(
                    f"failed to refresh watches for group '{group.id}': {exc}"
                ) from exc

        observer = self._observer
        for directory, watch in old_watches.items():
            with self._lock:
                still_watched = directory in self._watch_dirs
            if still_watched or observer is None:
                continue
            try:
                observer.unschedule(watch)
            except (KeyError, OSError):
                pass
            _log.debug("Removed watch for directory %s", directory)

    @staticmethod
    def _shutdown(observer: Any) -> None:
        observer.stop()
        observer.join()

    def _add_watch_dir(self, directory: str) -> None:
        directory = os.path.normpath(directory)
        with self._lock:
            if any(pattern in directory for pattern in self._blacklist):
                _log.debug("Skipping blacklisted directory %s", directory)
                return
            if directory in self._watch_dirs:
                return
        observer = self._observer
        if observer is None:
            raise RuntimeError("file monitor is not running")
        if not os.path.isdir(directory):
            raise FileNotFoundError(
                f"failed to watch directory '{directory}': not an existing directory"
            )
        try:
            watch = observer.schedule(self._bridge, directory, recursive=False)
        except OSError as exc:
            raise OSError(f"failed to watch directory '{directory}': {exc}") from exc
        with self._lock:
            self._watch_dirs.setdefault(directory, watch)

    def _setup_watch_for_group(self, group: FileGroup) -> None:
        if not self.is_running():
            raise RuntimeError("file monitor is not running")
        matching = group.list_matching_directories()
        self._add_watch_dir(group.root_dir)
        for directory in sorted(matching):
            self._add_watch_dir(directory)

    def _on_event(self, event: FileEvent) -> None:
        if not self.is_running():
            return

        if event.op & (Op.CREATE | Op.RENAME) and os.path.isdir(event.name):
            try:
                self._add_watch_dir(event.name)
            except (OSError, RuntimeError):
                _log.exception("Error watching new directory %s", event.name)
            return

        if event.op & (Op.CREATE | Op.WRITE):
            with self._lock:
                should_watch = any(g.match(event.name) for g in self._groups.values())
            if should_watch:
                directory = os.path.dirname(event.name)
                try:
                    self._add_watch_dir(directory)
                except (OSError, RuntimeError):
                    _log.exception("Error watching directory of matching file %s", directory)

        self._forward(event)

    def _forward(self, event: FileEvent) -> None:
        with self._lock:
            groups = list(self._groups.values())
        for group in groups:
            group.handle_event(event)