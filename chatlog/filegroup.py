"""Groups of files selected by directory, name pattern and blacklist."""

from __future__ import annotations

import enum
import logging
import os
import re
import threading
from collections.abc import Callable
from dataclasses import dataclass

_log = logging.getLogger(__name__)


class Op(enum.Flag):
    """Kinds of file-system change."""

    CREATE = enum.auto()
    WRITE = enum.auto()
    REMOVE = enum.auto()
    RENAME = enum.auto()
    CHMOD = enum.auto()


@dataclass(frozen=True)
class FileEvent:
    """A change to the file at ``name``."""

    name: str
    op: Op


FileChangeCallback = Callable[[FileEvent], None]


class FileGroup:
    """Files under a root directory whose names match a pattern."""

    def __init__(self, group_id: str, root_dir: str, pattern: str,
                 blacklist: list[str] | None = None) -> None:
        try:
            self.pattern = re.compile(pattern)
        except re.error as exc:
            raise ValueError(f"invalid pattern '{pattern}': {exc}") from exc
        self.id = group_id
        self.root_dir = os.path.normpath(root_dir)
        self.pattern_str = pattern
        self.blacklist = list(blacklist or [])
        self._callbacks: list[FileChangeCallback] = []
        self._lock = threading.Lock()

    def add_callback(self, callback: FileChangeCallback) -> None:
        """Register a callback for matching events."""
        with self._lock:
            self._callbacks.append(callback)

    def remove_callback(self, callback: FileChangeCallback) -> bool:
        """Unregister a callback; return whether it was registered."""
        with self._lock:
            for index, registered in enumerate(self._callbacks):
                if registered is callback:
                    del self._callbacks[index]
                    return True
        return False

    def match(self, path: str) -> bool:
        """Tell whether ``path`` belongs to this group."""
        path = os.path.normpath(path)
        if os.path.isabs(path) != os.path.isabs(self.root_dir):
            return False
        try:
            rel = os.path.relpath(path, self.root_dir)
        except ValueError:
            return False
        if rel.startswith(".."):
            return False
        if not self.pattern.search(os.path.basename(path)):
            return False
        return not any(item in rel for item in self.blacklist)

    def list_files(self) -> list[str]:
        """Scan the root directory and return the matching files."""
        files: list[str] = []

        def walk(directory: str) -> None:
            try:
                with os.scandir(directory) as entries:
                    ordered = sorted(entries, key=lambda e: e.name)
            except OSError:
                return
            for entry in ordered:
                if entry.is_dir(follow_symlinks=False):
                    walk(entry.path)
                elif self.match(entry.path):
                    files.append(os.path.normpath(entry.path))

        walk(self.root_dir)
        return files

    def list_matching_directories(self) -> set[str]:
        """Return the directories that hold matching files."""
        return {os.path.dirname(path) for path in self.list_files()}

    def handle_event(self, event: FileEvent) -> None:
        """Run every callback in its own thread if the event's file matches."""
        if not self.match(event.name):
            return
        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            threading.Thread(target=self._run, args=(callback, event), daemon=True).start()

    @staticmethod
    def _run(callback: FileChangeCallback, event: FileEvent) -> None:
        try:
            callback(event)
        except Exception:
            _log.exception("Callback error for %s (%s)", event.name, event.op)