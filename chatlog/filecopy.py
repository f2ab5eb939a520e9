"""Temporary copies of files that other processes may hold open or lock.

A copy is made once and reused for as long as the original file keeps its
modification time and size. When the original changes, a fresh copy is made.
The previous copy stays for a grace period and is then deleted in the
background. The mapping from originals to copies is kept on disk, so a later
run can reuse copies that are still current.
"""

from __future__ import annotations

import json
import os
import queue
import re
import shutil
import sys
import tempfile
import threading
import time
from dataclasses import dataclass
from typing import Optional

DEFAULT_DELETION_DELAY = 30.0
MAPPING_FILE_NAME = "file_mappings.json"

_CLEANUP_INTERVAL = 30.0
_DELETION_WORKERS = 2
_DELETION_QUEUE_SIZE = 1000
_COPY_RETRIES = 3
_COPY_BUFFER = 256 * 1024
_HASH_PREFIX_LEN = 8
_LEADING_INT_RE = re.compile(r"\s*[+-]?[0-9]+")
_UNSAFE_NAME_CHAR_RE = re.compile(r"[^A-Za-z0-9_-]")


@dataclass(frozen=True)
class _Meta:
    mod_time_ns: int
    size: int


@dataclass(frozen=True)
class _Deletion:
    path: str
    due: float


def _fnv1a_hex(text: str) -> str:
    """Return the 32-bit FNV-1a hash of ``text`` as unpadded lower-case hex."""
    value = 0x811C9DC5
    for byte in text.encode("utf-8"):
        value = ((value ^ byte) * 0x01000193) & 0xFFFFFFFF
    return f"{value:x}"


def _split_ext(name: str) -> tuple[str, str]:
    """Split a file name at its last dot, keeping the dot with the extension."""
    index = name.rfind(".")
    if index < 0:
        return name, ""
    return name[:index], name[index:]


def _strip_ext(path: str) -> str:
    if not path:
        return ""
    directory, name = os.path.split(path)
    return os.path.join(directory, _split_ext(name)[0])


def _name_prefix(original_path: str) -> tuple[str, str]:
    """Return the base name and extension used for copies of ``original_path``."""
    base, ext = _split_ext(os.path.basename(original_path))
    return base or "file", ext


def _hash_prefix(original_path: str) -> str:
    return _fnv1a_hex(original_path)[:_HASH_PREFIX_LEN]


def _remove_quietly(path: str) -> None:
    if not path:
        return
    try:
        os.remove(path)
    except OSError:
        pass


def _process_name() -> str:
    executable = (sys.argv[0] if sys.argv and sys.argv[0] else sys.executable) or ""
    base = os.path.basename(executable)
    if not base:
        return "unknown"
    base = _split_ext(base)[0]
    return _UNSAFE_NAME_CHAR_RE.sub("_", base)


def _default_temp_dir() -> str:
    system_tmp = tempfile.gettempdir()
    for candidate in (
        os.path.join(system_tmp, "filecopy_" + _process_name()),
        os.path.join(system_tmp, "filecopy"),
    ):
        try:
            os.makedirs(candidate, mode=0o755, exist_ok=True)
            return candidate
        except OSError:
            continue
    return system_tmp


def _copy_file(src: str, dst: str) -> None:
    with open(src, "rb") as source, open(dst, "wb") as target:
        shutil.copyfileobj(source, target, _COPY_BUFFER)
        target.flush()
        os.fsync(target.fileno())


def _copy_file_with_retry(src: str, dst: str, attempts: int) -> None:
    last_error: Optional[OSError] = None
    for attempt in range(attempts):
        try:
            _copy_file(src, dst)
            return
        except OSError as exc:
            last_error = exc
            time.sleep(0.1 * (attempt + 1))
    raise OSError(f"failed to copy file after {attempts} attempts: {last_error}") from last_error


class TempCopier:
    """Keeps up-to-date temporary copies of files in one directory."""

    def __init__(self, temp_dir: Optional[str] = None,
                 deletion_delay: float = DEFAULT_DELETION_DELAY) -> None:
        if temp_dir is None:
            temp_dir = _default_temp_dir()
        else:
            os.makedirs(temp_dir, mode=0o755, exist_ok=True)
        self.temp_dir = temp_dir
        self.deletion_delay = float(deletion_delay)
        self.mapping_file = os.path.join(temp_dir, MAPPING_FILE_NAME)

        self._path_to_temp: dict[str, str] = {}
        self._metadata: dict[str, _Meta] = {}
        self._old_versions: dict[str, str] = {}
        self._map_lock = threading.RLock()
        self._save_lock = threading.Lock()
        self._file_locks: dict[str, threading.Lock] = {}
        self._file_locks_lock = threading.Lock()
        self._deletions: queue.Queue[_Deletion] = queue.Queue(maxsize=_DELETION_QUEUE_SIZE)
        self._stop = threading.Event()
        self._closed = False

        self._load_mappings()
        self._cleanup_existing_temp_files()

        self._threads = [
            threading.Thread(target=self._deletion_worker, daemon=True)
            for _ in range(_DELETION_WORKERS)
        ]
        self._threads.append(threading.Thread(target=self._periodic_cleanup, daemon=True))
        for thread in self._threads:
            thread.start()

    def __enter__(self) -> TempCopier:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- persistence -------------------------------------------------------

    def _load_mappings(self) -> None:
        try:
            with open(self.mapping_file, encoding="utf-8") as handle:
                raw = json.load(handle)
        except (OSError, ValueError):
            return
        if raw is None:
            return
        try:
            entries = [
                (
                    str(item["original_path"]),
                    str(item["temp_path"]),
                    _Meta(int(item["metadata"]["mod_time"]), int(item["metadata"]["size"])),
                )
                for item in raw
            ]
        except (KeyError, TypeError, ValueError):
            return

        with self._map_lock:
            for original, temp, meta in entries:
                try:
                    info = os.stat(original)
                    os.stat(temp)
                except OSError:
                    continue
                if info.st_mtime_ns == meta.mod_time_ns and info.st_size == meta.size:
                    self._path_to_temp[original] = temp
                    self._metadata[original] = meta

    def _save_mappings(self) -> None:
        with self._map_lock:
            entries = [
                {
                    "original_path": original,
                    "temp_path": temp,
                    "metadata": {
                        "mod_time": self._metadata[original].mod_time_ns,
                        "size": self._metadata[original].size,
                    },
                }
                for original, temp in self._path_to_temp.items()
                if original in self._metadata
            ]
        with self._save_lock:
            try:
                with open(self.mapping_file, "w", encoding="utf-8") as handle:
                    json.dump(entries, handle, indent=2)
            except OSError:
                pass

    # -- cleanup -----------------------------------------------------------

    def _regular_files(self) -> list[str]:
        try:
            with os.scandir(self.temp_dir) as entries:
                return sorted(
                    entry.name for entry in entries
                    if not entry.is_dir(follow_symlinks=False)
                )
        except OSError:
            return []

    def _cleanup_existing_temp_files(self) -> None:
        """Keep only the newest copy of each original among leftover files."""
        mapping_name = os.path.basename(self.mapping_file)
        with self._map_lock:
            known = set(self._path_to_temp.values())

        groups: dict[str, list[tuple[str, int]]] = {}
        for name in self._regular_files():
            if name == mapping_name:
                continue
            path = os.path.join(self.temp_dir, name)
            parts = name.split("_")
            if len(parts) < 3:
                _remove_quietly(path)
                continue
            stamp_text = parts[2].split(".")[0]
            match = _LEADING_INT_RE.match(stamp_text)
            if not match:
                _remove_quietly(path)
                continue
            groups.setdefault(parts[0] + "_" + parts[1], []).append(
                (path, int(match.group()))
            )

        for files in groups.values():
            newest_path, newest_stamp = "", 0
            for path, stamp in files:
                if stamp > newest_stamp:
                    newest_path, newest_stamp = path, stamp
            for path, _ in files:
                if path != newest_path and path not in known:
                    _remove_quietly(path)

    def _cleanup_related_temp_files(self, original_path: str, current: str,
                                    known_old: str) -> None:
        base, _ = _name_prefix(original_path)
        prefix = base + "_" + _hash_prefix(original_path)
        current_key = _strip_ext(current)
        old_key = _strip_ext(known_old)
        mapping_name = os.path.basename(self.mapping_file)

        for name in self._regular_files():
            if name == mapping_name:
                continue
            path = os.path.join(self.temp_dir, name)
            key = _strip_ext(path)
            if key == current_key or key == old_key:
                continue
            if name.startswith(prefix):
                _remove_quietly(path)

    def _schedule_for_deletion(self, path: str) -> None:
        if not path or not os.path.lexists(path):
            return
        try:
            self._deletions.put_nowait(
                _Deletion(path, time.monotonic() + self.deletion_delay)
            )
        except queue.Full:
            _remove_quietly(path)

    def _deletion_worker(self) -> None:
        while not self._stop.is_set():
            try:
                item = self._deletions.get(timeout=0.2)
            except queue.Empty:
                continue
            remaining = item.due - time.monotonic()
            if remaining > 0 and self._stop.wait(remaining):
                return
            with self._map_lock:
                active = item.path in self._path_to_temp.values()
            if not active:
                _remove_quietly(item.path)

    def _periodic_cleanup(self) -> None:
        while not self._stop.wait(_CLEANUP_INTERVAL):
            self.cleanup_temp_files()
            self._save_mappings()

    def cleanup_temp_files(self) -> None:
        """Schedule deletion of copies that are neither current nor the last old version."""
        mapping_name = os.path.basename(self.mapping_file)
        with self._map_lock:
            active = {_strip_ext(path) for path in self._path_to_temp.values()}
            active.update(_strip_ext(path) for path in self._old_versions.values())

        for name in self._regular_files():
            if name == mapping_name:
                continue
            path = os.path.join(self.temp_dir, name)
            if _strip_ext(path) not in active:
                self._schedule_for_deletion(path)

    # -- copying -----------------------------------------------------------

    def _file_lock(self, path: str) -> threading.Lock:
        with self._file_locks_lock:
            return self._file_locks.setdefault(path, threading.Lock())

    def get_temp_copy(self, original_path: str) -> str:
        """Return the path of an up-to-date copy of ``original_path``.

        Raises FileNotFoundError when the original is missing and OSError
        when it cannot be copied.
        """
        with self._file_lock(original_path):
            try:
                info = os.stat(original_path)
            except FileNotFoundError as exc:
                raise FileNotFoundError(f"original file does not exist: {exc}") from exc
            current = _Meta(info.st_mtime_ns, info.st_size)

            with self._map_lock:
                cached_path = self._path_to_temp.get(original_path)
                cached_meta = self._metadata.get(original_path)

            if cached_path is not None and cached_meta is not None:
                changed = (current.mod_time_ns > cached_meta.mod_time_ns
                           or current.size != cached_meta.size)
                if not changed:
                    try:
                        with open(cached_path, "rb"):
                            return cached_path
                    except OSError:
                        pass

            base, ext = _name_prefix(original_path)
            temp_path = os.path.join(
                self.temp_dir,
                f"{base}_{_hash_prefix(original_path)}_{time.time_ns()}{ext}",
            )
            _copy_file_with_retry(original_path, temp_path, _COPY_RETRIES)

            with self._map_lock:
                old_path = self._path_to_temp.get(original_path, "")
                if old_path and old_path != temp_path:
                    previous = self._old_versions.get(original_path)
                    if previous and previous != old_path:
                        _remove_quietly(previous)
                    self._old_versions[original_path] = old_path
                    self._schedule_for_deletion(old_path)
                self._path_to_temp[original_path] = temp_path
                self._metadata[original_path] = current

            self._save_mappings()
            self._cleanup_related_temp_files(original_path, temp_path, old_path)
            return temp_path

    def close(self) -> None:
        """Stop the background work and save the mappings."""
        if self._closed:
            return
        self._closed = True
        self._stop.set()
        for thread in self._threads:
            thread.join()
        self._save_mappings()


_default_copier: Optional[TempCopier] = None
_default_lock = threading.Lock()


def get_temp_copy(original_path: str) -> str:
    """Return an up-to-date copy of ``original_path`` from the shared copier."""
    global _default_copier
    with _default_lock:
        if _default_copier is None:
            _default_copier = TempCopier()
        copier = _default_copier
    return copier.get_temp_copy(original_path)