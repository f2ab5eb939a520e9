"""File-system helpers: pattern search, working directories and sizes."""

from __future__ import annotations

import logging
import os
import re
import stat
import sys
from collections.abc import Iterator

_log = logging.getLogger(__name__)

_SI_PREFIXES = "kMGTPE"


def _walk_files(directory: str, recursive: bool) -> Iterator[str]:
    """Yield file paths below ``directory`` in lexical order, depth first."""
    with os.scandir(directory) as entries:
        ordered = sorted(entries, key=lambda entry: entry.name)
    for entry in ordered:
        if entry.is_dir(follow_symlinks=False):
            if recursive:
                yield from _walk_files(entry.path, recursive)
        else:
            yield entry.path


def find_files_with_patterns(directory: str, pattern: str, recursive: bool) -> list[str]:
    """Return the files under ``directory`` whose names match ``pattern``.

    Raises ValueError for an invalid pattern, NotADirectoryError when
    ``directory`` is not a directory and OSError when it cannot be read.
    """
    try:
        regex = re.compile(pattern)
    except re.error as exc:
        raise ValueError(f"invalid regular expression {pattern!r}: {exc}") from exc

    info = os.stat(directory)
    if not stat.S_ISDIR(info.st_mode):
        raise NotADirectoryError(f"{directory!r} is not a directory")

    return [
        os.path.normpath(path)
        for path in _walk_files(directory, recursive)
        if regex.search(os.path.basename(path))
    ]


def default_work_dir(account: str) -> str:
    """Return the default working directory, per account when one is given."""
    if sys.platform == "win32":
        base = os.path.join(os.environ.get("USERPROFILE", ""), "Documents", "chatlog")
    elif sys.platform == "darwin":
        base = os.path.join(os.environ.get("HOME", ""), "Documents", "chatlog")
    else:
        base = os.path.join(os.environ.get("HOME", ""), "chatlog")
    return os.path.join(base, account) if account else base


def _tree_size(path: str) -> int:
    try:
        info = os.lstat(path)
    except OSError:
        return 0
    total = info.st_size
    if stat.S_ISDIR(info.st_mode):
        try:
            names = sorted(os.listdir(path))
        except OSError:
            return total
        total += sum(_tree_size(os.path.join(path, name)) for name in names)
    return total


def get_dir_size(directory: str) -> str:
    """Return the total size of everything under ``directory``, human readable."""
    return byte_count_si(_tree_size(directory))


def byte_count_si(size: int) -> str:
    """Format a byte count with decimal (SI) prefixes, e.g. ``1.5 MB``."""
    unit = 1000
    if size < unit:
        return f"{size} B"
    div, exp = unit, 0
    n = size // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{size / div:.1f} {_SI_PREFIXES[exp]}B"


def prepare_dir(path: str) -> None:
    """Make sure ``path`` exists as a directory, creating it if needed.

    Raises NotADirectoryError when ``path`` exists but is not a directory.
    """
    try:
        info = os.stat(path)
    except FileNotFoundError:
        os.makedirs(path, mode=0o755, exist_ok=True)
        return
    if not stat.S_ISDIR(info.st_mode):
        _log.debug("%s is not a directory", path)
        raise NotADirectoryError(f"{path} is not a directory")