"""Version and build information."""

from __future__ import annotations

import platform
import re
import sys
from importlib import metadata

_DISTRIBUTION = "chatlog"
_NAME_RE = re.compile(r"[A-Za-z0-9._-]+")


def _installed_version(name: str) -> str | None:
    try:
        return metadata.version(name)
    except metadata.PackageNotFoundError:
        return None


VERSION = _installed_version(_DISTRIBUTION) or "(dev)"


def _runtime() -> str:
    return f"{platform.python_implementation().lower()}{platform.python_version()}"


def _build_lines() -> list[str]:
    lines = [
        f"python\t{platform.python_version()}",
        f"path\t{_DISTRIBUTION}",
        f"mod\t{_DISTRIBUTION}\t{VERSION}",
    ]
    try:
        requirements = metadata.requires(_DISTRIBUTION) or []
    except metadata.PackageNotFoundError:
        requirements = []
    for requirement in requirements:
        if "extra ==" in requirement:
            continue
        match = _NAME_RE.match(requirement)
        if not match:
            continue
        name = match.group()
        version = _installed_version(name)
        if version is not None:
            lines.append(f"dep\t{name}\t{version}")
    return lines


def get_more(mod: bool) -> str:
    """Describe the version; with ``mod`` list the build's modules instead."""
    if mod:
        lines = _build_lines()
        if lines:
            return "\t" + "\n\t".join(lines) + "\n"
    return f"version {VERSION} {_runtime()} {sys.platform}/{platform.machine()}\n"