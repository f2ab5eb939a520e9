"""Version details of an installed application."""

from __future__ import annotations

import os
import plistlib
import posixpath
import sys
from dataclasses import dataclass

INFO_FILE = "Info.plist"


@dataclass
class AppInfo:
    """Version and vendor details read from an application's metadata."""

    file_path: str
    company_name: str = ""
    file_description: str = ""
    version: int = 0
    full_version: str = ""
    legal_copyright: str = ""
    product_name: str = ""
    product_version: str = ""


def _major(full_version: str) -> int:
    head = full_version.split(".")[0]
    try:
        return int(head) if head.lstrip("+-").isdigit() and head.isascii() else 0
    except ValueError:
        return 0


def _bundle_plist_path(file_path: str) -> str:
    parts = file_path.split(os.sep)
    if len(parts) < 2:
        raise ValueError(f"not a path inside an application bundle: {file_path!r}")
    kept = [part for part in parts[:-2] if part]
    return "/" + posixpath.normpath(posixpath.join(*kept, INFO_FILE))


def _plist_string(values: dict, key: str) -> str:
    value = values.get(key, "")
    if not isinstance(value, str):
        raise ValueError(f"{key} is not a string")
    return value


def _read_bundle_info(info: AppInfo) -> None:
    with open(_bundle_plist_path(info.file_path), "rb") as handle:
        values = plistlib.load(handle)
    if not isinstance(values, dict):
        raise ValueError("property list is not a dictionary")
    info.full_version = _plist_string(values, "CFBundleShortVersionString")
    info.version = _major(info.full_version)
    info.company_name = _plist_string(values, "NSHumanReadableCopyright")


def read_app_info(file_path: str) -> AppInfo:
    """Read the version details of the application at ``file_path``.

    On macOS they come from the bundle's Info.plist; elsewhere only the path
    is recorded.
    """
    info = AppInfo(file_path=file_path)
    if sys.platform == "darwin":
        _read_bundle_info(info)
    return info