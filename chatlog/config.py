"""A JSON configuration file kept in a per-application directory."""

from __future__ import annotations

import copy
import dataclasses
import json
import logging
import os
import stat
import tempfile
from typing import Any

from chatlog.defaults import set_default

_log = logging.getLogger(__name__)

DEFAULT_CONFIG_TYPE = "json"
_SUPPORTED_TYPES = ("json",)


class InvalidDirectoryError(ValueError):
    """The configuration path exists but is not a directory."""


class MissingConfigNameError(ValueError):
    """No configuration name was given."""


def prepare_dir(path: str) -> None:
    """Make sure ``path`` exists as a directory, creating it if needed."""
    try:
        info = os.stat(path)
    except FileNotFoundError:
        os.makedirs(path, mode=0o755, exist_ok=True)
        return
    if not stat.S_ISDIR(info.st_mode):
        _log.debug("%s is not a directory", path)
        raise InvalidDirectoryError("invalid directory path")


def _lower_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    return value


def _unmarshal(settings: dict, conf: Any) -> None:
    if isinstance(conf, dict):
        conf.update(copy.deepcopy(settings))
        return
    if not dataclasses.is_dataclass(conf):
        raise TypeError("configuration target must be a dataclass instance or a dict")
    for f in dataclasses.fields(conf):
        key = f.name.lower()
        if key not in settings:
            continue
        value = settings[key]
        current = getattr(conf, f.name)
        if dataclasses.is_dataclass(current) and isinstance(value, dict):
            _unmarshal(value, current)
        else:
            setattr(conf, f.name, copy.deepcopy(value))


class ConfigStore:
    """Settings read from and written to ``<path>/<name>.<type>``."""

    def __init__(self, name: str, config_type: str = "", path: str = "") -> None:
        if not name:
            raise MissingConfigNameError("config name not specified")
        config_type = config_type or DEFAULT_CONFIG_TYPE
        if config_type not in _SUPPORTED_TYPES:
            raise ValueError(f"unsupported config type: {config_type!r}")
        if not path:
            home = os.path.expanduser("~")
            if home == "~":
                home = tempfile.gettempdir()
            path = home + os.sep + "." + name
        prepare_dir(path)
        self.name = name
        self.config_type = config_type
        self.path = path
        self._default_file = os.path.join(path, f"{name}.{config_type}")
        self.file = self._default_file
        self._settings: dict[str, Any] = {}

    def _read(self, file: str) -> None:
        with open(file, encoding="utf-8") as handle:
            data = json.load(handle)
        if not isinstance(data, dict):
            raise ValueError(f"{file} does not hold a JSON object")
        self._settings = _lower_keys(data)

    def _write(self) -> None:
        with open(self.file, "w", encoding="utf-8") as handle:
            json.dump(self._settings, handle, indent=2, ensure_ascii=False)

    def load(self, conf: Any) -> None:
        """Read the file into ``conf``, creating the file if it is missing."""
        self.file = self._default_file
        try:
            self._read(self.file)
        except FileNotFoundError:
            self._write()
        _unmarshal(self._settings, conf)
        set_default(conf)

    def load_file(self, file: str, conf: Any) -> None:
        """Read ``file`` into ``conf``; later writes go to that file."""
        self._read(file)
        self.file = file
        _unmarshal(self._settings, conf)
        set_default(conf)

    def set(self, key: str, value: Any) -> None:
        """Set a dotted key and write the settings back to the file."""
        parts = key.lower().split(".")
        node = self._settings
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value
        self._write()

    def reset(self) -> None:
        """Empty the settings and write the empty file."""
        self._settings = {}
        self.file = self._default_file
        self._write()

    def settings(self) -> dict[str, Any]:
        """Return a copy of all settings."""
        return copy.deepcopy(self._settings)