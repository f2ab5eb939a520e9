import json
from dataclasses import dataclass, field

import pytest

from chatlog.config import (
    ConfigStore,
    InvalidDirectoryError,
    MissingConfigNameError,
    prepare_dir,
)


@dataclass
class Settings:
    port: int = field(default=0, metadata={"default": "5030"})
    name: str = ""


def test_missing_name(tmp_path):
    with pytest.raises(MissingConfigNameError):
        ConfigStore("", "", str(tmp_path))


def test_path_is_file(tmp_path):
    target = tmp_path / "file"
    target.write_text("x")
    with pytest.raises(InvalidDirectoryError):
        ConfigStore("app", "", str(target))


def test_prepare_dir_creates(tmp_path):
    target = tmp_path / "a" / "b"
    prepare_dir(str(target))
    assert target.is_dir()


def test_load_creates_file_and_applies_defaults(tmp_path):
    store = ConfigStore("app", "", str(tmp_path))
    conf = Settings()
    store.load(conf)
    assert (tmp_path / "app.json").exists()
    assert conf.port == 5030


def test_set_and_reload(tmp_path):
    store = ConfigStore("app", "json", str(tmp_path))
    store.load(Settings())
    store.set("Port", 9)
    assert json.loads((tmp_path / "app.json").read_text()) == {"port": 9}
    conf = Settings()
    ConfigStore("app", "", str(tmp_path)).load(conf)
    assert conf.port == 9


def test_nested_set_and_reset(tmp_path):
    store = ConfigStore("app", "", str(tmp_path))
    store.set("a.b", 1)
    assert store.settings() == {"a": {"b": 1}}
    store.reset()
    assert store.settings() == {}


def test_load_file(tmp_path):
    source = tmp_path / "other.json"
    source.write_text(json.dumps({"Name": "n"}))
    store = ConfigStore("app", "", str(tmp_path))
    conf = Settings()
    store.load_file(str(source), conf)
    assert conf.name == "n"
    with pytest.raises(FileNotFoundError):
        store.load_file(str(tmp_path / "missing.json"), Settings())