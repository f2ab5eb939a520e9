from dataclasses import dataclass, field
from typing import Optional

from chatlog.defaults import set_default, set_default_tag


@dataclass
class Inner:
    host: str = field(default="", metadata={"default": "localhost"})
    port: int = field(default=0, metadata={"default": "8080"})


@dataclass
class Conf:
    name: str = field(default="", metadata={"default": "app"})
    debug: bool = field(default=False, metadata={"default": "true"})
    ratio: float = field(default=0.0, metadata={"default": "0.5"})
    count: int = field(default=0, metadata={"default": "abc"})
    tags: list = field(default_factory=list, metadata={"default": '["a", "b"]'})
    inner: Inner = field(default_factory=Inner)
    extra: Optional[Inner] = field(default=None, metadata={"default": '{"host": "h"}'})
    limits: dict[str, int] = field(default_factory=dict, metadata={"default": '{"x": 1}'})


@dataclass
class Alt:
    name: str = field(default="", metadata={"alt": "other", "default": "plain"})


def test_fills_simple_fields():
    conf = Conf()
    set_default(conf)
    assert conf.name == "app"
    assert conf.debug is True
    assert conf.ratio == 0.5


def test_invalid_tag_is_ignored():
    conf = Conf()
    set_default(conf)
    assert conf.count == 0


def test_fills_nested_and_containers():
    conf = Conf()
    set_default(conf)
    assert conf.inner == Inner("localhost", 8080)
    assert conf.extra == Inner("h", 8080)
    assert conf.tags == ["a", "b"]
    assert conf.limits == {"x": 1}


def test_keeps_set_values():
    conf = Conf(name="mine", tags=["z"], inner=Inner("srv", 1))
    set_default(conf)
    assert conf.name == "mine"
    assert conf.tags == ["z"]
    assert conf.inner == Inner("srv", 1)


def test_custom_tag():
    set_default_tag("alt")
    try:
        value = Alt()
        set_default(value)
    finally:
        set_default_tag("default")
    assert value.name == "other"
    again = Alt()
    set_default(again)
    assert again.name == "plain"


def test_list_of_dataclasses_filled():
    items = [Inner(), Inner(host="x")]
    set_default(items)
    assert items == [Inner("localhost", 8080), Inner("x", 8080)]