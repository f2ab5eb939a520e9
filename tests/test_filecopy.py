import json
import os
import re
import time

import pytest

from chatlog.filecopy import MAPPING_FILE_NAME, TempCopier, _fnv1a_hex, get_temp_copy


def _wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


def _read(path):
    with open(path, "rb") as handle:
        return handle.read()


@pytest.fixture
def src_dir(tmp_path):
    directory = tmp_path / "src"
    directory.mkdir()
    return directory


@pytest.fixture
def copies_dir(tmp_path):
    return tmp_path / "copies"


@pytest.fixture
def copier(copies_dir):
    instance = TempCopier(str(copies_dir), 60)
    yield instance
    instance.close()


def test_fnv1a_standard_vectors():
    assert _fnv1a_hex("") == "811c9dc5"
    assert _fnv1a_hex("a") == "e40c292c"


def test_copy_has_same_content_and_naming(copier, src_dir, copies_dir):
    original = src_dir / "notes.txt"
    original.write_bytes(b"hello world")
    copy = copier.get_temp_copy(str(original))
    assert os.path.dirname(copy) == str(copies_dir)
    assert re.fullmatch(r"notes_[0-9a-f]{1,8}_[0-9]+\.txt", os.path.basename(copy))
    assert _read(copy) == b"hello world"


def test_empty_base_name_uses_file(copier, src_dir):
    original = src_dir / ".bashrc"
    original.write_text("x")
    copy = os.path.basename(copier.get_temp_copy(str(original)))
    assert copy.startswith("file_")
    assert copy.endswith(".bashrc")


def test_unchanged_file_reuses_copy(copier, src_dir):
    original = src_dir / "a.db"
    original.write_bytes(b"data")
    first = copier.get_temp_copy(str(original))
    second = copier.get_temp_copy(str(original))
    assert first == second


def test_changed_file_gets_new_copy(copier, src_dir):
    original = src_dir / "a.db"
    original.write_bytes(b"data")
    first = copier.get_temp_copy(str(original))
    original.write_bytes(b"data and more")
    second = copier.get_temp_copy(str(original))
    assert second != first
    assert _read(second) == b"data and more"
    assert os.path.exists(first)


def test_third_version_removes_first_immediately(copier, src_dir, copies_dir):
    original = src_dir / "a.db"
    original.write_bytes(b"1")
    first = copier.get_temp_copy(str(original))
    original.write_bytes(b"22")
    second = copier.get_temp_copy(str(original))
    original.write_bytes(b"333")
    third = copier.get_temp_copy(str(original))
    assert len({first, second, third}) == 3
    assert _read(second) == b"22"
    assert _read(third) == b"333"
    assert os.path.basename(first) not in os.listdir(copies_dir)


def test_old_copy_deleted_after_delay(src_dir, copies_dir):
    with TempCopier(str(copies_dir), 0.05) as instance:
        original = src_dir / "a.db"
        original.write_bytes(b"1")
        first = instance.get_temp_copy(str(original))
        original.write_bytes(b"22")
        second = instance.get_temp_copy(str(original))
        assert second != first
        _wait_until(lambda: not os.path.exists(first))
        assert os.path.basename(first) not in os.listdir(copies_dir)
        assert _read(second) == b"22"


def test_missing_original_raises(copier, src_dir):
    with pytest.raises(FileNotFoundError):
        copier.get_temp_copy(str(src_dir / "missing.db"))


def test_mapping_file_written(copier, src_dir, copies_dir):
    original = src_dir / "a.db"
    original.write_bytes(b"x")
    copy = copier.get_temp_copy(str(original))
    with open(copies_dir / MAPPING_FILE_NAME, encoding="utf-8") as handle:
        entries = json.load(handle)
    assert [(e["original_path"], e["temp_path"]) for e in entries] == [(str(original), copy)]
    assert entries[0]["metadata"]["size"] == 1


def test_mappings_survive_restart(src_dir, copies_dir):
    original = src_dir / "a.db"
    original.write_bytes(b"persist")
    with TempCopier(str(copies_dir), 60) as first:
        path = first.get_temp_copy(str(original))
    with TempCopier(str(copies_dir), 60) as second:
        assert second.get_temp_copy(str(original)) == path
        assert os.path.exists(path)


def test_startup_cleanup_keeps_newest(copies_dir):
    copies_dir.mkdir()
    for name in ("junk.txt", "a_b_1.txt", "a_b_2.txt", "a_b_x.txt"):
        (copies_dir / name).write_text("z")
    (copies_dir / "sub").mkdir()
    with TempCopier(str(copies_dir), 60):
        remaining = sorted(os.listdir(copies_dir))
    assert "a_b_2.txt" in remaining
    assert "sub" in remaining
    for gone in ("junk.txt", "a_b_1.txt", "a_b_x.txt"):
        assert gone not in remaining


def test_cleanup_removes_unknown_files(src_dir, copies_dir):
    with TempCopier(str(copies_dir), 0) as instance:
        original = src_dir / "a.db"
        original.write_bytes(b"keep")
        copy = instance.get_temp_copy(str(original))
        stray = copies_dir / "zz_q_9.bin"
        stray.write_text("stray")
        instance.cleanup_temp_files()
        assert _wait_until(lambda: not stray.exists())
        assert os.path.exists(copy)
        assert (copies_dir / MAPPING_FILE_NAME).exists()


def test_module_level_get_temp_copy(src_dir):
    original = src_dir / "shared.bin"
    original.write_bytes(b"shared content")
    first = get_temp_copy(str(original))
    try:
        assert _read(first) == b"shared content"
        assert get_temp_copy(str(original)) == first
    finally:
        os.remove(first)