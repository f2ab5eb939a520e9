import plistlib
from unittest import mock

import pytest

from chatlog import appver


@pytest.fixture
def bundle(tmp_path):
    contents = tmp_path / "Example.app" / "Contents"
    (contents / "MacOS").mkdir(parents=True)
    binary = contents / "MacOS" / "Example"
    binary.write_bytes(b"")
    return contents, str(binary)


def test_reads_bundle_plist_on_darwin(bundle):
    contents, binary = bundle
    (contents / "Info.plist").write_bytes(
        plistlib.dumps(
            {
                "CFBundleShortVersionString": "4.0.3.22",
                "NSHumanReadableCopyright": "Example Corp",
            }
        )
    )
    with mock.patch.object(appver.sys, "platform", "darwin"):
        info = appver.read_app_info(binary)
    assert info.file_path == binary
    assert info.full_version == "4.0.3.22"
    assert info.version == 4
    assert info.company_name == "Example Corp"


def test_non_numeric_major_gives_zero(bundle):
    contents, binary = bundle
    (contents / "Info.plist").write_bytes(
        plistlib.dumps({"CFBundleShortVersionString": "beta.1"})
    )
    with mock.patch.object(appver.sys, "platform", "darwin"):
        info = appver.read_app_info(binary)
    assert info.full_version == "beta.1"
    assert info.version == 0
    assert info.company_name == ""


def test_missing_plist_raises_on_darwin(bundle):
    _, binary = bundle
    with mock.patch.object(appver.sys, "platform", "darwin"):
        with pytest.raises(FileNotFoundError):
            appver.read_app_info(binary)


def test_corrupt_plist_raises_on_darwin(bundle):
    contents, binary = bundle
    (contents / "Info.plist").write_bytes(b"this is not a plist")
    with mock.patch.object(appver.sys, "platform", "darwin"):
        with pytest.raises(ValueError):
            appver.read_app_info(binary)


def test_other_platforms_record_path_only(bundle):
    _, binary = bundle
    with mock.patch.object(appver.sys, "platform", "linux"):
        info = appver.read_app_info(binary)
    assert info == appver.AppInfo(file_path=binary)
    assert info.version == 0