import os
import stat
import sys

import pytest

from hostswitcher.errors import HostsIOError, ValidationError
from hostswitcher.gateway import (DEFAULT_HOSTS_CONTENT, HostsFileGateway, resolve_hosts_path,
                                  validate_hosts_content)


def test_resolve_posix_path():
    assert resolve_hosts_path("linux", {}) == "/etc/hosts"
    assert resolve_hosts_path("darwin", {"SystemRoot": "ignored"}) == "/etc/hosts"


def test_resolve_windows_path_prefers_systemroot():
    environ = {"SystemRoot": r"D:\Win", "WINDIR": r"E:\Other"}
    assert resolve_hosts_path("win32", environ) == r"D:\Win\System32\drivers\etc\hosts"


def test_resolve_windows_path_fallbacks():
    assert resolve_hosts_path("win32", {"WINDIR": r"E:\Other"}) == r"E:\Other\System32\drivers\etc\hosts"
    assert resolve_hosts_path("win32", {}) == r"C:\Windows\System32\drivers\etc\hosts"


def test_validate_accepts_comments_blank_and_aliases():
    validate_hosts_content("# comment\n\n127.0.0.1 localhost loopback\n  ::1\tlocalhost  \n")


def test_validate_reports_line_number():
    with pytest.raises(ValidationError) as exc:
        validate_hosts_content("127.0.0.1 localhost\n\n10.0.0.1\n")
    assert exc.value.line == 3
    assert str(exc.value).startswith("Line 3:")


def test_read_creates_default_when_missing(tmp_path):
    gateway = HostsFileGateway(str(tmp_path / "etc" / "hosts"))
    assert gateway.read() == DEFAULT_HOSTS_CONTENT
    assert (tmp_path / "etc" / "hosts").read_text(encoding="utf-8") == DEFAULT_HOSTS_CONTENT


def test_default_content_is_valid():
    validate_hosts_content(DEFAULT_HOSTS_CONTENT)
    assert "127.0.0.1       localhost" in DEFAULT_HOSTS_CONTENT
    assert "::1             localhost" in DEFAULT_HOSTS_CONTENT


def test_write_replaces_content(hosts_file):
    gateway = HostsFileGateway(str(hosts_file))
    gateway.write("10.1.1.1 box\n")
    assert gateway.read() == "10.1.1.1 box\n"
    leftovers = [p for p in os.listdir(hosts_file.parent) if p != "hosts"]
    assert leftovers == []


@pytest.mark.skipif(sys.platform.startswith("win"), reason="POSIX permissions")
def test_write_keeps_file_mode(hosts_file):
    os.chmod(hosts_file, 0o640)
    HostsFileGateway(str(hosts_file)).write("10.1.1.1 box\n")
    assert stat.S_IMODE(os.stat(hosts_file).st_mode) == 0o640


def test_write_falls_back_to_in_place(hosts_file, monkeypatch):
    def refuse(path, directory, data):
        raise OSError("device or resource busy")

    monkeypatch.setattr(HostsFileGateway, "_replace", staticmethod(refuse))
    HostsFileGateway(str(hosts_file)).write("10.2.2.2 box\n")
    assert hosts_file.read_text(encoding="utf-8") == "10.2.2.2 box\n"


def test_write_failure_raises_hosts_io_error(tmp_path):
    target = tmp_path / "hosts"
    target.mkdir()  # a directory cannot be opened for writing

    with pytest.raises(HostsIOError):
        HostsFileGateway(str(target)).write("10.2.2.2 box\n")


def test_legacy_write_round_trips_through_fallback_decode(hosts_file):
    gateway = HostsFileGateway(str(hosts_file), legacy_encoding="gbk")
    gateway.write_legacy("127.0.0.1 localhost # 本地\n")

    assert hosts_file.read_bytes() == "127.0.0.1 localhost # 本地\n".encode("gbk")
    assert gateway.read() == "127.0.0.1 localhost # 本地\n"


def test_legacy_write_validates_first(hosts_file):
    gateway = HostsFileGateway(str(hosts_file))
    with pytest.raises(ValidationError):
        gateway.write_legacy("nonsense\n")
    assert hosts_file.read_text(encoding="utf-8").startswith("# test hosts")


def test_validate_flags_trailing_bad_line():
    with pytest.raises(ValidationError) as exc:
        validate_hosts_content("127.0.0.1 localhost\n# comment\n\nbadline")
    assert exc.value.line == 4
