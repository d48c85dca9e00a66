import pytest

from hostswitcher import notify
from hostswitcher.errors import HostsIOError, ValidationError
from hostswitcher.gateway import DEFAULT_HOSTS_CONTENT
from hostswitcher.models import FREQ_STARTUP
from hostswitcher.orchestrator import TAG_REMOTE, TAG_RESTORE, ApplyState

from conftest import INITIAL_HOSTS

A = "10.0.0.1 alpha\n"
B = "10.0.0.2 beta\n"


def _active_names(app):
    return [c.name for c in app.configs.all() if c.is_active]


def test_apply_sequence_switches_profiles(app, hosts_file, recorder):
    a = app.configs.create("A", "", A)
    b = app.configs.create("B", "", B)

    app.orchestrator.apply_config(a.id)
    assert hosts_file.read_text(encoding="utf-8") == A
    assert _active_names(app) == ["A"]

    app.orchestrator.apply_config(b.id)
    assert hosts_file.read_text(encoding="utf-8") == B
    assert _active_names(app) == ["B"]

    snapshots = [bk.content for bk in app.backups.all() if bk.is_automatic]
    assert snapshots == [A, INITIAL_HOSTS]
    assert (notify.CONFIG_APPLIED, b.id) in recorder.events
    assert app.orchestrator.state is ApplyState.IDLE


def test_invalid_config_changes_nothing(app, hosts_file):
    good = app.configs.create("Good", "", A)
    app.orchestrator.apply_config(good.id)
    bad = app.configs.create("Bad", "", "10.0.0.9\n")

    with pytest.raises(ValidationError):
        app.orchestrator.apply_config(bad.id)

    assert hosts_file.read_text(encoding="utf-8") == A
    assert _active_names(app) == ["Good"]
    assert app.orchestrator.state is ApplyState.IDLE


def test_activation_failure_rolls_back_hosts(app, hosts_file, monkeypatch):
    a = app.configs.create("A", "", A)

    def broken(config_id):
        raise HostsIOError("configs.json is read-only")

    monkeypatch.setattr(app.configs, "set_active", broken)
    with pytest.raises(HostsIOError):
        app.orchestrator.apply_config(a.id)

    assert hosts_file.read_text(encoding="utf-8") == INITIAL_HOSTS
    assert app.configs.active() is None
    assert app.orchestrator.state is ApplyState.IDLE


def test_snapshot_failure_does_not_block_apply(app, hosts_file, monkeypatch):
    a = app.configs.create("A", "", A)

    def broken(*args, **kwargs):
        raise HostsIOError("backups disk full")

    monkeypatch.setattr(app.backups, "create_backup", broken)
    app.orchestrator.apply_config(a.id)
    assert hosts_file.read_text(encoding="utf-8") == A


def test_write_direct_keeps_active_flag(app, hosts_file):
    a = app.configs.create("A", "", A)
    app.orchestrator.apply_config(a.id)

    app.orchestrator.write_direct(B)

    assert hosts_file.read_text(encoding="utf-8") == B
    assert _active_names(app) == ["A"]
    assert app.backups.all()[0].content == A


def test_write_direct_validates(app, hosts_file):
    with pytest.raises(ValidationError):
        app.orchestrator.write_direct("bogus\n")
    assert hosts_file.read_text(encoding="utf-8") == INITIAL_HOSTS
    assert app.backups.all() == []


def test_write_direct_legacy_encodes(app, hosts_file):
    app.orchestrator.write_direct_legacy("127.0.0.1 localhost # 本地\n")
    assert hosts_file.read_bytes() == "127.0.0.1 localhost # 本地\n".encode("gbk")


def test_restore_from_backup(app, hosts_file):
    saved = app.orchestrator.backup_now("known good", ["baseline"])
    assert not saved.is_automatic

    app.orchestrator.write_direct(B)
    app.orchestrator.restore_from_backup(saved.id)

    assert hosts_file.read_text(encoding="utf-8") == INITIAL_HOSTS
    restore_snapshots = [bk for bk in app.backups.all() if TAG_RESTORE in bk.tags]
    assert [bk.content for bk in restore_snapshots] == [B]


def test_restore_default(app, hosts_file):
    a = app.configs.create("A", "", A)
    app.orchestrator.apply_config(a.id)

    app.orchestrator.restore_default()

    assert hosts_file.read_text(encoding="utf-8") == DEFAULT_HOSTS_CONTENT
    assert app.configs.active() is None


def test_preview_is_unified_diff(app):
    diff = app.orchestrator.preview(INITIAL_HOSTS + "10.9.9.9 new\n")
    assert "+10.9.9.9 new" in diff
    assert diff[1] == "+++ proposed"


def test_remote_operations_snapshot_first(app, http_server, hosts_file):
    source = app.sources.add("Ads", http_server.serve("/ads.txt", "0.0.0.0 ads.example\n"))

    app.orchestrator.apply_remote(source.id)
    assert "ads.example" in hosts_file.read_text(encoding="utf-8")

    app.orchestrator.remove_remote_source(source.id)
    assert hosts_file.read_text(encoding="utf-8") == INITIAL_HOSTS

    remote_snapshots = [bk for bk in app.backups.all() if TAG_REMOTE in bk.tags]
    assert len(remote_snapshots) == 2
    assert remote_snapshots[-1].content == INITIAL_HOSTS


def test_restore_announces_only_after_write(app, hosts_file, recorder):
    good = app.orchestrator.backup_now("good")
    broken = app.backups.create_backup("not-a-hosts-line\n", "edited by hand")

    with pytest.raises(ValidationError):
        app.orchestrator.restore_from_backup(broken.id)
    assert hosts_file.read_text(encoding="utf-8") == INITIAL_HOSTS
    assert notify.BACKUP_RESTORED not in recorder.names()

    app.orchestrator.restore_from_backup(good.id)
    assert recorder.events[-1] == (notify.BACKUP_RESTORED, good.id)


def test_unchanged_startup_sources_take_no_backup(app, http_server, hosts_file):
    app.sources.add("Ads", http_server.serve("/ads.txt", "0.0.0.0 ads.example\n"), FREQ_STARTUP)

    app.orchestrator.reconcile_startup_sources()
    assert [bk.content for bk in app.backups.all()] == [INITIAL_HOSTS]

    hosts_file.write_text("10.0.0.7 edited\n", encoding="utf-8")
    app.orchestrator.reconcile_startup_sources()

    assert len(app.backups.all()) == 1
    assert hosts_file.read_text(encoding="utf-8") == "10.0.0.7 edited\n"
    assert app.orchestrator.state is ApplyState.IDLE
