import json
from datetime import datetime, timezone

import pytest

from hostswitcher import notify
from hostswitcher.backups import BackupStore, newest_first
from hostswitcher.errors import ConflictError, HostsIOError, NotFoundError
from hostswitcher.models import Backup, content_hash


@pytest.fixture
def store(tmp_path, recorder):
    notifier = notify.Notifier()
    notifier.subscribe(recorder)
    return BackupStore(str(tmp_path / "backups.json"), max_automatic=3, notifier=notifier)


def test_create_records_size_and_hash(store, tmp_path):
    backup = store.create_backup("127.0.0.1 héllo\n", "first", is_automatic=False)

    assert backup.size == len("127.0.0.1 héllo\n".encode("utf-8"))
    assert backup.hash == content_hash("127.0.0.1 héllo\n")
    doc = json.loads((tmp_path / "backups.json").read_text(encoding="utf-8"))
    assert doc["backups"][0]["isAutomatic"] is False


def test_duplicate_automatic_backup_is_skipped(store, recorder):
    first = store.create_backup("1.1.1.1 a\n", "auto", is_automatic=True)
    second = store.create_backup("1.1.1.1 a\n", "auto again", is_automatic=True)

    assert first is not None
    assert second is None
    assert len(store.all()) == 1
    assert recorder.names() == [notify.BACKUP_CREATED]


def test_manual_backups_may_repeat_content(store):
    store.create_backup("1.1.1.1 a\n", "auto", is_automatic=True)
    store.create_backup("1.1.1.1 a\n", "keep", is_automatic=False)
    store.create_backup("1.1.1.1 a\n", "keep", is_automatic=False)
    assert store.stats()["manual"] == 2


def test_automatic_backups_are_pruned_to_newest(store):
    manual = store.create_backup("0.0.0.0 manual\n", "manual", is_automatic=False)
    for i in range(5):
        store.create_backup(f"10.0.0.{i} host\n", f"auto {i}", is_automatic=True)

    automatic = [b for b in store.all() if b.is_automatic]
    assert [b.description for b in automatic] == ["auto 4", "auto 3", "auto 2"]
    assert store.get(manual.id).description == "manual"


def test_all_is_newest_first(store):
    for i in range(3):
        store.create_backup(f"10.0.0.{i} host\n", f"manual {i}")
    assert [b.description for b in store.all()] == ["manual 2", "manual 1", "manual 0"]


def test_newest_first_breaks_ties_by_insertion():
    stamp = datetime(2024, 5, 1, tzinfo=timezone.utc)
    older = Backup("a", stamp, "", "", 0, False, "")
    newer = Backup("b", stamp, "", "", 0, False, "")
    assert [b.id for b in newest_first([older, newer])] == ["b", "a"]


def test_delete_refuses_automatic(store):
    auto = store.create_backup("1.1.1.1 a\n", is_automatic=True)
    with pytest.raises(ConflictError):
        store.delete(auto.id)
    assert store.get(auto.id)


def test_delete_manual(store, recorder):
    manual = store.create_backup("1.1.1.1 a\n")
    store.delete(manual.id)
    with pytest.raises(NotFoundError):
        store.get(manual.id)
    assert recorder.events[-1] == (notify.BACKUP_DELETED, manual.id)


def test_restore_returns_content_without_announcing(store, recorder):
    backup = store.create_backup("9.9.9.9 nine\n")
    assert store.restore(backup.id) == "9.9.9.9 nine\n"
    assert notify.BACKUP_RESTORED not in recorder.names()
    with pytest.raises(NotFoundError):
        store.restore("missing")


def test_tags_behave_like_a_set(store):
    backup = store.create_backup("1.1.1.1 a\n", tags=["work", "work"])
    assert backup.tags == ["work"]

    updated = store.update_tags(backup.id, ["lab", "work", "lab", " "])
    assert updated.tags == ["lab", "work"]
    assert store.get(backup.id).tags == ["lab", "work"]


def test_update_description(store):
    backup = store.create_backup("1.1.1.1 a\n", "old")
    store.update_description(backup.id, "new")
    assert store.get(backup.id).description == "new"


def test_clear_automatic_keeps_manual(store):
    store.create_backup("1.1.1.1 a\n", is_automatic=True)
    store.create_backup("2.2.2.2 b\n", is_automatic=True)
    manual = store.create_backup("3.3.3.3 c\n")

    assert store.clear_automatic() == 2
    assert [b.id for b in store.all()] == [manual.id]
    assert store.clear_automatic() == 0


def test_stats(store):
    store.create_backup("1.1.1.1 a\n", is_automatic=True)
    store.create_backup("22.2.2.2 bb\n")
    assert store.stats() == {"total": 2, "automatic": 1, "manual": 1, "total_size": 10 + 12}


def test_corrupt_document_raises(tmp_path):
    path = tmp_path / "backups.json"
    path.write_text("[[[", encoding="utf-8")
    with pytest.raises(HostsIOError):
        BackupStore(str(path)).all()
