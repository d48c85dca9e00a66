"""Snapshot log of hosts content with automatic and manual retention classes."""

import logging
import threading
from dataclasses import replace

from . import notify
from .errors import ConflictError, HostsIOError, NotFoundError
from .models import Backup, content_hash, unique_tags
from .settings import DEFAULT_MAX_AUTO_BACKUPS
from .storage import read_json, write_json

logger = logging.getLogger(__name__)


def newest_first(backups):
    """Sorts by timestamp descending; equal timestamps keep the later-appended first."""
    ranked = sorted(enumerate(backups), key=lambda pair: (pair[1].timestamp, pair[0]), reverse=True)
    return [backup for _, backup in ranked]


class BackupStore:
    """Append-only snapshots in one ``{"backups": [...]}`` document.

    Automatic backups are deduplicated by content hash and pruned to the
    newest ``max_automatic``; they cannot be deleted one by one. Manual
    backups are never pruned.
    """

    def __init__(self, path, max_automatic=DEFAULT_MAX_AUTO_BACKUPS, notifier=None):
        self.path = path
        self.max_automatic = max_automatic
        self.notifier = notifier or notify.Notifier()
        self._lock = threading.RLock()

    # ------------------------- Persistence -----------------------------
    def _load(self) -> list[Backup]:
        try:
            data = read_json(self.path, default={})
        except ValueError as e:
            raise HostsIOError(f"Backups document {self.path} is corrupt: {e}") from e
        return [Backup.from_dict(item) for item in (data or {}).get("backups") or []]

    def _save(self, backups):
        write_json(self.path, {"backups": [b.to_dict() for b in backups]})

    # ------------------------- Create & prune --------------------------
    def create_backup(self, content, description="", is_automatic=False, tags=None) -> Backup | None:
        """Stores a snapshot. Returns ``None`` when an identical automatic one exists."""
        with self._lock:
            backups = self._load()
            if is_automatic:
                digest = content_hash(content)
                if any(b.is_automatic and b.hash == digest for b in backups):
                    logger.debug("Automatic backup with hash %s already exists", digest[:12])
                    return None

            backup = Backup.snapshot(content, description, is_automatic, tags)
            backups.append(backup)
            self._save(backups)

            if is_automatic:
                pruned = self._prune(backups)
                if len(pruned) != len(backups):
                    self._save(pruned)

        logger.info("Created %s backup %s (%d bytes)",
                    "automatic" if is_automatic else "manual", backup.id, backup.size)
        self.notifier.emit(notify.BACKUP_CREATED, backup.id)
        return backup

    def _prune(self, backups):
        automatic = newest_first([b for b in backups if b.is_automatic])
        if len(automatic) <= self.max_automatic:
            return backups
        logger.info("Pruning %d automatic backups", len(automatic) - self.max_automatic)
        keep = {b.id for b in automatic[:self.max_automatic]}
        # stored order is preserved so equal timestamps keep ranking the same way
        return [b for b in backups if not b.is_automatic or b.id in keep]

    # ------------------------- Queries ---------------------------------
    def all(self) -> list[Backup]:
        with self._lock:
            return newest_first(self._load())

    def get(self, backup_id) -> Backup:
        with self._lock:
            for backup in self._load():
                if backup.id == backup_id:
                    return backup
        raise NotFoundError("Backup", backup_id)

    def restore(self, backup_id) -> str:
        """Returns the stored content. Writing it back, and announcing it, is the caller's job."""
        return self.get(backup_id).content

    def stats(self) -> dict:
        backups = self.all()
        automatic = sum(1 for b in backups if b.is_automatic)
        return {
            "total": len(backups),
            "automatic": automatic,
            "manual": len(backups) - automatic,
            "total_size": sum(b.size for b in backups),
        }

    # ------------------------- Edits & deletion ------------------------
    def delete(self, backup_id):
        with self._lock:
            backups = self._load()
            i = _position(backups, backup_id)
            if backups[i].is_automatic:
                raise ConflictError("Automatic backups cannot be deleted")
            del backups[i]
            self._save(backups)
        logger.info("Deleted backup %s", backup_id)
        self.notifier.emit(notify.BACKUP_DELETED, backup_id)

    def update_tags(self, backup_id, tags) -> Backup:
        return self._edit(backup_id, tags=unique_tags(tags))

    def update_description(self, backup_id, description) -> Backup:
        return self._edit(backup_id, description=description or "")

    def _edit(self, backup_id, **changes):
        with self._lock:
            backups = self._load()
            i = _position(backups, backup_id)
            backups[i] = replace(backups[i], **changes)
            self._save(backups)
        self.notifier.emit(notify.BACKUP_UPDATED, backup_id)
        return backups[i]

    def clear_automatic(self) -> int:
        with self._lock:
            backups = self._load()
            manual = [b for b in backups if not b.is_automatic]
            removed = len(backups) - len(manual)
            if removed:
                self._save(manual)
        logger.info("Cleared %d automatic backups", removed)
        if removed:
            self.notifier.emit(notify.BACKUP_DELETED)
        return removed


def _position(backups, backup_id):
    for i, backup in enumerate(backups):
        if backup.id == backup_id:
            return i
    raise NotFoundError("Backup", backup_id)
