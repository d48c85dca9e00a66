"""Tracked remote hosts-list sources, persisted as one JSON array."""

import logging
import threading
from dataclasses import replace

from . import notify
from .errors import ConflictError, NotFoundError, ValidationError
from .models import (FREQ_MANUAL, STATUS_FAILED, STATUS_PENDING, STATUS_SUCCESS,
                     UPDATE_FREQUENCIES, RemoteSource, new_id, now)
from .storage import read_json, write_json

logger = logging.getLogger(__name__)


def validate_source_fields(name, url, update_freq):
    if not name or not name.strip():
        raise ValidationError("Source name cannot be empty")
    if not url or not url.strip():
        raise ValidationError("Source URL cannot be empty")
    if not url.lower().startswith(('http://', 'https://')):
        raise ValidationError("URL must start with http:// or https://")
    if update_freq not in UPDATE_FREQUENCIES:
        raise ValidationError(f"Update frequency must be one of {', '.join(UPDATE_FREQUENCIES)}")


class RemoteSourceStore:
    """CRUD over remote sources. Names double as merge-region keys, so they are unique."""

    def __init__(self, path, notifier=None):
        self.path = path
        self.notifier = notifier or notify.Notifier()
        self._lock = threading.RLock()
        self._sources: list[RemoteSource] = []

    # ------------------------- Persistence -----------------------------
    def load(self):
        """Loads the document, upgrading the legacy single-object form to an array."""
        with self._lock:
            try:
                data = read_json(self.path, default=[])
            except ValueError as e:
                logger.error("Remote sources document %s is unreadable, starting empty: %s", self.path, e)
                self._sources = []
                return

            upgraded = False
            if isinstance(data, dict):
                logger.info("Upgrading legacy single remote source in %s to a list", self.path)
                data = [data]
                upgraded = True
            elif not isinstance(data, list):
                logger.error("Unexpected remote sources document in %s, starting empty", self.path)
                data = []

            self._sources = [self._repair(RemoteSource.from_dict(item))
                             for item in data if isinstance(item, dict)]
            if upgraded:
                self._save(self._sources)
        logger.info("Loaded %d remote sources from %s", len(self._sources), self.path)

    @staticmethod
    def _repair(source):
        if not source.id:
            source.id = new_id()
            logger.info("Assigned id %s to remote source '%s'", source.id, source.name)
        if not source.url:
            source.status = STATUS_FAILED
            logger.warning("Remote source '%s' has no URL and was marked failed", source.name)
        if not source.update_freq:
            source.update_freq = FREQ_MANUAL
        if not source.status:
            source.status = STATUS_PENDING
        if source.last_updated_at is None:
            source.last_updated_at = now()
        return source

    def _save(self, sources):
        write_json(self.path, [s.to_dict() for s in sources])

    def _commit(self, sources):
        self._save(sources)
        self._sources = sources

    # ------------------------- Queries ---------------------------------
    def all(self) -> list[RemoteSource]:
        with self._lock:
            return list(self._sources)

    def get(self, source_id) -> RemoteSource:
        with self._lock:
            return self._sources[self._index(source_id)]

    def find_by_url(self, url) -> RemoteSource | None:
        with self._lock:
            return next((s for s in self._sources if s.url == url), None)

    def _index(self, source_id):
        if not source_id or not str(source_id).strip():
            raise ValidationError("Source id cannot be empty")
        for i, source in enumerate(self._sources):
            if source.id == source_id:
                return i
        raise NotFoundError("Remote source", source_id)

    def _check_unique(self, name, exclude_id=None):
        if any(s.name == name and s.id != exclude_id for s in self._sources):
            raise ConflictError(f"Source name already exists: {name}")

    # ------------------------- Mutations -------------------------------
    def add(self, name, url, update_freq=FREQ_MANUAL) -> RemoteSource:
        validate_source_fields(name, url, update_freq)
        source = RemoteSource(
            id=new_id(),
            name=name,
            url=url,
            update_freq=update_freq,
            last_updated_at=now(),
            status=STATUS_PENDING,
        )
        with self._lock:
            self._check_unique(name)
            self._commit(self._sources + [source])
        logger.info("Added remote source '%s' (%s)", name, url)
        self.notifier.emit(notify.REMOTE_LIST_CHANGED)
        return source

    def update(self, source_id, name, url, update_freq) -> RemoteSource:
        validate_source_fields(name, url, update_freq)
        with self._lock:
            i = self._index(source_id)
            self._check_unique(name, exclude_id=source_id)
            updated = replace(self._sources[i], name=name, url=url, update_freq=update_freq)
            self._commit(self._swap(i, updated))
        self.notifier.emit(notify.REMOTE_LIST_CHANGED)
        return updated

    def remove(self, source_id) -> RemoteSource:
        with self._lock:
            i = self._index(source_id)
            removed = self._sources[i]
            self._commit(self._sources[:i] + self._sources[i + 1:])
        logger.info("Removed remote source '%s'", removed.name)
        self.notifier.emit(notify.REMOTE_LIST_CHANGED)
        return removed

    def record_status(self, source_id, status, content=None) -> RemoteSource:
        """Stores a fetch outcome. ``content`` is only kept for successful fetches."""
        with self._lock:
            i = self._index(source_id)
            changes = {"status": status}
            if status == STATUS_SUCCESS:
                changes["last_updated_at"] = now()
                if content is not None:
                    changes["last_content"] = content
            updated = replace(self._sources[i], **changes)
            self._commit(self._swap(i, updated))
        self.notifier.emit(notify.REMOTE_STATUS_CHANGED, source_id)
        return updated

    def _swap(self, index, source):
        sources = list(self._sources)
        sources[index] = source
        return sources
