"""Named hosts profiles, persisted as one JSON array."""

import logging
import threading
from dataclasses import replace

from . import notify
from .errors import ConflictError, HostsIOError, NotFoundError, ValidationError
from .models import SOURCE_LOCAL, SOURCE_REMOTE, Config, new_id, now
from .storage import read_json, write_json

logger = logging.getLogger(__name__)


class ConfigStore:
    """CRUD over the profile collection plus the single active flag.

    Every mutation builds the new collection, persists it, and only then swaps
    it in, so a failed save leaves memory and disk as they were.
    """

    def __init__(self, path, notifier=None):
        self.path = path
        self.notifier = notifier or notify.Notifier()
        self._lock = threading.RLock()
        self._configs: list[Config] = []

    # ------------------------- Persistence -----------------------------
    def load(self):
        try:
            data = read_json(self.path, default=[])
        except ValueError as e:
            raise HostsIOError(f"Configs document {self.path} is corrupt: {e}") from e
        with self._lock:
            self._configs = [Config.from_dict(item) for item in data or []]
        logger.info("Loaded %d configs from %s", len(self._configs), self.path)

    def _commit(self, configs):
        write_json(self.path, [c.to_dict() for c in configs])
        self._configs = configs

    # ------------------------- Queries ---------------------------------
    def all(self) -> list[Config]:
        with self._lock:
            return list(self._configs)

    def get(self, config_id) -> Config:
        with self._lock:
            return self._configs[self._index(config_id)]

    def active(self) -> Config | None:
        with self._lock:
            return next((c for c in self._configs if c.is_active), None)

    def find_by_remote_url(self, url) -> list[Config]:
        with self._lock:
            return [c for c in self._configs if c.source == SOURCE_REMOTE and c.remote_url == url]

    def _index(self, config_id):
        for i, config in enumerate(self._configs):
            if config.id == config_id:
                return i
        raise NotFoundError("Config", config_id)

    # ------------------------- Mutations -------------------------------
    def create(self, name, description, content) -> Config:
        _require(name, "Config name")
        _require(content, "Config content")
        stamp = now()
        config = Config(
            id=new_id(),
            name=name,
            description=description or "",
            content=content,
            source=SOURCE_LOCAL,
            created_at=stamp,
            updated_at=stamp,
        )
        with self._lock:
            self._commit(self._configs + [config])
        logger.info("Created config '%s' (%s)", name, config.id)
        self.notifier.emit(notify.CONFIG_LIST_CHANGED)
        return config

    def update(self, config_id, name, description, content) -> Config:
        _require(name, "Config name")
        _require(content, "Config content")
        with self._lock:
            i = self._index(config_id)
            updated = replace(self._configs[i], name=name, description=description or "",
                              content=content, updated_at=now())
            self._commit(self._swap(i, updated))
        self.notifier.emit(notify.CONFIG_LIST_CHANGED)
        return updated

    def delete(self, config_id):
        with self._lock:
            current = self.active()
            if current is not None and current.id == config_id:
                raise ConflictError(f"Cannot delete the active config '{current.name}'")
            i = self._index(config_id)
            self._commit(self._configs[:i] + self._configs[i + 1:])
        logger.info("Deleted config %s", config_id)
        self.notifier.emit(notify.CONFIG_LIST_CHANGED)

    def set_active(self, config_id) -> Config:
        """Marks ``config_id`` as the only active profile.

        Only the apply pipeline calls this, after the hosts file was written.
        """
        with self._lock:
            self._index(config_id)
            stamp = now()
            configs = [
                replace(c, is_active=True, updated_at=stamp) if c.id == config_id
                else replace(c, is_active=False)
                for c in self._configs
            ]
            self._commit(configs)
            return self.get(config_id)

    def clear_active(self):
        with self._lock:
            self._commit([replace(c, is_active=False) for c in self._configs])
        self.notifier.emit(notify.CONFIG_LIST_CHANGED)

    def update_source(self, config_id, source, remote_url="") -> Config:
        if source not in (SOURCE_LOCAL, SOURCE_REMOTE):
            raise ValidationError(f"Unknown config source: {source!r}")
        with self._lock:
            i = self._index(config_id)
            updated = replace(self._configs[i], source=source,
                              remote_url=remote_url if source == SOURCE_REMOTE else "",
                              updated_at=now())
            self._commit(self._swap(i, updated))
        self.notifier.emit(notify.CONFIG_LIST_CHANGED)
        return updated

    def _swap(self, index, config):
        configs = list(self._configs)
        configs[index] = config
        return configs


def _require(value, label):
    if not value or not str(value).strip():
        raise ValidationError(f"{label} cannot be empty")
