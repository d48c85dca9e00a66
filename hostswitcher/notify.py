"""Side-channel change notifications for whatever UI sits on top of the core."""

import logging

logger = logging.getLogger(__name__)

CONFIG_LIST_CHANGED = "config-list-changed"
CONFIG_APPLIED = "config-applied"
SYSTEM_HOSTS_UPDATED = "system-hosts-updated"
REMOTE_LIST_CHANGED = "remote-source-list-changed"
REMOTE_STATUS_CHANGED = "remote-source-status-changed"
REMOTE_APPLIED = "remote-applied-to-system"
REMOTE_CLEANED = "remote-source-cleaned-from-system"
STARTUP_SOURCES_UPDATED = "startup-sources-updated"
BACKUP_CREATED = "backup-created"
BACKUP_UPDATED = "backup-updated"
BACKUP_DELETED = "backup-deleted"
BACKUP_RESTORED = "backup-restored"


class Notifier:
    """Fans events out to subscribed callbacks. Emitting never raises."""

    def __init__(self):
        self._listeners = []

    def subscribe(self, callback):
        """Registers ``callback(event, entity_id)``; returns a function that unsubscribes it."""
        self._listeners.append(callback)
        return lambda: self._listeners.remove(callback)

    def emit(self, event: str, entity_id: str | None = None):
        logger.debug("Event %s (%s)", event, entity_id)
        for callback in list(self._listeners):
            try:
                callback(event, entity_id)
            except Exception:
                logger.exception("Listener %r failed on %s", callback, event)
