"""The single entry point for every mutation of the live hosts file."""

import difflib
import enum
import logging
import threading

from . import notify
from .errors import HostSwitcherError, HostsIOError
from .gateway import DEFAULT_HOSTS_CONTENT

logger = logging.getLogger(__name__)

TAG_RESTORE = "restore"
TAG_REMOTE = "remote"


class ApplyState(enum.Enum):
    IDLE = "idle"
    SNAPSHOTTING = "snapshotting"
    VALIDATING = "validating"
    WRITING = "writing"
    ACTIVATING = "activating"
    ROLLING_BACK = "rolling_back"


class ApplyOrchestrator:
    """Snapshot, validate, write, activate; roll the hosts file back if activation fails.

    All mutations share one lock, so the startup reconciliation thread and
    a user-initiated apply never interleave.
    """

    def __init__(self, gateway, configs, backups, engine=None, notifier=None):
        self.gateway = gateway
        self.configs = configs
        self.backups = backups
        self.engine = engine
        self.notifier = notifier or notify.Notifier()
        self.state = ApplyState.IDLE
        self._lock = threading.RLock()

    def _enter(self, state):
        logger.debug("Apply state %s -> %s", self.state.value, state.value)
        self.state = state

    # ----------------------------- Snapshots ----------------------------------
    def _snapshot(self, content, description, tags=None):
        """Automatic backup of ``content``. A failure here never blocks the write."""
        self._enter(ApplyState.SNAPSHOTTING)
        try:
            return self.backups.create_backup(content, description, is_automatic=True, tags=tags)
        except HostSwitcherError as e:
            logger.warning("Automatic backup failed, continuing without it: %s", e)
            return None

    def _snapshot_live(self, description, tags=None):
        try:
            current = self.gateway.read()
        except HostSwitcherError as e:
            logger.warning("Could not read hosts file for backup: %s", e)
            return None
        return self._snapshot(current, description, tags)

    def backup_now(self, description="", tags=None):
        """Manual backup of the live hosts file."""
        with self._lock:
            return self.backups.create_backup(self.gateway.read(), description,
                                              is_automatic=False, tags=tags)

    # ----------------------------- Apply config -------------------------------
    def apply_config(self, config_id):
        with self._lock:
            try:
                return self._apply_config(config_id)
            finally:
                self._enter(ApplyState.IDLE)

    def _apply_config(self, config_id):
        config = self.configs.get(config_id)
        original = self.gateway.read()

        self._snapshot(original, f"Before applying '{config.name}'")

        self._enter(ApplyState.VALIDATING)
        self.gateway.validate(config.content)

        self._enter(ApplyState.WRITING)
        self.gateway.write(config.content)

        self._enter(ApplyState.ACTIVATING)
        try:
            activated = self.configs.set_active(config_id)
        except HostSwitcherError as e:
            self._rollback(original, f"activating '{config.name}'")
            raise HostsIOError(f"Could not save configs after applying '{config.name}': {e}") from e

        logger.info("Applied config '%s'", config.name)
        self.notifier.emit(notify.CONFIG_APPLIED, config_id)
        self.notifier.emit(notify.CONFIG_LIST_CHANGED)
        self.notifier.emit(notify.SYSTEM_HOSTS_UPDATED)
        return activated

    def _rollback(self, original, step):
        self._enter(ApplyState.ROLLING_BACK)
        try:
            self.gateway.write(original)
        except HostSwitcherError as e:
            logger.error("Rollback after %s failed; hosts file and active config now disagree: %s", step, e)
        else:
            logger.warning("Rolled hosts file back after %s failed", step)

    # ----------------------------- Direct writes ------------------------------
    def write_direct(self, content, description="Before direct edit"):
        """Validate, snapshot, write. The active config flag is left alone."""
        with self._lock:
            try:
                self._write_direct(content, description, self.gateway.write)
            finally:
                self._enter(ApplyState.IDLE)

    def write_direct_legacy(self, content, description="Before direct edit"):
        """Same as :meth:`write_direct`, encoding the file in the legacy codepage."""
        with self._lock:
            try:
                self._write_direct(content, description, self.gateway.write_legacy)
            finally:
                self._enter(ApplyState.IDLE)

    def _write_direct(self, content, description, write):
        self._enter(ApplyState.VALIDATING)
        self.gateway.validate(content)
        self._snapshot_live(description)
        self._enter(ApplyState.WRITING)
        write(content)
        self.notifier.emit(notify.SYSTEM_HOSTS_UPDATED)

    def restore_from_backup(self, backup_id):
        with self._lock:
            content = self.backups.restore(backup_id)
            self._snapshot_live("Before restoring a backup", tags=[TAG_RESTORE])
            self.write_direct(content, description="Before restoring a backup")
        logger.info("Restored hosts file from backup %s", backup_id)
        self.notifier.emit(notify.BACKUP_RESTORED, backup_id)

    def restore_default(self):
        """Writes the stock hosts document and deactivates every config."""
        with self._lock:
            try:
                self._snapshot_live("Before restoring the default hosts file")
                self._enter(ApplyState.WRITING)
                self.gateway.write(DEFAULT_HOSTS_CONTENT)
                self._enter(ApplyState.ACTIVATING)
                self.configs.clear_active()
            finally:
                self._enter(ApplyState.IDLE)
        self.notifier.emit(notify.SYSTEM_HOSTS_UPDATED)

    def preview(self, content) -> list[str]:
        """Unified diff from the live hosts file to ``content``."""
        current = self.gateway.read()
        return list(difflib.unified_diff(
            current.splitlines(), content.splitlines(),
            fromfile=self.gateway.path, tofile="proposed", lineterm="",
        ))

    # ----------------------------- Remote sources -----------------------------
    def apply_remote(self, source_id):
        with self._lock:
            source = self.engine.sources.get(source_id)
            self._snapshot_live(f"Before applying remote source '{source.name}'", tags=[TAG_REMOTE])
            self._enter(ApplyState.IDLE)
            self.engine.apply_to_system(source_id)

    def update_all_remote(self) -> dict:
        with self._lock:
            self._snapshot_live("Before updating all remote sources", tags=[TAG_REMOTE])
            self._enter(ApplyState.IDLE)
            return self.engine.update_all()

    def remove_remote_source(self, source_id):
        with self._lock:
            source = self.engine.sources.get(source_id)
            self._snapshot_live(f"Before removing remote source '{source.name}'", tags=[TAG_REMOTE])
            self._enter(ApplyState.IDLE)
            self.engine.delete_source(source_id)

    def reconcile_startup_sources(self) -> dict:
        """Snapshots only when a changed startup source is about to be written."""
        def snapshot(source):
            self._snapshot_live(f"Before startup update of '{source.name}'", tags=[TAG_REMOTE])
            self._enter(ApplyState.IDLE)

        with self._lock:
            return self.engine.reconcile_startup_sources(before_write=snapshot)
