"""Wires the stores, engine and orchestrator together and owns their lifecycle."""

import logging
import threading

from . import notify
from .backups import BackupStore
from .configs import ConfigStore
from .gateway import HostsFileGateway
from .orchestrator import ApplyOrchestrator
from .remote import RemoteMergeEngine
from .settings import Settings
from .sources import RemoteSourceStore

logger = logging.getLogger(__name__)


class HostSwitcher:
    """Application object. Call :meth:`init` before use and :meth:`shutdown` after.

    Usable as a context manager::

        with HostSwitcher() as app:
            app.orchestrator.apply_config(config_id)
    """

    def __init__(self, settings=None, notifier=None):
        self.settings = settings or Settings.load()
        self.notifier = notifier or notify.Notifier()

        s = self.settings
        self.gateway = HostsFileGateway(s.hosts_path or None, legacy_encoding=s.legacy_encoding)
        self.configs = ConfigStore(s.configs_file, self.notifier)
        self.sources = RemoteSourceStore(s.sources_file, self.notifier)
        self.backups = BackupStore(s.backups_file, s.max_auto_backups, self.notifier)
        self.engine = RemoteMergeEngine(self.gateway, self.sources, self.configs, self.notifier,
                                        timeout=s.fetch_timeout, max_bytes=s.max_fetch_bytes)
        self.orchestrator = ApplyOrchestrator(self.gateway, self.configs, self.backups,
                                              self.engine, self.notifier)
        self._startup_timer = None

    def init(self, run_startup=True):
        """Loads the stores and schedules the one-shot startup source update."""
        logger.info("Starting hostswitcher with data dir %s and hosts file %s",
                    self.settings.data_dir, self.gateway.path)
        self.configs.load()
        self.sources.load()
        if run_startup:
            self._startup_timer = threading.Timer(self.settings.startup_delay, self._run_startup)
            self._startup_timer.daemon = True
            self._startup_timer.start()
        return self

    def _run_startup(self):
        try:
            self.orchestrator.reconcile_startup_sources()
        except Exception:
            logger.exception("Startup remote update failed")

    def shutdown(self, timeout=None):
        timer, self._startup_timer = self._startup_timer, None
        if timer is not None:
            timer.cancel()
            timer.join(timeout)
        logger.info("hostswitcher stopped")

    def __enter__(self):
        return self.init()

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
