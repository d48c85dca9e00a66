"""Fetching remote hosts lists and merging them into the live hosts file."""

import http.client
import logging
import urllib.error
import urllib.request

from . import __version__, notify, regions
from .errors import HostSwitcherError, NetworkError, ValidationError
from .models import FREQ_STARTUP, SOURCE_REMOTE, STATUS_FAILED, STATUS_PENDING, STATUS_SUCCESS
from .settings import DEFAULT_FETCH_TIMEOUT, DEFAULT_MAX_FETCH_BYTES

logger = logging.getLogger(__name__)

USER_AGENT = f"hostswitcher/{__version__}"
# Used when a remote config's url is no longer tracked by any source.
UNTRACKED_SOURCE_NAME = "Remote source"


def http_get(url, timeout=DEFAULT_FETCH_TIMEOUT, max_bytes=DEFAULT_MAX_FETCH_BYTES) -> str:
    """GETs ``url`` and returns the body as text, cut off at ``max_bytes``.

    Transport failures and non-2xx statuses raise NetworkError.
    """
    req = urllib.request.Request(url, headers={
        'User-Agent': USER_AGENT,
        'Accept': 'text/plain, */*',
        'Accept-Language': 'en-US,en;q=0.9',
    })
    try:
        with urllib.request.urlopen(req, timeout=timeout) as response:
            status = response.getcode()
            if status is not None and not 200 <= status < 300:
                raise NetworkError(f"HTTP Error: {status}", status=status)
            body = response.read(max_bytes + 1)
    except urllib.error.HTTPError as e:
        raise NetworkError(f"HTTP Error {e.code} ({e.reason})", status=e.code) from e
    except urllib.error.URLError as e:
        raise NetworkError(f"Network error ({e.reason})") from e
    except (OSError, ValueError, http.client.HTTPException) as e:
        raise NetworkError(f"Request to {url} failed: {e}") from e
    if len(body) > max_bytes:
        logger.warning("Response from %s exceeds %d bytes, truncating", url, max_bytes)
        body = body[:max_bytes]
    return body.decode('utf-8', errors='replace')


class RemoteMergeEngine:
    """Fetches remote sources and merges them into hosts content as named regions.

    Writes go straight to the gateway; snapshots are the orchestrator's job.
    """

    def __init__(self, gateway, sources, configs, notifier=None,
                 timeout=DEFAULT_FETCH_TIMEOUT, max_bytes=DEFAULT_MAX_FETCH_BYTES):
        self.gateway = gateway
        self.sources = sources
        self.configs = configs
        self.notifier = notifier or notify.Notifier()
        self.timeout = timeout
        self.max_bytes = max_bytes

    # ----------------------------- Pure merge ---------------------------------
    @staticmethod
    def clean(content, source_name):
        return regions.clean(content, source_name)

    @staticmethod
    def merge(current, remote, source_name):
        return regions.merge(current, remote, source_name)

    # ----------------------------- Fetch --------------------------------------
    def fetch(self, source_id) -> str:
        source = self.sources.get(source_id)
        self.sources.record_status(source_id, STATUS_PENDING)
        logger.info("Fetching remote source '%s' from %s", source.name, source.url)
        try:
            body = http_get(source.url, timeout=self.timeout, max_bytes=self.max_bytes)
        except NetworkError as e:
            logger.error("Fetch failed for '%s': %s", source.name, e)
            self.sources.record_status(source_id, STATUS_FAILED)
            raise
        self.sources.record_status(source_id, STATUS_SUCCESS, content=body)
        logger.info("Fetched %d chars from '%s'", len(body), source.name)
        return body

    # ----------------------------- Apply --------------------------------------
    def apply_to_system(self, source_id):
        """Fetch, merge into the live file, validate, write."""
        body = self.fetch(source_id)
        self.write_merged(source_id, body)

    def write_merged(self, source_id, body):
        source = self.sources.get(source_id)
        merged = self.merge(self.gateway.read(), body, source.name)
        self.gateway.validate(merged)
        self.gateway.write(merged)
        logger.info("Applied remote source '%s' to %s", source.name, self.gateway.path)
        self.notifier.emit(notify.SYSTEM_HOSTS_UPDATED)
        self.notifier.emit(notify.REMOTE_APPLIED, source.name)

    def update_all(self) -> dict:
        """Applies every source in turn. Returns ``{source_id: error or None}``."""
        results = {}
        for source in self.sources.all():
            try:
                self.apply_to_system(source.id)
                results[source.id] = None
                logger.info("Updated remote source '%s'", source.name)
            except HostSwitcherError as e:
                logger.error("Updating remote source '%s' failed: %s", source.name, e)
                results[source.id] = e
        return results

    def reconcile_startup_sources(self, before_write=None) -> dict:
        """Fetches ``startup`` sources once; applies only those whose body changed.

        ``before_write(source)`` runs right before a changed body is written.
        """
        results = {}
        for source in self.sources.all():
            if source.update_freq != FREQ_STARTUP:
                continue
            previous = source.last_content
            try:
                body = self.fetch(source.id)
                if previous and body == previous:
                    logger.info("Remote source '%s' unchanged, skipping", source.name)
                    results[source.id] = False
                    continue
                if before_write is not None:
                    before_write(source)
                self.write_merged(source.id, body)
                results[source.id] = True
            except HostSwitcherError as e:
                logger.error("Startup update of '%s' failed: %s", source.name, e)
                self.sources.record_status(source.id, STATUS_FAILED)
                results[source.id] = e
        self.notifier.emit(notify.STARTUP_SOURCES_UPDATED)
        return results

    # ----------------------------- Configs from remote ------------------------
    def create_config_from_remote(self, source_id):
        body = self.fetch(source_id)
        source = self.sources.get(source_id)
        try:
            current = self.gateway.read()
        except HostSwitcherError as e:
            logger.warning("Live hosts unreadable, importing '%s' on its own: %s", source.name, e)
            current = ""
        config = self.configs.create(
            f"{source.name} (remote)",
            f"Fetched from {source.url} and merged into the local hosts",
            self.merge(current, body, source.name),
        )
        return self.configs.update_source(config.id, SOURCE_REMOTE, source.url)

    def update_config_from_remote(self, config_id):
        config = self.configs.get(config_id)
        if config.source != SOURCE_REMOTE or not config.remote_url:
            raise ValidationError(f"Config '{config.name}' is not a remote config")

        source = self.sources.find_by_url(config.remote_url)
        if source is not None:
            body = self.fetch(source.id)
            name = source.name
        else:
            body = http_get(config.remote_url, timeout=self.timeout, max_bytes=self.max_bytes)
            name = UNTRACKED_SOURCE_NAME

        try:
            current = self.gateway.read()
        except HostSwitcherError as e:
            logger.warning("Live hosts unreadable, merging into the stored config: %s", e)
            current = config.content
        self.configs.update(config.id, config.name, config.description,
                            self.merge(current, body, name))
        return self.configs.update_source(config.id, SOURCE_REMOTE, config.remote_url)

    # ----------------------------- Deletion -----------------------------------
    def delete_source(self, source_id):
        """Removes a source, its region in the live file, and configs imported from it.

        The source stays registered when the hosts file cannot be cleaned, so
        the deletion can be retried.
        """
        source = self.sources.get(source_id)

        current = self.gateway.read()
        cleaned = self.clean(current, source.name)
        if cleaned != current:
            try:
                self.gateway.write(cleaned)
            except HostSwitcherError:
                logger.error("Could not clean '%s' from %s, keeping the source", source.name, self.gateway.path)
                raise
            self.notifier.emit(notify.SYSTEM_HOSTS_UPDATED)

        active = self.configs.active()
        for config in self.configs.find_by_remote_url(source.url):
            if active is not None and config.id == active.id:
                logger.warning("Keeping active config '%s' imported from '%s'", config.name, source.name)
                continue
            self.configs.delete(config.id)

        self.sources.remove(source_id)
        self.notifier.emit(notify.REMOTE_CLEANED, source.name)
