"""Runtime settings: ``settings.json`` in the data directory plus environment overrides."""

import json
import logging
import os
from dataclasses import asdict, dataclass, field

from .errors import HostsIOError, ValidationError

logger = logging.getLogger(__name__)

SETTINGS_FILE = "settings.json"
DEFAULT_DATA_DIR = os.path.join("~", ".hosts-manager")

# Automatic backups kept after pruning. Deployments have used both 10 and 99.
DEFAULT_MAX_AUTO_BACKUPS = 10
DEFAULT_FETCH_TIMEOUT = 10.0
DEFAULT_MAX_FETCH_BYTES = 50 * 1024 * 1024
DEFAULT_STARTUP_DELAY = 3.0
DEFAULT_LEGACY_ENCODING = "gbk"

_ENV_PREFIX = "HOSTSWITCHER_"

# setting name -> converter
_FIELDS = {
    "hosts_path": str,
    "max_auto_backups": int,
    "fetch_timeout": float,
    "max_fetch_bytes": int,
    "startup_delay": float,
    "legacy_encoding": str,
    "log_level": str,
}


@dataclass
class Settings:
    data_dir: str = field(default_factory=lambda: os.path.expanduser(DEFAULT_DATA_DIR))
    hosts_path: str = ""  # empty: resolve the platform path
    max_auto_backups: int = DEFAULT_MAX_AUTO_BACKUPS
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT
    max_fetch_bytes: int = DEFAULT_MAX_FETCH_BYTES
    startup_delay: float = DEFAULT_STARTUP_DELAY
    legacy_encoding: str = DEFAULT_LEGACY_ENCODING
    log_level: str = "INFO"

    @property
    def configs_file(self):
        return os.path.join(self.data_dir, "configs.json")

    @property
    def sources_file(self):
        return os.path.join(self.data_dir, "remote_sources.json")

    @property
    def backups_file(self):
        return os.path.join(self.data_dir, "backups.json")

    @property
    def settings_file(self):
        return os.path.join(self.data_dir, SETTINGS_FILE)

    @classmethod
    def load(cls, data_dir=None, environ=None):
        """Builds settings from defaults, then ``settings.json``, then the environment."""
        environ = os.environ if environ is None else environ
        data_dir = data_dir or environ.get(_ENV_PREFIX + "HOME") or DEFAULT_DATA_DIR
        settings = cls(data_dir=os.path.expanduser(data_dir))

        path = settings.settings_file
        if os.path.exists(path):
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    config = json.load(f)
            except (OSError, ValueError) as e:
                raise HostsIOError(f"Could not load settings from {path}: {e}") from e
            for name in _FIELDS:
                if config.get(name) is not None:
                    settings._assign(name, config.get(name), source=path)

        for name in _FIELDS:
            value = environ.get(_ENV_PREFIX + name.upper())
            if value:
                settings._assign(name, value, source=_ENV_PREFIX + name.upper())

        settings._check()
        return settings

    def save(self):
        data = asdict(self)
        data.pop("data_dir")
        try:
            os.makedirs(self.data_dir, exist_ok=True)
            with open(self.settings_file, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=4)
        except OSError as e:
            raise HostsIOError(f"Error saving settings: {e}") from e

    def _assign(self, name, value, source):
        try:
            setattr(self, name, _FIELDS[name](value))
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid value for {name} in {source}: {value!r}")

    def _check(self):
        if self.max_auto_backups < 1:
            raise ValidationError("max_auto_backups must be at least 1")
        if self.fetch_timeout <= 0:
            raise ValidationError("fetch_timeout must be positive")
        if self.max_fetch_bytes < 1:
            raise ValidationError("max_fetch_bytes must be positive")
        if self.startup_delay < 0:
            raise ValidationError("startup_delay cannot be negative")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValidationError(f"Unknown log level: {self.log_level!r}")
