"""Hosts file profile manager: named configs, remote sources, automatic backups."""

__version__ = "1.0.0"

from .app import HostSwitcher
from .errors import (ConflictError, HostsIOError, HostSwitcherError, NetworkError,
                     NotFoundError, ValidationError)
from .models import Backup, Config, RemoteSource
from .settings import Settings

__all__ = [
    "HostSwitcher",
    "Settings",
    "Config",
    "RemoteSource",
    "Backup",
    "HostSwitcherError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "HostsIOError",
    "NetworkError",
]
