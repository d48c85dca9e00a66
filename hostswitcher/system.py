"""Host-OS helpers: privilege detection and DNS cache flushing."""

import ctypes
import logging
import os
import subprocess
import sys

from .errors import HostSwitcherError

logger = logging.getLogger(__name__)


def is_admin() -> bool:
    """True when the process may write the system hosts file."""
    try:
        return os.getuid() == 0
    except AttributeError:
        try:
            return ctypes.windll.shell32.IsUserAnAdmin() != 0
        except (AttributeError, OSError):
            return False


def _flush_commands(platform):
    if platform.startswith("win"):
        return [['ipconfig', '/flushdns']]
    if platform == "darwin":
        return [['dscacheutil', '-flushcache'], ['killall', '-HUP', 'mDNSResponder']]
    # systemd-resolved, either via resolvectl or a service restart
    return [['resolvectl', 'flush-caches'], ['systemctl', 'restart', 'systemd-resolved']]


def flush_dns(platform=None):
    """Flushes the resolver cache so hosts changes take effect immediately."""
    platform = sys.platform if platform is None else platform
    kwargs = {}
    if platform.startswith("win"):
        kwargs["creationflags"] = getattr(subprocess, "CREATE_NO_WINDOW", 0)

    commands = _flush_commands(platform)
    if platform == "darwin":
        for command in commands:
            _run(command, **kwargs)
        logger.info("Flushed DNS resolver cache")
        return

    errors = []
    for command in commands:
        try:
            _run(command, **kwargs)
        except HostSwitcherError as e:
            errors.append(str(e))
            continue
        logger.info("Flushed DNS resolver cache with %s", command[0])
        return
    raise HostSwitcherError("Error flushing DNS: " + "; ".join(errors))


def _run(command, **kwargs):
    try:
        subprocess.run(command, capture_output=True, check=True, **kwargs)
    except FileNotFoundError as e:
        raise HostSwitcherError(f"{command[0]} is not available") from e
    except subprocess.CalledProcessError as e:
        detail = (e.stderr or b"").decode(errors="replace").strip()
        raise HostSwitcherError(f"{' '.join(command)} exited with {e.returncode}: {detail}") from e
    except OSError as e:
        raise HostSwitcherError(f"Could not run {command[0]}: {e}") from e
