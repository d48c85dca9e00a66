"""Raw access to the operating system hosts file."""

import logging
import ntpath
import os
import shutil
import sys
import tempfile

from .errors import HostsIOError, ValidationError

logger = logging.getLogger(__name__)

POSIX_HOSTS_PATH = "/etc/hosts"
WINDOWS_FALLBACK_ROOT = r"C:\Windows"
WINDOWS_HOSTS_SUBPATH = ("System32", "drivers", "etc", "hosts")

DEFAULT_HEADER = [
    "# Copyright (c) 1993-2009 Microsoft Corp.",
    "#",
    "# This is a sample HOSTS file used by Microsoft TCP/IP for Windows.",
    "#",
    "# This file contains the mappings of IP addresses to host names. Each",
    "# entry should be kept on an individual line. The IP address should",
    "# be placed in the first column followed by the corresponding host name.",
    "# The IP address and the host name should be separated by at least one",
    "# space.",
    "#",
    "# Additionally, comments (such as these) may be inserted on individual",
    "# lines or following the machine name denoted by a '#' symbol.",
    "#",
    "# For example:",
    "#",
    "#      102.54.94.97     rhino.acme.com          # source server",
    "#       38.25.63.10     x.acme.com              # x client host",
    "",
    "# localhost name resolution is handled within DNS itself.",
    "",
]

DEFAULT_HOSTS_CONTENT = "\n".join(DEFAULT_HEADER + [
    "127.0.0.1       localhost",
    "::1             localhost",
    "",
])


def resolve_hosts_path(platform=None, environ=None) -> str:
    """Returns the system hosts path for ``platform`` (defaults to the running one)."""
    platform = sys.platform if platform is None else platform
    environ = os.environ if environ is None else environ
    if not platform.startswith("win"):
        return POSIX_HOSTS_PATH
    root = environ.get("SystemRoot") or environ.get("WINDIR") or WINDOWS_FALLBACK_ROOT
    return ntpath.join(root, *WINDOWS_HOSTS_SUBPATH)


def validate_hosts_content(content: str):
    """Line-oriented syntax check: every active line needs an address and a hostname."""
    for number, line in enumerate(content.split("\n"), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith('#'):
            continue
        if len(stripped.split()) < 2:
            raise ValidationError("expected '<address> <hostname> [aliases...]'", line=number)


class HostsFileGateway:
    """Owns the hosts file path and its raw I/O. Holds no business logic."""

    def __init__(self, path=None, legacy_encoding="gbk"):
        self._path = path or None
        self.legacy_encoding = legacy_encoding

    @property
    def path(self) -> str:
        if self._path is None:
            self._path = resolve_hosts_path()
        return self._path

    def validate(self, content: str):
        validate_hosts_content(content)

    # ----------------------------- Read ---------------------------------------
    def read(self) -> str:
        path = self.path
        if not os.path.exists(path):
            logger.warning("Hosts file %s is missing, creating the default document", path)
            try:
                self._write_bytes(DEFAULT_HOSTS_CONTENT.encode("utf-8"))
            except HostsIOError as e:
                logger.error("Could not create default hosts file: %s", e)
        try:
            with open(path, 'rb') as f:
                raw = f.read()
        except OSError as e:
            raise HostsIOError(f"Error reading hosts file {path}: {e}") from e
        return self._decode(raw)

    def _decode(self, raw: bytes) -> str:
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError:
            logger.info("Hosts file is not UTF-8, decoding as %s", self.legacy_encoding)
            return raw.decode(self.legacy_encoding, errors="replace")

    # ----------------------------- Write --------------------------------------
    def write(self, content: str):
        self._write_bytes(content.encode("utf-8"))
        logger.info("Wrote hosts file %s (%d chars)", self.path, len(content))

    def write_legacy(self, content: str):
        """Writes ``content`` re-encoded to the legacy codepage, UTF-8 if that fails."""
        self.validate(content)
        try:
            data = content.encode(self.legacy_encoding)
        except (UnicodeEncodeError, LookupError) as e:
            logger.warning("%s encoding failed, writing UTF-8 instead: %s", self.legacy_encoding, e)
            data = content.encode("utf-8")
        self._write_bytes(data)
        logger.info("Wrote hosts file %s using %s", self.path, self.legacy_encoding)

    def _write_bytes(self, data: bytes):
        path = self.path
        directory = os.path.dirname(os.path.abspath(path))
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as e:
            raise HostsIOError(f"Hosts directory {directory} is unavailable: {e}") from e
        try:
            self._replace(path, directory, data)
        except OSError as e:
            # Bind-mounted or locked hosts files refuse rename; overwrite in place.
            logger.debug("Rename into %s refused (%s), overwriting in place", path, e)
            try:
                with open(path, 'wb') as f:
                    f.write(data)
            except OSError as e:
                raise HostsIOError(f"Error writing hosts file {path}: {e}") from e

    @staticmethod
    def _replace(path, directory, data):
        fd, tmp_path = tempfile.mkstemp(prefix=".hosts-", dir=directory)
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
            if os.path.exists(path):
                shutil.copymode(path, tmp_path)
            else:
                os.chmod(tmp_path, 0o644)
            os.replace(tmp_path, path)
        except OSError:
            try:
                os.remove(tmp_path)
            except OSError:
                pass
            raise
