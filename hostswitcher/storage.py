"""JSON document persistence shared by the stores."""

import json
import logging
import os
import tempfile

from .errors import HostsIOError

logger = logging.getLogger(__name__)


def read_json(path, default=None):
    """Loads a JSON document. A missing or empty file yields ``default``."""
    if not os.path.exists(path):
        return default
    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = f.read()
    except OSError as e:
        raise HostsIOError(f"Could not read {path}: {e}") from e
    if not raw.strip():
        return default
    return json.loads(raw)


def write_json(path, data, indent=2):
    """Writes ``data`` to a temp file next to ``path`` and renames it into place."""
    directory = os.path.dirname(os.path.abspath(path))
    try:
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".tmp-", suffix=".json", dir=directory)
    except OSError as e:
        raise HostsIOError(f"Could not prepare {path}: {e}") from e
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=indent, ensure_ascii=False)
        os.replace(tmp_path, path)
    except OSError as e:
        _discard(tmp_path)
        raise HostsIOError(f"Could not write {path}: {e}") from e
    logger.debug("Wrote %s", path)


def _discard(tmp_path):
    try:
        os.remove(tmp_path)
    except OSError:
        pass
