"""Exception taxonomy shared by every hostswitcher component."""


class HostSwitcherError(Exception):
    """Base class for all recoverable hostswitcher failures."""


class ValidationError(HostSwitcherError):
    """Bad hosts syntax or a blank required field.

    ``line`` is the 1-based line number for syntax errors, ``None`` for
    field validation.
    """

    def __init__(self, reason: str, line: int | None = None):
        self.reason = reason
        self.line = line
        if line is not None:
            super().__init__(f"Line {line}: {reason}")
        else:
            super().__init__(reason)


class NotFoundError(HostSwitcherError):
    def __init__(self, kind: str, entity_id: str):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} not found: {entity_id}")


class ConflictError(HostSwitcherError):
    """The operation was refused because of the target's current state."""


class HostsIOError(HostSwitcherError, OSError):
    """Disk, permission or path failure while reading or writing a file."""


class NetworkError(HostSwitcherError):
    """Remote fetch failed: transport error or non-2xx status."""

    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__(message)
