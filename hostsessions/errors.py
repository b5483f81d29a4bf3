from __future__ import annotations


class HostSessionsError(Exception):
    """Base class for everything this package raises on purpose."""


class HostUnreachable(HostSessionsError):
    def __init__(self, host: str):
        super().__init__(f"{host} is down")
        self.host = host


class RemoteQueryError(HostSessionsError):
    """A remote query failed or returned data we can't trust."""


class SessionParseError(RemoteQueryError):
    """Session table row matches neither the normal nor the shifted layout."""

    def __init__(self, line: str, reason: str):
        super().__init__(f"unparseable session row ({reason}): {line!r}")
        self.line = line
        self.reason = reason


class KeyDecodeError(RemoteQueryError):
    """WMI reference path or CIM datetime has an unexpected shape."""


class ProbeFailure(RemoteQueryError):
    """Process enumeration for the lock-state probe failed."""
