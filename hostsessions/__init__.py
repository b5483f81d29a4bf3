"""Who is logged on to a Windows host, and how.

Combines the session table, WMI logon data and a lock-screen process check
into one report per host.

Public API:
    - build_report()
    - list_sessions()
    - resolve_logon_time()
    - probe_lock_state()
    - format_table()
"""

from .correlator import build_report
from .lock_state import probe_lock_state, probe_lock_status
from .logon_time import LogonIndex, resolve_logon_time
from .models import EnrichedSession, LockState, NormalizedSession, SessionKind
from .report import format_table, sort_sessions
from .sessions import list_sessions

__all__ = [
    "build_report",
    "list_sessions",
    "resolve_logon_time",
    "LogonIndex",
    "probe_lock_state",
    "probe_lock_status",
    "format_table",
    "sort_sessions",
    "EnrichedSession",
    "LockState",
    "NormalizedSession",
    "SessionKind",
]

__version__ = "0.1.0"
