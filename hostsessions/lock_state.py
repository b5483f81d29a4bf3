from __future__ import annotations

import logging

from .models import LockState

log = logging.getLogger(__name__)

LOCK_SCREEN_PROCESS = "LogonUI.exe"

STATUS_LOCKED = "locked"
STATUS_NOT_LOCKED = "not locked"
STATUS_UNKNOWN = "unknown"


def probe_lock_state(host, session_indicator: str) -> LockState:
    """Check whether the console is sitting on the lock screen.

    A running LogonUI.exe plus a non-empty session indicator (the console
    user name) means LOCKED. A failed enumeration is UNAVAILABLE, not a
    negative result.
    """
    try:
        procs = host.list_processes(LOCK_SCREEN_PROCESS)
    except Exception as e:
        log.warning("Lock-state probe failed: %s", e)
        return LockState.UNAVAILABLE

    if procs and (session_indicator or "").strip():
        return LockState.LOCKED
    return LockState.UNLOCKED


def render_lock_state(state: LockState | None, compat: bool = True) -> str:
    """Status text for the report.

    compat=True renders an unavailable probe as "not locked".
    """
    if state == LockState.LOCKED:
        return STATUS_LOCKED
    if state == LockState.UNLOCKED:
        return STATUS_NOT_LOCKED
    return STATUS_NOT_LOCKED if compat else STATUS_UNKNOWN


def probe_lock_status(host, session_indicator: str, compat: bool = True) -> str:
    return render_lock_state(probe_lock_state(host, session_indicator), compat=compat)
