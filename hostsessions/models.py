from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


LOCAL_LOGIN = "Local Log-in"
REMOTE_LOGIN = "Remote Log-in"

REMOTE_SESSION_NAME = "remote"
CONSOLE_SESSION_NAME = "console"

# Session-table owners that are not people.
PSEUDO_USERS = frozenset({"rdp-tcp", "services", "console"})

INTERACTIVE_LOGON_TYPE = 2


def account_name(login: str) -> str:
    """Normalize a login to its account-name token (casefolded).

    Supported:
      - DOMAIN\\user -> user
      - user@domain -> user
      - user -> user
    """
    s = (login or "").strip()
    if not s:
        return ""
    if "\\" in s:
        s = s.split("\\", 1)[1]
    if "@" in s:
        s = s.split("@", 1)[0]
    return (s or "").strip().casefold()


class SessionKind(str, Enum):
    CONSOLE = "console"
    REMOTE = "remote"


class LockState(str, Enum):
    LOCKED = "locked"
    UNLOCKED = "unlocked"
    UNAVAILABLE = "unavailable"  # probe failed, nothing measured


@dataclass(frozen=True)
class RawSessionRow:
    session_name: str
    user_name: str
    id: str
    state: str
    type: str = ""
    device: str = ""


@dataclass(frozen=True)
class NormalizedSession:
    user_name: str
    session_id: str
    session_kind: SessionKind
    raw_state: str
    session_name: str = ""


@dataclass(frozen=True)
class AccountRef:
    domain: str
    name: str


@dataclass(frozen=True)
class LogonBinding:
    antecedent: str
    dependent: str


@dataclass(frozen=True)
class LogonSession:
    logon_id: str
    logon_type: int
    start_time: datetime


@dataclass
class EnrichedSession:
    user_name: str
    login_type: str
    status: str = ""
    logon_time: datetime | None = None
    session_id: str = ""
    lock_state: LockState | None = None

    @property
    def is_local(self) -> bool:
        return self.login_type == LOCAL_LOGIN
