"""Logon time of local interactive sessions.

Joins two WMI object sets:

- Win32_LoggedOnUser: Antecedent (account reference) -> Dependent
  (logon session reference), e.g.
      Antecedent = \\\\.\\root\\cimv2:Win32_Account.Domain="CONTOSO",Name="alice"
      Dependent  = \\\\.\\root\\cimv2:Win32_LogonSession.LogonId="999"
- Win32_LogonSession: LogonId, LogonType, StartTime (CIM_DATETIME).

Only LogonType 2 (interactive) sessions take part in the join.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from .errors import KeyDecodeError
from .models import (
    INTERACTIVE_LOGON_TYPE,
    AccountRef,
    LogonBinding,
    LogonSession,
    account_name,
)

log = logging.getLogger(__name__)

BINDING_CLASS = "Win32_LoggedOnUser"
BINDING_PROPERTIES = ("Antecedent", "Dependent")
SESSION_CLASS = "Win32_LogonSession"
SESSION_PROPERTIES = ("LogonId", "LogonType", "StartTime")

# Optional `\\HOST\root\cimv2:` namespace prefix; HOST is "." for local paths.
_NS = r"(?:\\\\[^\\]+\\root\\cimv2:)?"

_RE_DEPENDENT = re.compile(
    _NS + r'Win32_LogonSession\.LogonId=(?P<q>"?)(?P<id>\d+)(?P=q)$',
    re.IGNORECASE,
)
_RE_ANTECEDENT = re.compile(
    _NS + r'Win32_\w+\.Domain="(?P<domain>[^"]*)",Name="(?P<name>[^"]+)"$',
    re.IGNORECASE,
)
_RE_CIM_DATETIME = re.compile(r"^(\d{14})\.(\d{6})([+-])(\d{3})$")


def parse_dependent(ref: str) -> str:
    """Return the logon id embedded in a Win32_LogonSession reference."""
    m = _RE_DEPENDENT.match((ref or "").strip())
    if not m:
        raise KeyDecodeError(f"not a Win32_LogonSession reference: {ref!r}")
    return m.group("id")


def parse_antecedent(ref: str) -> AccountRef:
    """Return the account a Win32_Account reference points at."""
    m = _RE_ANTECEDENT.match((ref or "").strip())
    if not m:
        raise KeyDecodeError(f"not a Win32_Account reference: {ref!r}")
    return AccountRef(domain=m.group("domain"), name=m.group("name"))


def parse_cim_datetime(value: str) -> datetime:
    """Decode CIM_DATETIME `yyyymmddHHMMSS.ffffff+UUU` (UTC offset in minutes)."""
    m = _RE_CIM_DATETIME.match((value or "").strip())
    if not m:
        raise KeyDecodeError(f"not a CIM_DATETIME value: {value!r}")
    stamp, micro, sign, offset = m.groups()
    minutes = int(offset) if sign == "+" else -int(offset)
    try:
        dt = datetime.strptime(stamp, "%Y%m%d%H%M%S")
    except ValueError as e:
        raise KeyDecodeError(f"bad CIM_DATETIME value {value!r}: {e}") from e
    return dt.replace(microsecond=int(micro), tzinfo=timezone(timedelta(minutes=minutes)))


def _logon_type(value) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError) as e:
        raise KeyDecodeError(f"bad LogonType value: {value!r}") from e


@dataclass
class LogonIndex:
    """Two-stage join of bindings and interactive logon sessions.

    user_ids:    account name (casefolded) -> logon ids, in binding order
    start_times: logon id -> start time, interactive sessions only
    """

    user_ids: dict[str, list[str]] = field(default_factory=dict)
    start_times: dict[str, datetime] = field(default_factory=dict)

    @classmethod
    def build(cls, bindings: list[LogonBinding], sessions: list[LogonSession]) -> "LogonIndex":
        idx = cls()
        for b in bindings:
            account = parse_antecedent(b.antecedent)
            logon_id = parse_dependent(b.dependent)
            idx.user_ids.setdefault(account_name(account.name), []).append(logon_id)
        for s in sessions:
            if s.logon_type == INTERACTIVE_LOGON_TYPE:
                idx.start_times[s.logon_id] = s.start_time
        return idx

    @classmethod
    def load(cls, host) -> "LogonIndex":
        """Run both WMI queries against `host` and build the index."""
        return cls.build(fetch_bindings(host), fetch_logon_sessions(host))

    def logon_ids_for(self, user_name: str) -> list[str]:
        return list(self.user_ids.get(account_name(user_name), []))

    def logon_time(self, user_name: str) -> datetime | None:
        """Start time of the user's interactive logon.

        When several of the user's logon ids resolve, the last one in
        binding order wins. That is not necessarily the most recent logon.
        """
        found = [self.start_times[i] for i in self.logon_ids_for(user_name) if i in self.start_times]
        if len(found) > 1:
            log.debug("%d interactive logons for %s, keeping the last", len(found), user_name)
        return found[-1] if found else None


def fetch_bindings(host) -> list[LogonBinding]:
    rows = host.query_objects(BINDING_CLASS, BINDING_PROPERTIES)
    return [LogonBinding(antecedent=r.get("Antecedent", ""), dependent=r.get("Dependent", "")) for r in rows]


def fetch_logon_sessions(host) -> list[LogonSession]:
    """Fetch Win32_LogonSession; only interactive rows get their StartTime decoded."""
    out: list[LogonSession] = []
    for r in host.query_objects(SESSION_CLASS, SESSION_PROPERTIES):
        logon_type = _logon_type(r.get("LogonType"))
        if logon_type != INTERACTIVE_LOGON_TYPE:
            continue
        out.append(
            LogonSession(
                logon_id=str(r.get("LogonId") or "").strip(),
                logon_type=logon_type,
                start_time=parse_cim_datetime(r.get("StartTime", "")),
            )
        )
    return out


def resolve_logon_time(host, user_name: str) -> datetime | None:
    """Interactive logon time of `user_name` on `host`, or None."""
    return LogonIndex.load(host).logon_time(user_name)
