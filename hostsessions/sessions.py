"""Session table parsing (`qwinsta` output).

`qwinsta` leaves the SESSIONNAME column blank for disconnected and some
remote sessions, so whitespace tokenizing shifts every later field one
position to the left:

    SESSIONNAME       USERNAME                 ID  STATE   TYPE        DEVICE
   >console           alice                     1  Active
    rdp-tcp#0         bob                       2  Active  rdpwd
                      carol                     3  Disc

The third row tokenizes as `carol 3 Disc`. That one shift is repaired here;
any other malformed row is an error.
"""
from __future__ import annotations

import logging
import re

from .errors import SessionParseError
from .models import (
    CONSOLE_SESSION_NAME,
    PSEUDO_USERS,
    REMOTE_SESSION_NAME,
    NormalizedSession,
    RawSessionRow,
    SessionKind,
)

log = logging.getLogger(__name__)

_RE_WS = re.compile(r"\s+")
_RE_ALPHA = re.compile(r"[^\W\d_]")


def _is_shifted(user_slot: str) -> bool:
    return not _RE_ALPHA.search(user_slot or "")


def parse_session_row(line: str) -> RawSessionRow:
    """Tokenize one table row and repair the missing-SESSIONNAME shift."""
    s = (line or "").strip().lstrip(">").strip()
    fields = [f for f in _RE_WS.split(s) if f]
    if len(fields) < 2:
        raise SessionParseError(line, "too few fields")

    if _is_shifted(fields[1]):
        # user id state [type [device]]
        if not 3 <= len(fields) <= 5:
            raise SessionParseError(line, f"{len(fields)} fields in shifted row")
        user, sid, state = fields[0], fields[1], fields[2]
        rest = fields[3:] + ["", ""]
        row = RawSessionRow(REMOTE_SESSION_NAME, user, sid, state, rest[0], rest[1])
    else:
        if not 4 <= len(fields) <= 6:
            raise SessionParseError(line, f"{len(fields)} fields")
        rest = fields[4:] + ["", ""]
        row = RawSessionRow(fields[0], fields[1], fields[2], fields[3], rest[0], rest[1])

    if not row.id.isdigit():
        raise SessionParseError(line, f"session id {row.id!r} is not numeric")
    return row


def parse_session_table(text: str) -> list[RawSessionRow]:
    """Parse full table output; the first non-empty line is the header."""
    lines = [ln for ln in (text or "").splitlines() if ln.strip()]
    return [parse_session_row(ln) for ln in lines[1:]]


def is_pseudo_user(user_name: str) -> bool:
    return (user_name or "").strip().lower() in PSEUDO_USERS


def normalize_row(row: RawSessionRow) -> NormalizedSession:
    kind = SessionKind.CONSOLE if row.session_name.lower() == CONSOLE_SESSION_NAME else SessionKind.REMOTE
    return NormalizedSession(
        user_name=row.user_name,
        session_id=row.id,
        session_kind=kind,
        raw_state=row.state,
        session_name=row.session_name,
    )


def normalize_sessions(rows: list[RawSessionRow]) -> list[NormalizedSession]:
    return [normalize_row(r) for r in rows if not is_pseudo_user(r.user_name)]


def list_sessions(host) -> list[NormalizedSession]:
    """Fetch and normalize the session table of `host`.

    `host` is anything with a `session_table()` method (see
    `hostsessions.remote.RemoteHost`). Transport and parse failures
    propagate as `RemoteQueryError`.
    """
    rows = parse_session_table(host.session_table())
    sessions = normalize_sessions(rows)
    log.debug("session table: %d rows, %d user sessions", len(rows), len(sessions))
    return sessions
