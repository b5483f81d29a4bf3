from __future__ import annotations

import concurrent.futures
import logging

from .errors import RemoteQueryError
from .lock_state import probe_lock_state, render_lock_state
from .logon_time import LogonIndex
from .models import LOCAL_LOGIN, REMOTE_LOGIN, EnrichedSession, NormalizedSession, SessionKind
from .sessions import list_sessions

log = logging.getLogger(__name__)


def to_enriched(s: NormalizedSession) -> EnrichedSession:
    """Relabel a session; remote sessions keep the table state as status."""
    if s.session_kind == SessionKind.CONSOLE:
        return EnrichedSession(user_name=s.user_name, login_type=LOCAL_LOGIN, session_id=s.session_id)
    return EnrichedSession(
        user_name=s.user_name,
        login_type=REMOTE_LOGIN,
        status=s.raw_state,
        session_id=s.session_id,
    )


def load_logon_index(host) -> LogonIndex | None:
    try:
        return LogonIndex.load(host)
    except RemoteQueryError as e:
        log.warning("Logon times unavailable: %s", e)
        return None


def enrich_local(rec: EnrichedSession, host, index: LogonIndex | None, lock_compat: bool = True) -> EnrichedSession:
    if index is not None:
        rec.logon_time = index.logon_time(rec.user_name)
    rec.lock_state = probe_lock_state(host, rec.user_name)
    rec.status = render_lock_state(rec.lock_state, compat=lock_compat)
    return rec


def build_report(host, *, workers: int = 1, lock_compat: bool = True) -> list[EnrichedSession]:
    """One enriched record per human session on `host`.

    Session table errors abort the report. Logon time and lock state
    failures only leave the affected fields empty.
    workers > 1 probes console sessions in parallel; result order is not
    meaningful either way.
    """
    report = [to_enriched(s) for s in list_sessions(host)]
    local = [r for r in report if r.is_local]
    if not local:
        return report

    index = load_logon_index(host)

    def _enrich(rec: EnrichedSession) -> EnrichedSession:
        return enrich_local(rec, host, index, lock_compat=lock_compat)

    workers = max(1, int(workers or 1))
    if workers > 1 and len(local) > 1:
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=min(workers, len(local)),
            thread_name_prefix="enrich",
        ) as ex:
            list(ex.map(_enrich, local))
    else:
        for rec in local:
            _enrich(rec)

    log.info("Report for %s: %d sessions (%d local)", getattr(host, "name", host), len(report), len(local))
    return report
