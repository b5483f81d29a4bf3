from datetime import datetime, timezone

import pytest

from conftest import LOGONUI, FakeHost, binding, logon_session
from hostsessions.correlator import build_report
from hostsessions.errors import RemoteQueryError, SessionParseError
from hostsessions.models import LOCAL_LOGIN, REMOTE_LOGIN, LockState


def by_user(report):
    return {r.user_name: r for r in report}


def test_full_report(locked_host):
    report = by_user(build_report(locked_host))
    assert set(report) == {"alice", "bob", "carol"}

    alice = report["alice"]
    assert alice.login_type == LOCAL_LOGIN
    assert alice.status == "locked"
    assert alice.lock_state == LockState.LOCKED
    assert alice.logon_time.year == 2024
    assert alice.session_id == "1"

    assert report["bob"].login_type == REMOTE_LOGIN
    assert report["bob"].status == "Active"
    assert report["carol"].login_type == REMOTE_LOGIN
    assert report["carol"].status == "Disc"


def test_remote_sessions_never_get_a_logon_time(fake_host):
    for rec in build_report(fake_host):
        if rec.login_type == REMOTE_LOGIN:
            assert rec.logon_time is None
            assert rec.lock_state is None


def test_local_logon_time_not_in_future(fake_host):
    now = datetime.now(timezone.utc)
    for rec in build_report(fake_host):
        if rec.login_type == LOCAL_LOGIN and rec.logon_time is not None:
            assert rec.logon_time <= now


def test_console_user_without_binding_is_still_reported():
    host = FakeHost(objects={"Win32_LoggedOnUser": [binding("bob", "2002")], "Win32_LogonSession": []})
    alice = by_user(build_report(host))["alice"]
    assert alice.logon_time is None
    assert alice.status == "not locked"


def test_logon_query_failure_leaves_time_empty():
    host = FakeHost(processes=LOGONUI, object_errors={"Win32_LoggedOnUser": RemoteQueryError("access denied")})
    alice = by_user(build_report(host))["alice"]
    assert alice.logon_time is None
    assert alice.status == "locked"


def test_probe_failure_maps_to_not_locked(probe_failure):
    host = FakeHost(processes=LOGONUI, process_error=probe_failure)
    alice = by_user(build_report(host))["alice"]
    assert alice.status == "not locked"
    assert alice.lock_state == LockState.UNAVAILABLE
    assert alice.logon_time is not None

    strict = by_user(build_report(host, lock_compat=False))["alice"]
    assert strict.status == "unknown"


def test_session_table_failure_aborts():
    with pytest.raises(RemoteQueryError):
        build_report(FakeHost(table=RemoteQueryError("WinRM ports 5985/5986 are closed")))
    with pytest.raises(SessionParseError):
        build_report(FakeHost(table="HEADER\n console alice x Active\n"))


def test_only_remote_sessions_skip_wmi_queries():
    table = "SESSIONNAME USERNAME ID STATE\n rdp-tcp#3 bob 2 Active\n"
    host = FakeHost(table=table)
    report = build_report(host)
    assert [r.user_name for r in report] == ["bob"]
    assert host.calls == ["session_table"]


def test_parallel_enrichment_matches_sequential():
    table = (
        "SESSIONNAME USERNAME ID STATE\n"
        " console alice 1 Active\n"
        " console dave 5 Active\n"
        " rdp-tcp#0 bob 2 Active rdpwd\n"
    )
    objects = {
        "Win32_LoggedOnUser": [binding("alice", "1001"), binding("dave", "5005")],
        "Win32_LogonSession": [
            logon_session("1001", 2, "20240105083015.000000+000"),
            logon_session("5005", 2, "20240107120000.000000+000"),
        ],
    }

    def snapshot(report):
        return sorted((r.user_name, r.login_type, r.status, r.logon_time) for r in report)

    seq = build_report(FakeHost(table=table, objects=objects, processes=LOGONUI))
    par = build_report(FakeHost(table=table, objects=objects, processes=LOGONUI), workers=4)
    assert snapshot(seq) == snapshot(par)
    assert by_user(par)["dave"].logon_time.day == 7


def test_report_is_repeatable(locked_host):
    def snapshot(report):
        return sorted((r.user_name, r.login_type, r.status, r.logon_time) for r in report)

    assert snapshot(build_report(locked_host)) == snapshot(build_report(locked_host))


class FlakyProcessHost(FakeHost):
    """Process enumeration fails on the first call only."""

    def list_processes(self, name):
        first = not any(isinstance(c, tuple) for c in self.calls)
        procs = super().list_processes(name)
        if first:
            raise self.flaky_error
        return procs


def test_lock_check_failure_on_one_console_leaves_the_next_enriched(probe_failure):
    table = (
        "SESSIONNAME USERNAME ID STATE\n"
        " console alice 1 Active\n"
        " console dave 5 Active\n"
    )
    objects = {
        "Win32_LoggedOnUser": [binding("alice", "1001"), binding("dave", "5005")],
        "Win32_LogonSession": [
            logon_session("1001", 2, "20240105083015.000000+000"),
            logon_session("5005", 2, "20240107120000.000000+000"),
        ],
    }
    host = FlakyProcessHost(table=table, objects=objects, processes=LOGONUI)
    host.flaky_error = probe_failure

    report = by_user(build_report(host))
    assert report["alice"].lock_state == LockState.UNAVAILABLE
    assert report["alice"].logon_time.day == 5
    assert report["dave"].lock_state == LockState.LOCKED
    assert report["dave"].status == "locked"
    assert report["dave"].logon_time.day == 7
