import pytest

from conftest import SESSION_TABLE, FakeHost
from hostsessions.errors import RemoteQueryError, SessionParseError
from hostsessions.models import PSEUDO_USERS, RawSessionRow, SessionKind
from hostsessions.sessions import (
    list_sessions,
    normalize_sessions,
    parse_session_row,
    parse_session_table,
)


def test_strict_row_kept_as_is():
    row = parse_session_row("console alice 1 Active rdpwd #0")
    assert row == RawSessionRow("console", "alice", "1", "Active", "rdpwd", "#0")


def test_shifted_row_is_repaired():
    # SESSIONNAME missing: the numeric id lands in the user slot
    row = parse_session_row("                  bob      3  Disc  rdpwd")
    assert row.session_name == "remote"
    assert row.user_name == "bob"
    assert row.id == "3"
    assert row.state == "Disc"
    assert row.type == "rdpwd"


def test_current_session_marker_is_stripped():
    row = parse_session_row(">console           alice                     1  Active")
    assert row.session_name == "console"
    assert row.user_name == "alice"


@pytest.mark.parametrize(
    "line",
    [
        "console alice x Active",  # id not numeric
        "console alice 1 Active rdpwd #0 extra",  # too many fields
        "carol 3",  # shifted row without state
        "lonely",
        "rdp-tcp 12a Listen",  # three fields, user slot not numeric
    ],
)
def test_unknown_shapes_raise(line):
    with pytest.raises(SessionParseError):
        parse_session_row(line)


def test_parse_error_is_a_remote_query_error():
    assert issubclass(SessionParseError, RemoteQueryError)


def test_header_and_blank_lines_skipped():
    rows = parse_session_table(SESSION_TABLE + "\n\n")
    assert [r.id for r in rows] == ["0", "1", "2", "3", "65536"]


def test_pseudo_users_filtered():
    sessions = normalize_sessions(parse_session_table(SESSION_TABLE))
    assert {s.user_name for s in sessions} == {"alice", "bob", "carol"}
    assert not any(s.user_name.lower() in PSEUDO_USERS for s in sessions)


def test_console_row_without_user_is_dropped():
    table = "SESSIONNAME USERNAME ID STATE\n console 69 Conn\n"
    assert normalize_sessions(parse_session_table(table)) == []


def test_session_kinds():
    by_user = {s.user_name: s for s in list_sessions(FakeHost())}
    assert by_user["alice"].session_kind == SessionKind.CONSOLE
    assert by_user["bob"].session_kind == SessionKind.REMOTE
    assert by_user["bob"].session_name == "rdp-tcp#0"
    assert by_user["carol"].session_kind == SessionKind.REMOTE
    assert by_user["carol"].session_name == "remote"
    assert by_user["carol"].raw_state == "Disc"


def test_list_sessions_propagates_transport_errors():
    host = FakeHost(table=RemoteQueryError("WinRM ports 5985/5986 are closed"))
    with pytest.raises(RemoteQueryError):
        list_sessions(host)


def test_empty_table():
    assert list_sessions(FakeHost(table="")) == []
