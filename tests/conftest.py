import logging

import pytest

from hostsessions import log_config
from hostsessions.env_settings import get_env
from hostsessions.errors import ProbeFailure


SESSION_TABLE = """\
 SESSIONNAME       USERNAME                 ID  STATE   TYPE        DEVICE
 services                                    0  Disc
>console           alice                     1  Active
 rdp-tcp#0         bob                       2  Active  rdpwd
                   carol                     3  Disc
 rdp-tcp                                 65536  Listen
"""

NS = r"\\.\root\cimv2:"


def antecedent(name, domain="CONTOSO"):
    return NS + f'Win32_Account.Domain="{domain}",Name="{name}"'


def dependent(logon_id):
    return NS + f'Win32_LogonSession.LogonId="{logon_id}"'


def binding(name, logon_id):
    return {"Antecedent": antecedent(name), "Dependent": dependent(logon_id)}


def logon_session(logon_id, logon_type, start):
    return {"LogonId": str(logon_id), "LogonType": str(logon_type), "StartTime": start}


DEFAULT_OBJECTS = {
    "Win32_LoggedOnUser": [
        binding("SYSTEM", "999"),
        binding("alice", "1001"),
        binding("bob", "2002"),
    ],
    "Win32_LogonSession": [
        logon_session("999", 0, "20240105070000.000000+000"),
        logon_session("1001", 2, "20240105083015.500000+180"),
        logon_session("2002", 10, "20240105090000.000000+180"),
    ],
}


class FakeHost:
    """Stands in for hostsessions.remote.RemoteHost."""

    def __init__(
        self,
        table=SESSION_TABLE,
        objects=None,
        processes=None,
        process_error=None,
        object_errors=None,
        reachable=True,
        name="pc01",
    ):
        self.name = name
        self.table = table
        self.objects = DEFAULT_OBJECTS if objects is None else objects
        self.processes = processes or []
        self.process_error = process_error
        self.object_errors = object_errors or {}
        self.reachable = reachable
        self.calls = []

    def is_reachable(self):
        self.calls.append("is_reachable")
        return self.reachable

    def session_table(self):
        self.calls.append("session_table")
        if isinstance(self.table, Exception):
            raise self.table
        return self.table

    def query_objects(self, wmi_class, properties, where=""):
        self.calls.append(wmi_class)
        if wmi_class in self.object_errors:
            raise self.object_errors[wmi_class]
        return [dict(r) for r in self.objects.get(wmi_class, [])]

    def list_processes(self, name):
        self.calls.append(("list_processes", name))
        if self.process_error is not None:
            raise self.process_error
        return list(self.processes)


LOGONUI = [{"Name": "LogonUI.exe", "ProcessId": "4242", "SessionId": "1"}]


@pytest.fixture
def fake_host():
    return FakeHost()


@pytest.fixture
def locked_host():
    return FakeHost(processes=LOGONUI)


@pytest.fixture
def probe_failure():
    return ProbeFailure("RPC server unavailable")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in (
        "HOST_QUERY_USERNAME",
        "HOST_QUERY_PASSWORD",
        "HOST_QUERY_DOMAIN",
        "HOST_QUERY_DNS_SERVER",
        "ENRICH_WORKERS",
        "LOCK_STATE_COMPAT",
        "LOG_LEVEL",
        "LOG_FILE",
    ):
        monkeypatch.delenv(var, raising=False)
    get_env.cache_clear()
    yield
    get_env.cache_clear()
    root = logging.getLogger()
    for h in (log_config._console_handler, log_config._file_handler):
        if h is not None and h in root.handlers:
            root.removeHandler(h)
