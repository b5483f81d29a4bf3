from __future__ import annotations

import concurrent.futures
import functools
import logging
import os
import time

from ..env_settings import EnvSettings, get_env
from ..errors import ProbeFailure, RemoteQueryError
from ..utils.tcp_probe import first_open_port
from ..utils.timeout import run_with_timeout
from .credentials import Credentials
from .methods import (
    local_session_table,
    winrm_query_objects,
    winrm_session_table,
    wmi_query_objects,
)
from .models import Attempt
from .targets import normalize_targets, resolve_targets

log = logging.getLogger(__name__)

PROCESS_PROPERTIES = ("Name", "ProcessId", "SessionId")


class MissingCredentials(RemoteQueryError):
    pass


class RemoteHost:
    """Query capabilities for one Windows host.

    Every operation tries its methods in order (WinRM first) across all
    target name candidates; the first answer wins, empty answers included.
    Each method is capped by the configured per-method timeout.
    """

    def __init__(self, raw_target: str, settings: EnvSettings | None = None):
        self.settings = settings or get_env()
        self.name = (raw_target or "").strip()
        self.creds = Credentials.parse(
            self.settings.query_username,
            self.settings.query_password,
            self.settings.domain_suffix,
        )
        self.timeout_s = self.settings.per_method_timeout_s
        self.attempts: list[Attempt] = []

    def __repr__(self) -> str:
        return f"RemoteHost({self.name!r})"

    @functools.cached_property
    def targets(self) -> list[str]:
        # resolved on first use, so building a RemoteHost sends nothing
        return resolve_targets(
            normalize_targets(self.name, self.settings.domain_suffix),
            self.settings.dns_server,
        )

    def is_reachable(self) -> bool:
        ports = self.settings.probe_port_list
        timeout_s = self.settings.probe_timeout_s
        for t in self.targets:
            port = first_open_port(t, ports, timeout_s)
            if port is not None:
                log.debug("%s answers on %s:%d", self.name, t, port)
                return True
        log.info("%s: no answer on ports %s", self.name, ports)
        return False

    # -- collaborator interface ------------------------------------------------

    def session_table(self) -> str:
        methods = [("WinRM", self._need_creds(self._winrm_session_table))]
        if os.name == "nt":
            methods.append(("qwinsta", lambda t: local_session_table(t, self.timeout_s)))
        return self._chain("session_table", methods)

    def query_objects(self, wmi_class: str, properties, where: str = "") -> list[dict[str, str]]:
        props = tuple(properties)

        def via_winrm(t: str) -> list[dict[str, str]]:
            return winrm_query_objects(
                t, self.creds, wmi_class, props, where, self.timeout_s, self.settings.winrm_insecure
            )

        def via_wmi(t: str) -> list[dict[str, str]]:
            return wmi_query_objects(t, self.creds, wmi_class, props, where)

        return self._chain(
            wmi_class,
            [("WinRM", self._need_creds(via_winrm)), ("WMI", self._need_creds(via_wmi))],
        )

    def list_processes(self, name: str) -> list[dict[str, str]]:
        escaped = (name or "").replace("\\", "\\\\").replace("'", "\\'")
        try:
            return self.query_objects("Win32_Process", PROCESS_PROPERTIES, where=f"Name='{escaped}'")
        except RemoteQueryError as e:
            raise ProbeFailure(f"process enumeration for {name} failed: {e}") from e

    # -- plumbing -------------------------------------------------------------

    def _winrm_session_table(self, t: str) -> str:
        return winrm_session_table(t, self.creds, self.timeout_s, self.settings.winrm_insecure)

    def _need_creds(self, fn):
        def wrapped(t: str):
            if not self.creds.complete:
                raise MissingCredentials("HOST_QUERY_USERNAME/HOST_QUERY_PASSWORD are not set")
            return fn(t)

        return wrapped

    def _chain(self, operation: str, methods):
        if not self.targets:
            raise RemoteQueryError("empty host name")

        errors: list[str] = []
        for method, fn in methods:
            for t in self.targets:
                t0 = time.perf_counter()
                try:
                    result = run_with_timeout(functools.partial(fn, t), self.timeout_s)
                except concurrent.futures.TimeoutError:
                    self._record(operation, method, t, "timeout", f"timeout {self.timeout_s}s", t0)
                    errors.append(f"{method}@{t}: timeout {self.timeout_s}s")
                    continue
                except MissingCredentials as e:
                    self._record(operation, method, t, "skipped", str(e), t0)
                    errors.append(f"{method}: {e}")
                    break
                except ImportError as e:
                    self._record(operation, method, t, "skipped", f"library not installed: {e}", t0)
                    errors.append(f"{method}: library not installed: {e}")
                    break
                except Exception as e:
                    msg = (str(e) or type(e).__name__)[:300]
                    self._record(operation, method, t, "error", msg, t0)
                    errors.append(f"{method}@{t}: {msg}")
                    continue
                self._record(operation, method, t, "ok", "", t0)
                return result

        raise RemoteQueryError(f"{operation} query failed on {self.name}: " + "; ".join(errors))

    def _record(self, operation: str, method: str, target: str, status: str, message: str, t0: float) -> None:
        elapsed = int((time.perf_counter() - t0) * 1000)
        self.attempts.append(Attempt(operation, method, target, status, message, elapsed))
        if status == "ok":
            log.debug("%s via %s@%s: ok (%d ms)", operation, method, target, elapsed)
        else:
            log.info("%s via %s@%s: %s %s (%d ms)", operation, method, target, status, message, elapsed)

