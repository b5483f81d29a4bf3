from __future__ import annotations

import re
import subprocess

from ..errors import RemoteQueryError
from ..utils.tcp_probe import tcp_probe
from .credentials import Credentials

_RE_IDENT = re.compile(r"^\w+$")


def decode_console_output(raw: bytes) -> str:
    """Decode qwinsta/PowerShell output as UTF-8, falling back to cp866.

    Console tools answer in UTF-8 when OutputEncoding is set, otherwise in
    the OEM code page (cp866 on Russian Windows). cp866 maps every byte, so
    it is the last step.
    """
    if not raw:
        return ""
    # UTF-8 BOM
    if raw.startswith(b"\xef\xbb\xbf"):
        raw = raw[3:]
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("cp866")


def _safe_str(val) -> str:
    """Stringify a value coming back from impacket."""
    if val is None:
        return ""
    if isinstance(val, bytes):
        try:
            return val.decode("utf-16-le").rstrip("\x00").strip()
        except UnicodeDecodeError:
            return val.decode("latin-1").rstrip("\x00").strip()
    return str(val).rstrip("\x00").strip()


def _check_ident(name: str) -> str:
    if not _RE_IDENT.match(name or ""):
        raise ValueError(f"bad WMI identifier: {name!r}")
    return name


def build_wql(wmi_class: str, properties, where: str = "") -> str:
    props = ", ".join(_check_ident(p) for p in properties)
    q = f"SELECT {props} FROM {_check_ident(wmi_class)}"
    if where:
        q += f" WHERE {where}"
    return q


def parse_tsv(text: str, properties) -> list[dict[str, str]]:
    """One object per line, property values separated by tabs."""
    props = list(properties)
    rows: list[dict[str, str]] = []
    for line in (text or "").splitlines():
        if not line.strip():
            continue
        values = line.rstrip("\r").split("\t")
        values += [""] * (len(props) - len(values))
        rows.append({p: values[i].strip() for i, p in enumerate(props)})
    return rows


# --- WinRM ------------------------------------------------------------------

QWINSTA_PS = r"""
[Console]::OutputEncoding = [System.Text.Encoding]::UTF8
$out = (qwinsta 2>&1)
if ($LASTEXITCODE -ne 0) {
  [Console]::Error.WriteLine(($out | Out-String))
  exit 1
}
$out
"""


def objects_ps(wmi_class: str, properties, where: str = "") -> str:
    """Get-WmiObject keeps reference paths and CIM_DATETIME values as strings."""
    props = ",".join(f"'{_check_ident(p)}'" for p in properties)
    flt = ""
    if where:
        escaped = where.replace("'", "''")
        flt = f" -Filter '{escaped}'"
    return rf"""
[Console]::OutputEncoding = [System.Text.Encoding]::UTF8
$props = @({props})
Get-WmiObject -Class {_check_ident(wmi_class)}{flt} -ErrorAction Stop | ForEach-Object {{
  $o = $_
  ($props | ForEach-Object {{ ([string]$o.$_) -replace "[`t`r`n]", ' ' }}) -join "`t"
}}
"""


def winrm_run_ps(target: str, creds: Credentials, script: str, per_method_timeout_s: int, insecure_tls: bool = False) -> str:
    """Run a PowerShell script over WinRM (5985, then 5986) and return stdout."""
    import winrm  # type: ignore

    endpoints: list[str] = []
    # Quick probes to avoid long hangs
    if tcp_probe(target, 5985, timeout_s=2.0):
        endpoints.append(f"http://{target}:5985/wsman")
    if tcp_probe(target, 5986, timeout_s=2.0):
        endpoints.append(f"https://{target}:5986/wsman")

    if not endpoints:
        raise RemoteQueryError("WinRM ports 5985/5986 are closed")

    # Keep winrm internal timeouts comfortably below per_method_timeout_s
    op_timeout = max(10, min(30, per_method_timeout_s - 10))
    read_timeout = max(op_timeout + 5, min(per_method_timeout_s - 2, op_timeout + 15))

    last_err: Exception | None = None
    for ep in endpoints:
        try:
            cert_validation = "ignore" if (insecure_tls and ep.startswith("https://")) else "validate"
            sess = winrm.Session(
                ep,
                auth=(creds.winrm_user, creds.password),
                transport="ntlm",
                server_cert_validation=cert_validation,
                read_timeout_sec=read_timeout,
                operation_timeout_sec=op_timeout,
            )
            r = sess.run_ps(script)
            if r.status_code != 0:
                err = decode_console_output(r.std_err or b"").strip()[:400]
                raise RemoteQueryError(err or f"command exited with {r.status_code}")
            return decode_console_output(r.std_out or b"")
        except Exception as e:
            last_err = e
            continue

    raise RemoteQueryError(str(last_err) if last_err else "WinRM error")


def winrm_session_table(target: str, creds: Credentials, per_method_timeout_s: int, insecure_tls: bool = False) -> str:
    return winrm_run_ps(target, creds, QWINSTA_PS, per_method_timeout_s, insecure_tls)


def winrm_query_objects(
    target: str,
    creds: Credentials,
    wmi_class: str,
    properties,
    where: str,
    per_method_timeout_s: int,
    insecure_tls: bool = False,
) -> list[dict[str, str]]:
    out = winrm_run_ps(target, creds, objects_ps(wmi_class, properties, where), per_method_timeout_s, insecure_tls)
    return parse_tsv(out, properties)


# --- WMI/DCOM -----------------------------------------------------------------

def wmi_query_objects(target: str, creds: Credentials, wmi_class: str, properties, where: str = "") -> list[dict[str, str]]:
    """WMI over DCOM (impacket)."""
    if not tcp_probe(target, 135, timeout_s=2.0):
        raise RemoteQueryError("WMI/RPC port 135 is closed")

    from impacket.dcerpc.v5.dcomrt import DCOMConnection  # type: ignore
    from impacket.dcerpc.v5.dcom import wmi  # type: ignore
    from impacket.dcerpc.v5.dtypes import NULL  # type: ignore

    query = build_wql(wmi_class, properties, where)
    dcom = None
    try:
        dcom = DCOMConnection(
            target,
            creds.user,
            creds.password,
            creds.domain,
            "",
            "",
            oxidResolver=True,
            doKerberos=False,
        )
        iInterface = dcom.CoCreateInstanceEx(wmi.CLSID_WbemLevel1Login, wmi.IID_IWbemLevel1Login)
        iWbemLevel1Login = wmi.IWbemLevel1Login(iInterface)
        iWbemServices = iWbemLevel1Login.NTLMLogin(r"//./root/cimv2", NULL, NULL)
        iWbemLevel1Login.RemRelease()

        iEnum = iWbemServices.ExecQuery("WQL", query)

        rows: list[dict[str, str]] = []
        while True:
            try:
                item = iEnum.Next(0xFFFFFFFF, 1)[0]
            except Exception as e:
                # End of the enumeration comes back as WBEM_S_FALSE
                if "S_FALSE" not in str(e):
                    raise
                break
            props = item.getProperties()
            rows.append({p: _safe_str(props.get(p, {}).get("value")) for p in properties})

        iEnum.RemRelease()
        iWbemServices.RemRelease()
        return rows
    finally:
        if dcom is not None:
            try:
                dcom.disconnect()
            except Exception:
                pass


# --- local qwinsta (Windows clients only) -------------------------------------

def local_session_table(target: str, per_method_timeout_s: int) -> str:
    """Run `qwinsta /server:<target>` on this machine."""
    try:
        cp = subprocess.run(
            ["qwinsta", f"/server:{target}"],
            capture_output=True,
            timeout=per_method_timeout_s,
            check=False,
        )
    except FileNotFoundError as e:
        raise RemoteQueryError("qwinsta is not available on this machine") from e
    if cp.returncode != 0:
        err = decode_console_output(cp.stderr or b"").strip()[:400]
        raise RemoteQueryError(err or f"qwinsta exited with {cp.returncode}")
    return decode_console_output(cp.stdout or b"")
