"""Remote query capabilities.

The core only needs three calls from a host object:
    - session_table() -> str
    - query_objects(wmi_class, properties, where="") -> list[dict[str, str]]
    - list_processes(name) -> list[dict[str, str]]

RemoteHost provides them over WinRM, WMI/DCOM (impacket) and, on Windows
clients, a local `qwinsta /server:` call.
"""

from .host import RemoteHost
from .models import Attempt

__all__ = ["RemoteHost", "Attempt"]
