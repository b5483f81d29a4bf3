from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Attempt:
    operation: str  # session_table | Win32_LogonSession | ...
    method: str  # WinRM | WMI | qwinsta
    target: str
    status: str  # ok | timeout | error | skipped
    message: str
    elapsed_ms: int
