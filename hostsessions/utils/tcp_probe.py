from __future__ import annotations

import socket
from typing import Iterable


def tcp_probe(host: str, port: int, timeout_s: float) -> bool:
    """TCP connect probe; any socket error counts as closed."""
    try:
        with socket.create_connection((host, int(port)), timeout=float(timeout_s)):
            return True
    except OSError:
        return False


def first_open_port(host: str, ports: Iterable[int], timeout_s: float) -> int | None:
    """Ports are tried in order; None when every one is closed."""
    for p in ports:
        if tcp_probe(host, p, timeout_s):
            return int(p)
    return None
