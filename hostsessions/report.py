from __future__ import annotations

from datetime import datetime

from .models import EnrichedSession

COLUMNS = (
    ("User Name", 15),
    ("Log-in Type", 15),
    ("Status", 15),
    ("LogonTime", 0),  # natural width
)

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def sort_sessions(items: list[EnrichedSession]) -> list[EnrichedSession]:
    """Case-insensitive by user name; stable, so ties keep input order."""
    return sorted(items, key=lambda r: (r.user_name or "").casefold())


def fmt_logon_time(dt: datetime | None) -> str:
    """Local-time rendering; aware values are converted, naive ones kept."""
    if dt is None:
        return ""
    if dt.tzinfo is not None:
        dt = dt.astimezone()
    return dt.strftime(TIME_FORMAT)


def _cells(r: EnrichedSession) -> list[str]:
    return [r.user_name or "", r.login_type or "", r.status or "", fmt_logon_time(r.logon_time)]


def _line(cells: list[str]) -> str:
    parts = []
    for (_title, width), cell in zip(COLUMNS, cells):
        parts.append(cell.ljust(width) if width else cell)
    return " ".join(parts).rstrip()


def format_table(items: list[EnrichedSession]) -> str:
    rows = [_cells(r) for r in sort_sessions(items)]
    header = [title for title, _w in COLUMNS]
    rule = ["-" * len(title) for title, _w in COLUMNS]
    return "\n".join(_line(c) for c in [header, rule, *rows])
