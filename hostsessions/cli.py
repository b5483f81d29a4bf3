from __future__ import annotations

import argparse
import logging
import sys

from .correlator import build_report
from .env_settings import get_env
from .errors import HostUnreachable, RemoteQueryError
from .log_config import setup_logging
from .remote import RemoteHost
from .report import format_table

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_HOST_DOWN = 3
EXIT_QUERY_FAILED = 4


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="hostsessions",
        description="List who is logged on to a Windows host: console, locked console or remote.",
    )
    p.add_argument("host", help="host short name or FQDN")
    p.add_argument("--workers", type=int, default=None, help="parallel lookups for console sessions")
    p.add_argument(
        "--strict-lock-state",
        action="store_true",
        help="show 'unknown' instead of 'not locked' when the lock probe fails",
    )
    p.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR")
    return p


def ensure_reachable(host: RemoteHost) -> None:
    if not host.is_reachable():
        raise HostUnreachable(host.name)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_env()
    setup_logging(
        level=args.log_level or settings.log_level,
        log_file=settings.log_file,
        retention_days=settings.log_retention_days,
    )

    host = RemoteHost(args.host, settings)
    try:
        ensure_reachable(host)
    except HostUnreachable as e:
        print(str(e), file=sys.stderr)
        return EXIT_HOST_DOWN

    workers = args.workers if args.workers is not None else settings.enrich_workers
    lock_compat = settings.lock_state_compat and not args.strict_lock_state
    try:
        report = build_report(host, workers=workers, lock_compat=lock_compat)
    except RemoteQueryError as e:
        log.debug("Report for %s failed", host.name, exc_info=True)
        print(f"{host.name}: {e}", file=sys.stderr)
        return EXIT_QUERY_FAILED

    print(format_table(report))
    return EXIT_OK
