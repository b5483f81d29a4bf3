"""Logging setup.

- Console handler on stderr, so stdout carries only the report.
- Optional file handler rotated daily (midnight, UTC), keeping
  `retention_days` old files.
- Calling setup_logging() again replaces the handlers it installed.
"""
from __future__ import annotations

import logging
import os
import sys
from logging.handlers import TimedRotatingFileHandler

_LOG_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"
_LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_file_handler: logging.Handler | None = None
_console_handler: logging.Handler | None = None


def setup_logging(level: str = "WARNING", log_file: str = "", retention_days: int = 30) -> None:
    global _file_handler, _console_handler

    level_str = (level or "WARNING").strip().upper()
    if level_str not in _LEVELS:
        level_str = "WARNING"
    log_level = getattr(logging, level_str)

    retention_days = max(1, min(365, int(retention_days or 30)))

    root = logging.getLogger()

    for h in (_file_handler, _console_handler):
        if h is not None and h in root.handlers:
            root.removeHandler(h)
            h.close()
    _file_handler = None

    formatter = logging.Formatter(_LOG_FORMAT, datefmt=_LOG_DATE_FORMAT)

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(log_level)
    ch.setFormatter(formatter)
    _console_handler = ch
    root.addHandler(ch)

    log_file = (log_file or "").strip()
    if log_file:
        log_dir = os.path.dirname(os.path.abspath(log_file))
        os.makedirs(log_dir, exist_ok=True)
        fh = TimedRotatingFileHandler(
            log_file,
            when="midnight",
            interval=1,
            backupCount=retention_days,
            encoding="utf-8",
            utc=True,
        )
        fh.suffix = "%Y-%m-%d"
        fh.setLevel(log_level)
        fh.setFormatter(formatter)
        _file_handler = fh
        root.addHandler(fh)

    root.setLevel(log_level)

    # Transport libraries are chatty at INFO
    for name in ("impacket", "urllib3", "requests_ntlm", "spnego"):
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    logging.getLogger("hostsessions").debug(
        "Logging configured: level=%s, file=%s, retention=%d days",
        level_str, log_file or "-", retention_days,
    )
