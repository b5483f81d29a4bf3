"""Small, side-effect free helpers.

Keep this package dependency-light to avoid circular imports.
"""

from .tcp_probe import first_open_port, tcp_probe  # noqa: F401
