from __future__ import annotations

from ..utils.net import looks_like_ip, resolve_hostname_with_dns


def normalize_targets(raw: str, domain_suffix: str) -> list[str]:
    raw = (raw or "").strip()
    if not raw:
        return []

    if looks_like_ip(raw):
        return [raw]

    # Already FQDN
    if "." in raw:
        return [raw]

    domain_suffix = (domain_suffix or "").strip().lstrip(".")
    if domain_suffix:
        # Try FQDN first, then short
        return [f"{raw}.{domain_suffix}", raw]
    return [raw]


def resolve_targets(targets: list[str], dns_server: str) -> list[str]:
    """Prepend DNS-server answers to the name candidates (duplicates dropped)."""
    if not dns_server:
        return list(targets)
    out: list[str] = []
    for t in targets:
        ip = None if looks_like_ip(t) else resolve_hostname_with_dns(t, dns_server)
        for c in (ip, t):
            if c and c not in out:
                out.append(c)
    return out
