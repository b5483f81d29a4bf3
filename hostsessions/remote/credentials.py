from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Credentials:
    """One account in the two shapes the transports want.

    WinRM takes `DOMAIN\\user` or a UPN; DCOM takes domain and user apart.
    """

    winrm_user: str
    domain: str
    user: str
    password: str = field(repr=False, default="")

    @classmethod
    def parse(cls, username: str, password: str, domain_suffix: str = "") -> "Credentials":
        u = (username or "").strip()
        pwd = password or ""
        if not u:
            return cls("", "", "", pwd)

        if "\\" in u:
            dom, usr = (x.strip() for x in u.split("\\", 1))
            winrm_user = f"{dom}\\{usr}" if dom and usr else u
            return cls(winrm_user, dom, usr, pwd)

        if "@" in u:
            # UPN
            return cls(u, "", u, pwd)

        netbios = guess_netbios(domain_suffix)
        if netbios:
            return cls(f"{netbios}\\{u}", netbios, u, pwd)
        return cls(u, "", u, pwd)

    @property
    def complete(self) -> bool:
        return bool(self.winrm_user and self.user and self.password)


def guess_netbios(domain_suffix: str) -> str:
    """contoso.local -> CONTOSO"""
    d = (domain_suffix or "").strip()
    if not d:
        return ""
    return d.split(".")[0].upper()
