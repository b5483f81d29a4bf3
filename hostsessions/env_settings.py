from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

DEFAULT_PROBE_PORTS = (135, 445, 5985, 3389)


class EnvSettings(BaseSettings):
    query_username: str = Field("", alias="HOST_QUERY_USERNAME")
    query_password: str = Field("", alias="HOST_QUERY_PASSWORD")
    domain_suffix: str = Field("", alias="HOST_QUERY_DOMAIN")
    query_timeout_s: int = Field(60, alias="HOST_QUERY_TIMEOUT_S")
    winrm_insecure: bool = Field(False, alias="HOST_QUERY_WINRM_INSECURE")
    dns_server: str = Field("", alias="HOST_QUERY_DNS_SERVER")

    probe_ports: str = Field(",".join(map(str, DEFAULT_PROBE_PORTS)), alias="HOST_PROBE_PORTS")
    probe_timeout_s: float = Field(2.0, alias="HOST_PROBE_TIMEOUT_S")

    enrich_workers: int = Field(1, alias="ENRICH_WORKERS")
    lock_state_compat: bool = Field(True, alias="LOCK_STATE_COMPAT")

    log_level: str = Field("WARNING", alias="LOG_LEVEL")
    log_file: str = Field("", alias="LOG_FILE")
    log_retention_days: int = Field(30, alias="LOG_RETENTION_DAYS")

    class Config:
        populate_by_name = True

    @field_validator("query_username", "domain_suffix", "dns_server", "log_file")
    @classmethod
    def _strip(cls, v: str) -> str:
        return (v or "").strip()

    @field_validator("query_timeout_s")
    @classmethod
    def _clamp_timeout(cls, v: int) -> int:
        return max(5, min(300, int(v)))

    @field_validator("enrich_workers")
    @classmethod
    def _clamp_workers(cls, v: int) -> int:
        return max(1, min(32, int(v)))

    @property
    def per_method_timeout_s(self) -> int:
        return self.query_timeout_s

    @property
    def probe_port_list(self) -> list[int]:
        ports: list[int] = []
        for p in (self.probe_ports or "").replace(";", ",").split(","):
            p = p.strip()
            if p.isdigit() and 0 < int(p) < 65536:
                ports.append(int(p))
        return ports or list(DEFAULT_PROBE_PORTS)


@lru_cache(maxsize=1)
def get_env() -> EnvSettings:
    return EnvSettings()
