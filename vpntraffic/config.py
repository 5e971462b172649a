"""Service configuration from environment and the servers file."""
import enum
import os
import re
from typing import Optional

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SERVER_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class ConfigError(ValueError):
    """Raised when the monitored server list cannot be used."""


class VPNServerType(str, enum.Enum):
    OPENVPN = "openvpn"
    WIREGUARD = "wireguard"


DEFAULT_STATUS_COMMANDS = {
    VPNServerType.OPENVPN: "cat /var/log/openvpn-status.log",
    VPNServerType.WIREGUARD: "sudo wg show all dump | tail -n +2",
}


class VPNServerConfig(BaseModel):
    name: str
    type: VPNServerType
    address: str
    port: int = Field(22, ge=1, le=65535)
    username: str
    password: Optional[str] = None
    key_filename: Optional[str] = None
    polling_interval_seconds: int = Field(10, ge=1)
    status_command: Optional[str] = None
    peer_aliases: dict[str, str] = {}

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, v):
        return v.lower() if isinstance(v, str) else v

    @field_validator("name")
    @classmethod
    def _check_name(cls, v: str) -> str:
        if not SERVER_NAME_PATTERN.match(v):
            raise ValueError("name must start with a letter or underscore and contain only letters, digits and underscores")
        return v

    @field_validator("address", "username")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v

    @model_validator(mode="after")
    def _check_credentials(self) -> "VPNServerConfig":
        if not self.password and not self.key_filename:
            raise ValueError(f"password or key_filename must be set for server {self.name}")
        return self

    @property
    def command(self) -> str:
        return self.status_command or DEFAULT_STATUS_COMMANDS[self.type]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = "sqlite:///./vpntraffic.db"
    run_migrations: bool = True

    # Monitored servers
    servers_file: str = ""
    vpn_servers: list[VPNServerConfig] = []

    # Throughput tracking
    retention_seconds: float = Field(3600, gt=0)
    rate_floor: float = 0.0

    # Poll loop
    error_backoff_seconds: float = 30
    reinit_delay_seconds: float = 5
    ssh_timeout: float = 10.0

    # Server
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"


settings = Settings()


def _read_servers_file(path: str) -> list[dict]:
    with open(path, "rb") as f:
        data = tomllib.load(f)
    servers = data.get("servers", [])
    if not isinstance(servers, list):
        raise ConfigError(f"{path}: 'servers' must be an array of tables")
    return servers


def load_servers(cfg: Settings | None = None) -> list[VPNServerConfig]:
    """Merge inline servers with the servers file. Names must be unique."""
    cfg = cfg or settings
    servers = list(cfg.vpn_servers)
    if cfg.servers_file:
        if not os.path.isfile(cfg.servers_file):
            raise ConfigError(f"servers file not found: {cfg.servers_file}")
        try:
            data = _read_servers_file(cfg.servers_file)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"{cfg.servers_file}: {e}") from e
        for i, raw in enumerate(data):
            try:
                servers.append(VPNServerConfig.model_validate(raw))
            except ValidationError as e:
                name = raw.get("name", f"#{i}") if isinstance(raw, dict) else f"#{i}"
                raise ConfigError(f"invalid server {name}: {e}") from e

    seen: set[str] = set()
    for s in servers:
        if s.name in seen:
            raise ConfigError(f"duplicate server name: {s.name}")
        seen.add(s.name)
    return servers
