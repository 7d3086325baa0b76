import os
from pathlib import Path
from typing import Literal

from apscheduler.triggers.cron import CronTrigger
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

_CONFIG_PATH = os.getenv("HDNS_CONFIG", "config.toml")
_ENV_PATH = os.getenv("HDNS_ENV", ".env")

DEFAULT_IP_RESOLVERS = [
    "https://api.ipify.org",
    "https://api.my-ip.io/ip",
    "https://api.ipy.ch",
    "https://ident.me/",
    "https://ifconfig.me/ip",
    "https://icanhazip.com/",
]

ComparisonPolicy = Literal["linked", "consensus", "provider"]


def build_cron_trigger(expression: str) -> CronTrigger:
    """
    Build an APScheduler trigger from a 5 or 6 field cron expression.

    Six field expressions carry the seconds field first, matching the
    `*/30 * * * * *` style used for the refresh interval.
    """
    parts = expression.strip().split()
    if len(parts) == 5:
        second = "0"
        minute, hour, day, month, day_of_week = parts
    elif len(parts) == 6:
        second, minute, hour, day, month, day_of_week = parts
    else:
        raise ValueError(
            "Cron expression must have 5 fields (minute hour day month day_of_week) "
            "or 6 fields (second minute hour day month day_of_week)"
        )

    return CronTrigger(
        second=second,
        minute=minute,
        hour=hour,
        day=day,
        month=month,
        day_of_week=day_of_week,
    )


def split_server(server: str) -> tuple[str, int]:
    """Split a `host:port` DNS server endpoint, defaulting the port to 53."""
    host, sep, port = server.rpartition(":")
    if not sep:
        return server, 53
    if not host or not port.isdigit():
        raise ValueError(f"Invalid DNS server endpoint '{server}', expected host:port")
    port_number = int(port)
    if not 0 < port_number < 65536:
        raise ValueError(f"Invalid port in DNS server endpoint '{server}'")
    return host, port_number


class DNSSettings(BaseModel):
    refresh: str = "*/30 * * * * *"
    servers: list[str] = ["9.9.9.9:53", "1.1.1.1:53", "8.8.8.8:53"]
    query_timeout: float = 5.0
    dial_timeout: float = 2.0
    http_timeout: float = 10.0
    ip_resolvers: list[str] = Field(default_factory=lambda: list(DEFAULT_IP_RESOLVERS))
    comparison_policy: ComparisonPolicy = "linked"
    hetzner_base_url: str = "https://dns.hetzner.com/api/v1"
    history_dedup_window: int = 60 * 60  # seconds

    @field_validator("refresh")
    @classmethod
    def _validate_refresh(cls, value: str) -> str:
        build_cron_trigger(value)
        return value

    @field_validator("servers")
    @classmethod
    def _validate_servers(cls, value: list[str]) -> list[str]:
        for server in value:
            split_server(server)
        return value


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="HDNS_",
        env_nested_delimiter="__",
        toml_file=_CONFIG_PATH,
        env_file=_ENV_PATH,
    )

    database_url: str = "sqlite:///hdns.db"
    logs_dir: Path = Field(default=Path("logs"))
    log_level: str = "INFO"

    host: str = "0.0.0.0"
    port: int = 8080

    dns: DNSSettings = Field(default_factory=DNSSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Source order: init args > OS env > .env > config.toml > secrets
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


settings = Settings()
