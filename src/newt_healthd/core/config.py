"""Application configuration management using pydantic-settings."""

import logging
from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Any

from pydantic import Field, ValidationInfo, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from newt_healthd.core.durations import format_duration, parse_duration

logger = logging.getLogger(__name__)

TRUTHY_VALUES = frozenset({"1", "true", "yes", "on"})


class Settings(BaseSettings):
    """Process-wide settings, resolved once from the environment at startup."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
    )

    # Listener
    listen_addr: str = Field(default=":8443", description="Bind address as host:port")
    port: str | None = Field(
        default=None,
        description="Port used with a wildcard host when LISTEN_ADDR is unset",
    )

    # Marker file
    newt_health_file: Path = Field(
        default=Path("/tmp/newt-healthy"), description="Health marker file path"
    )
    max_age: timedelta = Field(
        default=timedelta(minutes=2),
        description="Maximum marker age; zero disables the age check",
    )

    # TLS
    tls_cert_file: Path | None = Field(default=None, description="TLS certificate path")
    tls_key_file: Path | None = Field(default=None, description="TLS private key path")

    # Optional systemd check
    check_systemd: bool = Field(default=False, description="Enable the systemd unit check")
    systemd_unit: str = Field(default="newt", description="systemd unit to query")
    systemd_timeout: timedelta = Field(
        default=timedelta(seconds=1), description="Bound on the systemctl query"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("max_age", "systemd_timeout", mode="before")
    @classmethod
    def parse_go_duration(cls, value: Any, info: ValidationInfo) -> Any:
        """Accept Go duration strings; fall back to the default when unparseable."""
        if not isinstance(value, str):
            return value
        try:
            return parse_duration(value)
        except ValueError:
            default = cls.model_fields[info.field_name].default
            logger.warning(
                "Invalid duration %r for %s, using default %s",
                value,
                info.field_name,
                format_duration(default),
            )
            return default

    @field_validator("check_systemd", mode="before")
    @classmethod
    def parse_flag(cls, value: Any) -> Any:
        """Only 1/true/yes/on enable a flag; any other string disables it."""
        if isinstance(value, str):
            return value.strip().lower() in TRUTHY_VALUES
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level {value!r}")
        return level

    @computed_field
    @property
    def effective_listen_addr(self) -> str:
        """Listen address after applying the PORT fallback."""
        if "listen_addr" not in self.model_fields_set and self.port:
            try:
                int(self.port)
            except ValueError:
                return self.listen_addr
            return f":{self.port.strip()}"
        return self.listen_addr

    @computed_field
    @property
    def tls_enabled(self) -> bool:
        """HTTPS is served only when both certificate and key are configured."""
        return self.tls_cert_file is not None and self.tls_key_file is not None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
