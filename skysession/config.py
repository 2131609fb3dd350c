"""Configuration with pydantic-settings.

Deployment settings are cached for the process. Teardown settings are not:
the idle monitor builds a fresh ``TeardownSettings`` when it fires so that
values injected into the environment after startup are honored.

Usage:
    from skysession.config import get_settings

    settings = get_settings()
    settings.app_name
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings as PydanticBaseSettings, SettingsConfigDict


class BaseSettings(PydanticBaseSettings):
    """Base settings shared by every settings group."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging configuration
    service_name: str = Field(
        default="skysession",
        description="Service name for structured logging",
    )
    log_format: Literal["json", "console"] = Field(
        default="console",
        description="Log output format",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper_v


class DeployerSettings(BaseSettings):
    """Edgegap deployment settings (``EDGEGAP_*`` env vars)."""

    model_config = SettingsConfigDict(
        env_prefix="EDGEGAP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    api_token: str = Field(default="", description="Deployment API token")
    api_url: str = Field(
        default="https://api.edgegap.com",
        description="Deployment API base URL",
    )
    app_name: str = Field(default="", description="Application name")
    version_name: str = Field(default="", description="Application version name")
    preferred_port_name: str = Field(
        default="gameport",
        description="Port mapping name selected first when present",
    )
    poll_interval_seconds: float = Field(
        default=0.75,
        gt=0,
        description="Delay between status polls",
    )
    max_poll_seconds: float = Field(
        default=90,
        gt=0,
        description="Wall-clock budget for polling",
    )
    use_public_ip_placement: bool = Field(
        default=True,
        description="Place the deployment near this host's public IP",
    )
    join_code_domain: str = Field(
        default="pr.edgegap.net",
        description="DNS zone suffixed to the request id to form the host name",
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Per-request HTTP timeout",
    )


class TeardownSettings(PydanticBaseSettings):
    """Teardown endpoint and credential injected by the hosting platform."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    delete_url: str = Field(default="", alias="ARBITRIUM_DELETE_URL")
    delete_token: str = Field(default="", alias="ARBITRIUM_DELETE_TOKEN")


class IdleSettings(BaseSettings):
    """Idle shutdown settings (``IDLE_*`` env vars)."""

    model_config = SettingsConfigDict(
        env_prefix="IDLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    window_seconds: float = Field(default=30.0, gt=0, description="Idle window")
    tick_interval_seconds: float = Field(
        default=0.5,
        gt=0,
        description="Delay between idle checks",
    )
    count_local_connections: bool = Field(
        default=False,
        description="Count host-side loopback connections as occupancy",
    )


@lru_cache
def get_settings() -> DeployerSettings:
    """Get cached deployment settings.

    Validates env vars on first call.
    Raises ValidationError if any value is malformed.
    """
    return DeployerSettings()


@lru_cache
def get_idle_settings() -> IdleSettings:
    """Get cached idle shutdown settings."""
    return IdleSettings()
