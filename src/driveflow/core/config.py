"""Configuration management for Driveflow.

This module provides configuration models and loading functionality using Pydantic
for validation and type safety.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DOTENV_LOADED = False


def _load_env_once() -> None:
    """Load environment variables from a .env file exactly once."""

    global _DOTENV_LOADED
    if not _DOTENV_LOADED:
        load_dotenv()
        _DOTENV_LOADED = True


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand environment variables in configuration data."""

    if isinstance(data, str):
        return os.path.expandvars(data)
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    if isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    return data


class RetryPolicyConfig(BaseModel):
    """Configuration for HTTP retry behaviour."""

    max_attempts: int = Field(
        default=3,
        ge=1,
        description="Maximum number of attempts (including the first request)",
    )
    backoff_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Initial delay in seconds before retrying",
    )
    backoff_multiplier: float = Field(
        default=2.0,
        ge=1.0,
        description="Multiplier applied to the backoff delay after each failure",
    )
    max_backoff_seconds: float = Field(
        default=30.0,
        ge=0.0,
        description="Maximum delay cap between retries",
    )


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )
    log_file: str | None = Field(default=None, description="Log file path")
    max_bytes: int = Field(default=10485760, description="Max log file size (10MB)")
    backup_count: int = Field(default=5, description="Number of backup files")

    @field_validator("level")
    @classmethod
    def normalise_level(cls, value: str) -> str:
        level = (value or "INFO").strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level: {value}")
        return level


class DatabaseConfig(BaseModel):
    """Configuration for the workflow data store."""

    url: str = Field(
        default="sqlite:///./driveflow.db",
        description="SQLAlchemy database URL",
    )
    echo: bool = Field(default=False, description="Echo SQL statements (debugging)")


class EventServerConfig(BaseModel):
    """Configuration for the inbound notification server."""

    enabled: bool = Field(default=True, description="Enable inbound event server")
    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8000, description="Bind port")
    notification_path: str = Field(
        default="/api/drive-activity/notification",
        description="Path receiving file change notifications",
    )
    resume_path: str = Field(
        default="/api/workflows/resume",
        description="Path the resume scheduler calls back with ?flow_id=",
    )
    public_url: str | None = Field(
        default=None,
        description="Externally reachable base URL (used to build scheduler callbacks)",
    )

    @field_validator("notification_path", "resume_path")
    @classmethod
    def validate_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("Server paths must start with '/'")
        return value


class EventGateConfig(BaseModel):
    """Configuration for notification deduplication and cooldown."""

    dedup_capacity: int = Field(
        default=1000, ge=1, description="Number of recent message tokens remembered"
    )
    cooldown_seconds: float = Field(
        default=10.0, ge=0.0, description="Minimum spacing between accepted triggers per user"
    )
    cooldown_capacity: int = Field(
        default=100, ge=1, description="Number of users tracked for cooldown"
    )


class ResumeSchedulerConfig(BaseModel):
    """Configuration for the scheduler that resumes suspended workflows."""

    backend: Literal["local", "cron_job"] = Field(
        default="local",
        description="'local' uses APScheduler, 'cron_job' registers jobs on cron-job.org",
    )
    wait_delay_seconds: float = Field(
        default=60.0, ge=0.0, description="Default delay of a Wait step"
    )
    timezone: str = Field(default="Europe/Istanbul", description="Timezone for scheduled jobs")
    callback_url: str | None = Field(
        default=None,
        description="Full resume URL override (defaults to event_server.public_url + resume_path)",
    )
    cron_job_api_url: str = Field(
        default="https://api.cron-job.org", description="cron-job.org REST API base URL"
    )
    cron_job_api_key: str | None = Field(default=None, description="cron-job.org API key")
    job_store_url: str | None = Field(
        default=None,
        description="SQLAlchemy URL persisting local resume jobs across restarts (memory if unset)",
    )

    @model_validator(mode="after")
    def validate_backend(self) -> ResumeSchedulerConfig:
        if self.backend == "cron_job" and not self.cron_job_api_key:
            raise ValueError("cron_job backend requires cron_job_api_key")
        return self


class DeliveryConfig(BaseModel):
    """Configuration shared by outbound delivery clients."""

    timeout: float = Field(default=10.0, ge=0.0, description="Default HTTP timeout")
    retry: RetryPolicyConfig = Field(
        default_factory=lambda: RetryPolicyConfig(max_attempts=1),
        description="Retry policy for delivery calls; only failed connections are retried",
    )
    slack_api_url: str = Field(
        default="https://slack.com/api", description="Slack Web API base URL"
    )
    notion_api_url: str = Field(
        default="https://api.notion.com/v1", description="Notion API base URL"
    )
    notion_version: str = Field(default="2022-06-28", description="Notion-Version header")


class DriveflowConfig(BaseSettings):
    """Main configuration for Driveflow."""

    model_config = SettingsConfigDict(
        env_prefix="DRIVEFLOW_",
        env_nested_delimiter="__",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    database: DatabaseConfig = Field(
        default_factory=DatabaseConfig, description="Data store configuration"
    )
    event_server: EventServerConfig = Field(
        default_factory=EventServerConfig, description="Inbound event server settings"
    )
    gate: EventGateConfig = Field(
        default_factory=EventGateConfig, description="Event gate settings"
    )
    scheduler: ResumeSchedulerConfig = Field(
        default_factory=ResumeSchedulerConfig, description="Resume scheduler settings"
    )
    delivery: DeliveryConfig = Field(
        default_factory=DeliveryConfig, description="Delivery client settings"
    )

    @classmethod
    def from_yaml(cls, path: str | Path) -> DriveflowConfig:
        """Load configuration from a YAML file."""

        _load_env_once()
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, encoding="utf-8") as handle:
            try:
                config_data = yaml.safe_load(handle)
            except yaml.YAMLError as exc:
                raise ValueError(f"Invalid YAML in config file: {exc}") from exc

        if not config_data:
            config_data = {}

        config_data = _expand_env_vars(config_data)
        return cls(**config_data)

    @classmethod
    def from_json(cls, path: str | Path) -> DriveflowConfig:
        """Load configuration from a JSON file."""

        import json

        _load_env_once()
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, encoding="utf-8") as handle:
            try:
                config_data = json.load(handle)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid JSON in config file: {exc}") from exc

        config_data = _expand_env_vars(config_data)
        return cls(**config_data)

    def resume_callback_url(self) -> str:
        """Return the URL the resume scheduler should call back.

        Falls back to the local event server when no public URL is configured.
        """

        if self.scheduler.callback_url:
            return self.scheduler.callback_url
        if self.event_server.public_url:
            return self.event_server.public_url.rstrip("/") + self.event_server.resume_path
        return f"http://127.0.0.1:{self.event_server.port}{self.event_server.resume_path}"

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary."""

        return self.model_dump()
