"""Tests for configuration management.

Tests cover:
- Section model validation
- DriveflowConfig loading from YAML, JSON and the environment
- Environment variable expansion
- Resume callback URL resolution
"""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from driveflow.core.config import (
    DriveflowConfig,
    EventGateConfig,
    EventServerConfig,
    LoggingConfig,
    ResumeSchedulerConfig,
    RetryPolicyConfig,
)

# ==============================================================================
# Section models
# ==============================================================================


class TestRetryPolicyConfig:
    """Tests for RetryPolicyConfig."""

    def test_default_values(self):
        config = RetryPolicyConfig()

        assert config.max_attempts == 3
        assert config.backoff_seconds == 1.0
        assert config.backoff_multiplier == 2.0
        assert config.max_backoff_seconds == 30.0

    def test_max_attempts_must_be_positive(self):
        with pytest.raises(ValidationError):
            RetryPolicyConfig(max_attempts=0)


class TestLoggingConfig:
    """Tests for LoggingConfig."""

    def test_level_is_normalised(self):
        assert LoggingConfig(level=" debug ").level == "DEBUG"

    def test_unknown_level_rejected(self):
        with pytest.raises(ValidationError):
            LoggingConfig(level="LOUD")


class TestEventServerConfig:
    """Tests for EventServerConfig."""

    def test_defaults(self):
        config = EventServerConfig()
        assert config.notification_path == "/api/drive-activity/notification"
        assert config.resume_path == "/api/workflows/resume"

    def test_paths_must_be_absolute(self):
        with pytest.raises(ValidationError):
            EventServerConfig(resume_path="resume")


class TestEventGateConfig:
    def test_defaults(self):
        config = EventGateConfig()
        assert config.dedup_capacity == 1000
        assert config.cooldown_seconds == 10.0
        assert config.cooldown_capacity == 100


class TestResumeSchedulerConfig:
    """Tests for ResumeSchedulerConfig."""

    def test_local_is_default(self):
        config = ResumeSchedulerConfig()
        assert config.backend == "local"
        assert config.wait_delay_seconds == 60.0

    def test_cron_job_requires_api_key(self):
        with pytest.raises(ValidationError, match="cron_job_api_key"):
            ResumeSchedulerConfig(backend="cron_job")

    def test_cron_job_with_api_key(self):
        config = ResumeSchedulerConfig(backend="cron_job", cron_job_api_key="key")
        assert config.cron_job_api_url == "https://api.cron-job.org"

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValidationError):
            ResumeSchedulerConfig(backend="celery")


# ==============================================================================
# DriveflowConfig
# ==============================================================================


class TestDriveflowConfig:
    """Tests for loading the full configuration."""

    def test_from_yaml(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_DB_URL", "sqlite:///./from-env.db")
        path = tmp_path / "driveflow.yaml"
        path.write_text(
            "database:\n"
            "  url: ${TEST_DB_URL}\n"
            "gate:\n"
            "  cooldown_seconds: 3\n"
            "scheduler:\n"
            "  wait_delay_seconds: 5\n",
            encoding="utf-8",
        )

        config = DriveflowConfig.from_yaml(path)

        assert config.database.url == "sqlite:///./from-env.db"
        assert config.gate.cooldown_seconds == 3.0
        assert config.scheduler.wait_delay_seconds == 5.0

    def test_from_yaml_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        config = DriveflowConfig.from_yaml(path)
        assert config.event_server.port == 8000

    def test_from_yaml_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            DriveflowConfig.from_yaml(tmp_path / "missing.yaml")

    def test_from_yaml_invalid(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("gate: [unclosed", encoding="utf-8")
        with pytest.raises(ValueError, match="Invalid YAML"):
            DriveflowConfig.from_yaml(path)

    def test_from_json(self, tmp_path):
        path = tmp_path / "driveflow.json"
        path.write_text(json.dumps({"event_server": {"port": 9100}}), encoding="utf-8")

        config = DriveflowConfig.from_json(path)
        assert config.event_server.port == 9100

    def test_from_json_invalid(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{", encoding="utf-8")
        with pytest.raises(ValueError, match="Invalid JSON"):
            DriveflowConfig.from_json(path)

    def test_nested_environment_variables(self, monkeypatch):
        monkeypatch.setenv("DRIVEFLOW_GATE__COOLDOWN_SECONDS", "2.5")
        monkeypatch.setenv("DRIVEFLOW_EVENT_SERVER__PORT", "9000")

        config = DriveflowConfig()

        assert config.gate.cooldown_seconds == 2.5
        assert config.event_server.port == 9000

    def test_to_dict(self):
        data = DriveflowConfig().to_dict()
        assert set(data) >= {"logging", "database", "event_server", "gate", "scheduler", "delivery"}


class TestResumeCallbackUrl:
    """Tests for DriveflowConfig.resume_callback_url."""

    def test_explicit_callback_wins(self):
        config = DriveflowConfig(
            scheduler={"callback_url": "https://hooks.example.com/resume"},
            event_server={"public_url": "https://app.example.com"},
        )
        assert config.resume_callback_url() == "https://hooks.example.com/resume"

    def test_public_url_plus_resume_path(self):
        config = DriveflowConfig(event_server={"public_url": "https://app.example.com/"})
        assert config.resume_callback_url() == "https://app.example.com/api/workflows/resume"

    def test_local_fallback(self):
        config = DriveflowConfig(event_server={"port": 8123})
        assert config.resume_callback_url() == "http://127.0.0.1:8123/api/workflows/resume"
