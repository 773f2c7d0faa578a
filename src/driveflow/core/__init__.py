"""Core modules for Driveflow.

This package contains the shared building blocks:
- Configuration management
- Logging utilities
- Exception taxonomy
- Bounded caches for notification deduplication and cooldown
"""

from .cache import CooldownTracker, RecentTokenSet
from .config import (
    DatabaseConfig,
    DeliveryConfig,
    DriveflowConfig,
    EventGateConfig,
    EventServerConfig,
    LoggingConfig,
    ResumeSchedulerConfig,
    RetryPolicyConfig,
)
from .exceptions import (
    ActionPreconditionError,
    DeliveryError,
    DriveflowError,
    EntitlementExhaustedError,
    GraphInvalidError,
    PersistenceError,
    RateLimitedError,
    SchedulerRegistrationError,
    SubjectNotFoundError,
    WorkflowNotFoundError,
)
from .logger import get_logger, setup_logging

__all__ = [
    "ActionPreconditionError",
    "CooldownTracker",
    "DatabaseConfig",
    "DeliveryConfig",
    "DeliveryError",
    "DriveflowConfig",
    "DriveflowError",
    "EntitlementExhaustedError",
    "EventGateConfig",
    "EventServerConfig",
    "GraphInvalidError",
    "LoggingConfig",
    "PersistenceError",
    "RateLimitedError",
    "RecentTokenSet",
    "ResumeSchedulerConfig",
    "RetryPolicyConfig",
    "SchedulerRegistrationError",
    "SubjectNotFoundError",
    "WorkflowNotFoundError",
    "get_logger",
    "setup_logging",
]
