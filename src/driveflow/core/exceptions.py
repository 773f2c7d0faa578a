"""Exception taxonomy for Driveflow."""

from __future__ import annotations


class DriveflowError(Exception):
    """Base exception for all Driveflow errors."""

    pass


class GraphInvalidError(DriveflowError):
    """Raised when a workflow graph violates its structural rules."""

    def __init__(self, problems: list[str]) -> None:
        """Initialize the exception.

        Args:
            problems: Human-readable description of every violation found
        """
        self.problems = list(problems)
        super().__init__("Invalid workflow graph: " + "; ".join(self.problems))


class ActionPreconditionError(DriveflowError):
    """Raised when an action is missing required configuration."""

    def __init__(self, action: str, reason: str) -> None:
        self.action = action
        self.reason = reason
        super().__init__(f"{action}: {reason}")


class DeliveryError(DriveflowError):
    """Raised when an external delivery collaborator rejects a request."""

    def __init__(self, message: str, channel: str | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Error message
            channel: Delivery channel (webhook, slack, notion) that failed
        """
        self.channel = channel
        super().__init__(message)


class SchedulerRegistrationError(DriveflowError):
    """Raised when a resume callback could not be registered."""

    def __init__(self, message: str, workflow_id: str | None = None) -> None:
        self.workflow_id = workflow_id
        super().__init__(message)


class SubjectNotFoundError(DriveflowError):
    """Raised when a notification resource id maps to no user."""

    def __init__(self, resource_id: str) -> None:
        self.resource_id = resource_id
        super().__init__(f"No user registered for resource: {resource_id}")


class EntitlementExhaustedError(DriveflowError):
    """Raised when a user has no credits left."""

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(f"Insufficient credits for user: {user_id}")


class RateLimitedError(DriveflowError):
    """Raised when a user triggers again inside the cooldown window."""

    def __init__(self, user_id: str, retry_after: float) -> None:
        """Initialize the exception.

        Args:
            user_id: User that was rate limited
            retry_after: Seconds until the cooldown expires
        """
        self.user_id = user_id
        self.retry_after = retry_after
        super().__init__(f"Rate limited for {retry_after:.1f}s")


class WorkflowNotFoundError(DriveflowError):
    """Raised when a workflow id does not exist."""

    def __init__(self, workflow_id: str) -> None:
        self.workflow_id = workflow_id
        super().__init__(f"Workflow not found: {workflow_id}")


class PersistenceError(DriveflowError):
    """Raised when the data store fails during an active run."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        self.original_error = original_error
        super().__init__(message)


__all__ = [
    "DriveflowError",
    "GraphInvalidError",
    "ActionPreconditionError",
    "DeliveryError",
    "SchedulerRegistrationError",
    "SubjectNotFoundError",
    "EntitlementExhaustedError",
    "RateLimitedError",
    "WorkflowNotFoundError",
    "PersistenceError",
]
