"""Custom exceptions for VPS Provisioner."""

from typing import Optional


class ProvisionerError(Exception):
    """Base exception for all provisioner errors."""

    pass


class ValidationError(ProvisionerError, ValueError):
    """Raised when operator input is missing or malformed."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class ConfigurationError(ProvisionerError):
    """Raised when the host does not meet provisioning requirements."""

    pass


class ExecutionError(ProvisionerError):
    """Raised when a command cannot be spawned at all."""

    pass


class StepFailure(ProvisionerError):
    """Raised when a command ran but reported failure."""

    pass


class VerificationWarning(ProvisionerError):
    """Raised when a post-condition check fails after an action succeeded."""

    pass
