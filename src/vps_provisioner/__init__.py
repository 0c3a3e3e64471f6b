"""VPS Provisioner - one-shot hardening of a fresh Debian/Ubuntu server."""

__version__ = "1.0.0"
__author__ = "DevOps Team"
__license__ = "MIT"

from vps_provisioner.collector import InputCollector, validate
from vps_provisioner.config import ProvisioningConfig
from vps_provisioner.exceptions import (
    ConfigurationError,
    ExecutionError,
    ProvisionerError,
    StepFailure,
    ValidationError,
    VerificationWarning,
)
from vps_provisioner.firewall import FirewallEngine, FirewallRule
from vps_provisioner.host import HostState
from vps_provisioner.provisioner import Provisioner, RunSummary

__all__ = [
    "FirewallEngine",
    "FirewallRule",
    "HostState",
    "InputCollector",
    "Provisioner",
    "ProvisioningConfig",
    "RunSummary",
    "validate",
    "ProvisionerError",
    "ConfigurationError",
    "ExecutionError",
    "StepFailure",
    "ValidationError",
    "VerificationWarning",
]
