"""Common scaffolding for provisioning steps."""

import shlex
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from vps_provisioner.config import ProvisioningConfig
from vps_provisioner.firewall import FirewallEngine
from vps_provisioner.host import HostState
from vps_provisioner.types import StepResult, SystemRelease

APT_ENV = "DEBIAN_FRONTEND=noninteractive"


@dataclass
class StepContext:
    """State shared by the steps of one run."""

    config: ProvisioningConfig
    host: HostState
    firewall: FirewallEngine
    release: SystemRelease
    resolved_user: Optional[str] = None


class Step(ABC):
    """A unit of provisioning work.

    ``applies`` decides from the configuration alone whether the step runs;
    ``apply`` performs it and returns its result, raising StepFailure when a
    command it depends on fails. ``fatal`` steps abort the run on failure.
    """

    name: str = ""
    fatal: bool = False

    def applies(self, config: ProvisioningConfig) -> bool:
        return True

    @abstractmethod
    def apply(self, ctx: StepContext) -> StepResult:
        raise NotImplementedError


def apt_install(host: HostState, *packages: str) -> None:
    """Install packages non-interactively.

    Raises:
        StepFailure: If apt-get fails
    """
    names = " ".join(shlex.quote(p) for p in packages)
    host.run_checked(
        f"{APT_ENV} apt-get install -y {names}", f"Installing {', '.join(packages)}"
    )
