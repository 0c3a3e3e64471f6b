"""Provisioning steps in execution order."""

from typing import List

from vps_provisioner.steps.ban_policy import BanPolicyStep
from vps_provisioner.steps.base import Step, StepContext
from vps_provisioner.steps.containers import ContainerGroupStep, ContainerRuntimeStep
from vps_provisioner.steps.firewall import FirewallStep
from vps_provisioner.steps.ssh import SSHHardeningStep
from vps_provisioner.steps.system import SystemUpdateStep, UserCreationStep
from vps_provisioner.steps.tls import TLSIssuanceStep
from vps_provisioner.steps.tuning import CongestionTuningStep


def default_steps() -> List[Step]:
    """Steps in their fixed order.

    The firewall follows SSH hardening so the new port is known, and comes
    before Docker so the runtime's own rules layer on a locked-down base.
    """
    return [
        SystemUpdateStep(),
        UserCreationStep(),
        SSHHardeningStep(),
        BanPolicyStep(),
        CongestionTuningStep(),
        FirewallStep(),
        ContainerRuntimeStep(),
        ContainerGroupStep(),
        TLSIssuanceStep(),
    ]


__all__ = [
    "Step",
    "StepContext",
    "default_steps",
    "SystemUpdateStep",
    "UserCreationStep",
    "SSHHardeningStep",
    "BanPolicyStep",
    "CongestionTuningStep",
    "FirewallStep",
    "ContainerRuntimeStep",
    "ContainerGroupStep",
    "TLSIssuanceStep",
]
