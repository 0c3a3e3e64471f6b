"""Perimeter firewall commit."""

from vps_provisioner.steps.base import Step, StepContext
from vps_provisioner.types import StepResult


class FirewallStep(Step):
    name = "firewall commit"
    fatal = True

    def apply(self, ctx: StepContext) -> StepResult:
        config = ctx.config
        ctx.firewall.install_persistence()
        rules = ctx.firewall.commit(
            config.ssh_port, config.extra_tcp_ports, config.extra_udp_ports
        )
        return StepResult.applied(
            self.name,
            f"{len(rules)} rules committed, SSH on {config.ssh_port}, INPUT policy DROP",
        )
