"""TCP BBR congestion control."""

from pathlib import Path

import structlog

from vps_provisioner.config import ProvisioningConfig
from vps_provisioner.exceptions import VerificationWarning
from vps_provisioner.host import HostState
from vps_provisioner.steps.base import Step, StepContext
from vps_provisioner.types import StepResult

logger = structlog.get_logger(__name__)

SYSCTL_CONF = Path("/etc/sysctl.conf")
BBR_TUNABLES = (
    "net.core.default_qdisc=fq",
    "net.ipv4.tcp_congestion_control=bbr",
)


class CongestionTuningStep(Step):
    name = "congestion tuning"
    fatal = False

    def applies(self, config: ProvisioningConfig) -> bool:
        return config.enable_congestion_tuning

    def apply(self, ctx: StepContext) -> StepResult:
        host = ctx.host

        current = ""
        if host.files.exists(SYSCTL_CONF):
            current = host.files.read_file(SYSCTL_CONF)

        missing = [line for line in BBR_TUNABLES if line not in current]
        if missing:
            block = "\n# Enable BBR congestion control\n" + "\n".join(missing) + "\n"
            host.files.append_file(SYSCTL_CONF, block)
            logger.info("sysctl_tunables_appended", tunables=missing)
        else:
            logger.info("sysctl_tunables_present")

        host.run_checked("sysctl -p", "Applying kernel tunables")

        try:
            self._verify(host)
        except VerificationWarning as w:
            logger.warning("bbr_not_active", reason=str(w))
            return StepResult.applied(self.name, f"warning: {w}")

        return StepResult.applied(self.name, "BBR enabled")

    @staticmethod
    def _verify(host: HostState) -> None:
        outcome = host.run("sysctl -n net.ipv4.tcp_congestion_control", needs_root=False)
        if "bbr" not in outcome.stdout:
            raise VerificationWarning(
                "BBR may not be enabled correctly; kernel 4.9+ is required"
            )
