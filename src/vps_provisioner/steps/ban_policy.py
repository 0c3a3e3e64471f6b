"""fail2ban jail for the SSH service."""

from pathlib import Path

import structlog

from vps_provisioner.config import ProvisioningConfig
from vps_provisioner.steps.base import Step, StepContext, apt_install
from vps_provisioner.types import StepResult

logger = structlog.get_logger(__name__)

JAIL_OVERRIDE = Path("/etc/fail2ban/jail.d/sshd-custom.conf")


def render_jail(port: int, max_retry: int, ban_time: int) -> str:
    return (
        "[sshd]\n"
        "enabled = true\n"
        f"port = {port}\n"
        f"maxretry = {max_retry}\n"
        f"bantime = {ban_time}\n"
    )


class BanPolicyStep(Step):
    name = "ban policy"
    fatal = False

    def applies(self, config: ProvisioningConfig) -> bool:
        return config.install_ban_policy

    def apply(self, ctx: StepContext) -> StepResult:
        config = ctx.config
        host = ctx.host

        apt_install(host, "fail2ban")
        host.files.write_file(
            JAIL_OVERRIDE,
            render_jail(config.ssh_port, config.ban_max_retry, config.ban_time),
        )
        host.run_checked("systemctl enable fail2ban", "Enabling fail2ban")
        host.run_checked("systemctl restart fail2ban", "Restarting fail2ban")

        logger.info(
            "fail2ban_configured",
            maxretry=config.ban_max_retry,
            bantime=config.ban_time,
        )
        return StepResult.applied(
            self.name,
            f"maxretry={config.ban_max_retry}, bantime={config.ban_time}s",
        )
