"""SSH daemon hardening."""

from pathlib import Path

import structlog

from vps_provisioner.exceptions import StepFailure
from vps_provisioner.host import HostState
from vps_provisioner.sshd_config import DirectiveMap
from vps_provisioner.steps.base import Step, StepContext
from vps_provisioner.types import StepResult

logger = structlog.get_logger(__name__)

SSHD_CONFIG = Path("/etc/ssh/sshd_config")
SSH_SERVICES = ("ssh", "sshd")
SSHD_BINARIES = ("sshd", "/usr/sbin/sshd")

HARDENED_DIRECTIVES = (
    ("PermitRootLogin", "prohibit-password"),
    ("PasswordAuthentication", "no"),
    ("PubkeyAuthentication", "yes"),
    ("UsePAM", "no"),
)


def harden_sshd_config(text: str, port: int) -> str:
    """Return ``text`` with the listen port and auth policy rewritten."""
    directives = DirectiveMap.parse(text)
    directives.set("Port", str(port))
    for key, value in HARDENED_DIRECTIVES:
        directives.set(key, value)
    return directives.serialize()


class SSHHardeningStep(Step):
    """Move sshd to the configured port and require key authentication."""

    name = "ssh hardening"
    fatal = True

    def apply(self, ctx: StepContext) -> StepResult:
        host = ctx.host
        port = ctx.config.ssh_port

        backup = host.files.backup_file(SSHD_CONFIG)
        if backup is None:
            raise StepFailure(f"{SSHD_CONFIG} not found")

        original = host.files.read_file(SSHD_CONFIG)
        host.files.write_file(SSHD_CONFIG, harden_sshd_config(original, port))
        logger.info("sshd_config_updated", port=port, backup=str(backup))

        self._validate(host)
        self._restart(host)
        return StepResult.applied(self.name, f"sshd listening on port {port}")

    @staticmethod
    def _validate(host: HostState) -> None:
        """Check configuration syntax with ``sshd -t``.

        Raises:
            StepFailure: If sshd rejects the configuration
        """
        for binary in SSHD_BINARIES:
            if host.command_exists(binary):
                outcome = host.run(f"{binary} -t")
                if not outcome.success:
                    raise StepFailure(
                        f"Invalid SSH config, service not restarted: "
                        f"{outcome.stderr.strip()}"
                    )
                logger.info("sshd_config_validated")
                return

        logger.warning("sshd_config_not_validated", reason="sshd not found")

    @staticmethod
    def _restart(host: HostState) -> None:
        service = None
        for name in SSH_SERVICES:
            if host.run(f"systemctl cat {name}.service", needs_root=False).success:
                service = name
                break
        if service is None:
            raise StepFailure("SSH service unit not found")

        # socket activation binds the port itself; regenerate it from the config
        if host.run("systemctl is-active --quiet ssh.socket", needs_root=False).success:
            host.run_checked("systemctl daemon-reload", "Reloading systemd units")
            host.run_checked("systemctl restart ssh.socket", "Restarting ssh.socket")

        host.run_checked(f"systemctl restart {service}", f"Restarting {service}")
        logger.info("ssh_service_restarted", service=service)
