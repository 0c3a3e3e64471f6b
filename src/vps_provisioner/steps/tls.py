"""TLS certificate issuance with acme.sh."""

import shlex
from pathlib import Path

import structlog

from vps_provisioner.config import ProvisioningConfig
from vps_provisioner.exceptions import StepFailure
from vps_provisioner.firewall import HTTP_PORT, port_rule
from vps_provisioner.steps.base import Step, StepContext, apt_install
from vps_provisioner.types import Protocol, StepResult

logger = structlog.get_logger(__name__)

ACME_HOME = Path("/root/.acme.sh")
ACME_SH = ACME_HOME / "acme.sh"
ACME_INSTALLER = "https://get.acme.sh"
# acme.sh exits with 2 when the certificate is still valid and renewal is skipped
ACME_RENEWAL_SKIPPED = 2


class TLSIssuanceStep(Step):
    """Issue a certificate through the standalone HTTP challenge.

    Port 80 is opened in the live firewall for the duration of the challenge
    unless the committed policy already allows it.
    """

    name = "tls issuance"
    fatal = False

    def applies(self, config: ProvisioningConfig) -> bool:
        return config.install_tls

    def apply(self, ctx: StepContext) -> StepResult:
        host = ctx.host
        domain = ctx.config.acme_domain
        email = ctx.config.acme_email

        if not host.files.exists(ACME_SH):
            apt_install(host, "socat", "curl")
            host.run_checked(
                f"curl -fsSL {ACME_INSTALLER} | sh -s email={shlex.quote(email)}",
                "Installing acme.sh",
            )

        host.run_checked(
            f"{ACME_SH} --set-default-ca --server letsencrypt",
            "Setting default CA to Let's Encrypt",
        )

        http_rule = port_rule(Protocol.TCP, HTTP_PORT, "acme challenge")
        opened = ctx.firewall.allow(http_rule)
        try:
            logger.info("certificate_requested", domain=domain)
            outcome = host.run(
                f"{ACME_SH} --issue --standalone -d {shlex.quote(domain)} "
                "--keylength ec-256"
            )
        finally:
            if opened:
                ctx.firewall.revoke(http_rule)

        if outcome.exit_code == ACME_RENEWAL_SKIPPED:
            return StepResult.applied(
                self.name, f"certificate for {domain} still valid, renewal skipped"
            )
        if not outcome.success:
            detail = outcome.stderr.strip() or outcome.stdout.strip()
            raise StepFailure(
                f"Certificate issuance for {domain} failed "
                f"(exit {outcome.exit_code}): {detail}"
            )

        logger.info("certificate_issued", domain=domain)
        return StepResult.applied(
            self.name, f"certificate issued, files in {ACME_HOME}/{domain}_ecc/"
        )
