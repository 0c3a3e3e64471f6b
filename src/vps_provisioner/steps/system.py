"""Package updates and account creation."""

import shlex
from pathlib import Path

import structlog

from vps_provisioner.config import ProvisioningConfig
from vps_provisioner.host import HostState
from vps_provisioner.steps.base import APT_ENV, Step, StepContext, apt_install
from vps_provisioner.types import StepResult

logger = structlog.get_logger(__name__)

BASE_PACKAGES = (
    "apt-transport-https",
    "ca-certificates",
    "curl",
    "gnupg",
    "lsb-release",
)
ROOT_AUTHORIZED_KEYS = Path("/root/.ssh/authorized_keys")


class SystemUpdateStep(Step):
    """Refresh package lists, upgrade, and install base tooling."""

    name = "system update"
    fatal = True

    def apply(self, ctx: StepContext) -> StepResult:
        host = ctx.host
        host.run_checked("apt-get update", "Updating package lists")
        # keep locally modified config files during the upgrade
        host.run_checked(
            f"{APT_ENV} apt-get -y -o Dpkg::Options::=--force-confold upgrade",
            "Upgrading packages",
        )
        apt_install(host, *BASE_PACKAGES)
        return StepResult.applied(self.name, "system packages updated")


class UserCreationStep(Step):
    """Create the sudo user the operator asked for."""

    name = "user creation"
    fatal = True

    def applies(self, config: ProvisioningConfig) -> bool:
        return config.create_user

    def apply(self, ctx: StepContext) -> StepResult:
        username = ctx.config.user_name
        host = ctx.host

        if host.user_exists(username):
            logger.warning("user_exists", user=username)
            ctx.resolved_user = username
            return StepResult.applied(
                self.name, f"user {username} already exists, creation skipped"
            )

        quoted = shlex.quote(username)
        host.run_checked(
            f'adduser --disabled-password --gecos "" {quoted}',
            f"Creating user {username}",
        )
        host.run_checked(f"usermod -aG sudo {quoted}", "Adding user to sudo group")
        ctx.resolved_user = username
        logger.info("user_created", user=username)

        if self._seed_authorized_keys(host, username):
            return StepResult.applied(
                self.name, f"user {username} created with root's SSH keys"
            )
        return StepResult.applied(
            self.name,
            f"user {username} created; add an SSH key before logging in",
        )

    @staticmethod
    def _seed_authorized_keys(host: HostState, username: str) -> bool:
        """Set up ~/.ssh and copy root's keys into it when root has any."""
        quoted = shlex.quote(username)
        ssh_dir = f"/home/{username}/.ssh"
        host.run_checked(
            f"install -d -m 700 -o {quoted} -g {quoted} {shlex.quote(ssh_dir)}",
            "Creating SSH directory",
        )

        if not host.files.exists(ROOT_AUTHORIZED_KEYS):
            return False

        host.run_checked(
            f"install -m 600 -o {quoted} -g {quoted} {ROOT_AUTHORIZED_KEYS} "
            f"{shlex.quote(ssh_dir + '/authorized_keys')}",
            "Copying authorized keys",
        )
        return True
