"""Docker engine and compose plugin."""

import shlex
from pathlib import Path

import structlog

from vps_provisioner.config import ProvisioningConfig
from vps_provisioner.exceptions import StepFailure
from vps_provisioner.steps.base import Step, StepContext, apt_install
from vps_provisioner.types import StepResult

logger = structlog.get_logger(__name__)

KEYRING_DIR = Path("/etc/apt/keyrings")
DOCKER_KEY = KEYRING_DIR / "docker.asc"
DOCKER_LIST = Path("/etc/apt/sources.list.d/docker.list")
DOCKER_REPO = "https://download.docker.com/linux"
SUPPORTED_DISTROS = ("debian", "ubuntu")
DOCKER_PACKAGES = (
    "docker-ce",
    "docker-ce-cli",
    "containerd.io",
    "docker-buildx-plugin",
    "docker-compose-plugin",
)


class ContainerRuntimeStep(Step):
    """Install Docker from its upstream apt repository."""

    name = "container runtime"
    fatal = False

    def applies(self, config: ProvisioningConfig) -> bool:
        return config.install_container_runtime

    def apply(self, ctx: StepContext) -> StepResult:
        host = ctx.host

        if host.command_exists("docker"):
            logger.info("docker_present")
            return StepResult.skipped(self.name, "docker already installed")

        distro = ctx.release.distro
        if distro not in SUPPORTED_DISTROS:
            raise StepFailure(f"Docker repository not available for {distro}")
        if not ctx.release.codename:
            raise StepFailure("Cannot determine release codename for Docker repository")

        arch = host.run_checked(
            "dpkg --print-architecture", "Detecting architecture"
        ).stdout.strip()

        host.run_checked(f"install -m 0755 -d {KEYRING_DIR}", "Creating keyring directory")
        host.run_checked(
            f"curl -fsSL {DOCKER_REPO}/{distro}/gpg -o {DOCKER_KEY}",
            "Downloading Docker signing key",
        )
        host.run_checked(f"chmod a+r {DOCKER_KEY}", "Setting key permissions")
        host.files.write_file(
            DOCKER_LIST,
            f"deb [arch={arch} signed-by={DOCKER_KEY}] {DOCKER_REPO}/{distro} "
            f"{ctx.release.codename} stable\n",
        )
        host.run_checked("apt-get update", "Updating package lists")
        apt_install(host, *DOCKER_PACKAGES)

        logger.info("docker_installed")
        return StepResult.applied(self.name, "Docker engine and compose plugin installed")


class ContainerGroupStep(Step):
    """Grant the provisioned user access to the Docker daemon."""

    name = "container group"
    fatal = False

    def applies(self, config: ProvisioningConfig) -> bool:
        return config.install_container_runtime

    def apply(self, ctx: StepContext) -> StepResult:
        username = ctx.resolved_user
        if username is None:
            return StepResult.skipped(self.name, "no username resolved")

        if not ctx.host.user_exists(username):
            raise StepFailure(f"User {username} does not exist")

        ctx.host.run_checked(
            f"usermod -aG docker {shlex.quote(username)}", "Adding user to docker group"
        )
        return StepResult.applied(
            self.name, f"{username} added to docker group (log in again to apply)"
        )
