"""Pytest configuration and fixtures."""

from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

import pytest

from vps_provisioner.collector import validate
from vps_provisioner.config import ProvisioningConfig
from vps_provisioner.firewall import FirewallEngine
from vps_provisioner.host import HostState
from vps_provisioner.steps.base import StepContext
from vps_provisioner.types import CommandOutcome, SystemRelease
from vps_provisioner.utils.command import CommandRunner
from vps_provisioner.utils.file import FileManager

SAMPLE_SSHD_CONFIG = """\
Include /etc/ssh/sshd_config.d/*.conf

#Port 22
#AddressFamily any

#PermitRootLogin prohibit-password
#MaxAuthTries 6

# Port forwarding is handled per user below
#PubkeyAuthentication yes
PasswordAuthentication yes
KbdInteractiveAuthentication no
UsePAM yes

X11Forwarding yes
Subsystem sftp /usr/lib/openssh/sftp-server

Match User anoncvs
\tPasswordAuthentication yes
\tX11Forwarding no
"""

OS_RELEASE = """\
PRETTY_NAME="Ubuntu 24.04 LTS"
NAME="Ubuntu"
VERSION_ID="24.04"
VERSION_CODENAME=noble
ID=ubuntu
ID_LIKE=debian
"""


class FakeRunner(CommandRunner):
    """Records commands and answers them from scripted outcomes.

    Each script entry matches by substring; the newest entry wins. An entry
    holding several outcomes hands them out in turn and then repeats the
    last one. Unmatched commands succeed with empty output.
    """

    def __init__(self) -> None:
        super().__init__()
        self.commands: List[str] = []
        self.inputs: List[Optional[str]] = []
        self._script: List[Tuple[str, List[CommandOutcome]]] = []

    def respond(
        self,
        substring: str,
        exit_code: Union[int, Sequence[int]] = 0,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        codes = [exit_code] if isinstance(exit_code, int) else list(exit_code)
        outcomes = [CommandOutcome(code, stdout, stderr) for code in codes]
        self._script.insert(0, (substring, outcomes))

    def run(
        self,
        cmd: str,
        needs_root: bool = True,
        input_text: Optional[str] = None,
    ) -> CommandOutcome:
        self.commands.append(cmd)
        self.inputs.append(input_text)
        for substring, outcomes in self._script:
            if substring in cmd:
                return outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        return CommandOutcome(0, "", "")

    def ran(self, substring: str) -> bool:
        return any(substring in cmd for cmd in self.commands)

    def index_of(self, command: str) -> int:
        return self.commands.index(command)


@pytest.fixture
def runner() -> FakeRunner:
    """Fake runner scripted like a fresh Ubuntu host."""
    fake = FakeRunner()
    fake.respond("iptables -C", 1)
    fake.respond("iptables-save", 0, stdout="*filter\n:INPUT DROP [0:0]\nCOMMIT\n")
    fake.respond("id -u", 1)
    fake.respond("command -v docker", 1)
    fake.respond("systemctl is-active --quiet ssh.socket", 3)
    fake.respond("sysctl -n net.ipv4.tcp_congestion_control", 0, stdout="bbr\n")
    fake.respond("dpkg --print-architecture", 0, stdout="amd64\n")
    return fake


@pytest.fixture
def host_root(tmp_path: Path) -> Path:
    """Staged host filesystem."""
    root = tmp_path / "host"
    (root / "etc" / "ssh").mkdir(parents=True)
    (root / "etc" / "ssh" / "sshd_config").write_text(SAMPLE_SSHD_CONFIG)
    (root / "etc" / "os-release").write_text(OS_RELEASE)
    return root


@pytest.fixture
def host(runner: FakeRunner, host_root: Path) -> HostState:
    return HostState(runner, FileManager(root=host_root))


def make_config(**overrides: object) -> ProvisioningConfig:
    raw: Dict[str, object] = {
        "SSH_PORT": "2222",
        "CREATE_NEW_USER": "yes",
        "USER_NAME": "deploy",
        "INSTALL_FAIL2BAN": "yes",
        "ENABLE_BBR": "yes",
        "INSTALL_ACME_SH": "yes",
        "ACME_DOMAIN": "example.com",
        "ACME_EMAIL": "admin@example.com",
        "INSTALL_DOCKER": "yes",
    }
    raw.update(overrides)
    return validate({k: v for k, v in raw.items() if v is not None})


@pytest.fixture
def test_config() -> ProvisioningConfig:
    """Create test configuration."""
    return make_config()


@pytest.fixture
def ctx(test_config: ProvisioningConfig, host: HostState) -> StepContext:
    return StepContext(
        config=test_config,
        host=host,
        firewall=FirewallEngine(host),
        release=SystemRelease("ubuntu", "noble"),
    )
