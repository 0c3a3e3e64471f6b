"""System information detection for VPS Provisioner."""

import os
from pathlib import Path
from typing import Dict, List

from vps_provisioner.host import HostState
from vps_provisioner.types import SystemRelease

OS_RELEASE = Path("/etc/os-release")
SSHD_CONFIG = Path("/etc/ssh/sshd_config")


class SystemInfo:
    """Detect and store system capabilities."""

    def __init__(self, host: HostState) -> None:
        """Initialize system information detection."""
        self.host = host
        self.release = self._detect_release()
        self.is_root = os.geteuid() == 0
        self.has_sudo = self._check_sudo()
        self.can_be_root = self.is_root or self.has_sudo

    def _detect_release(self) -> SystemRelease:
        """Detect Linux distribution and release codename."""
        if not self.host.files.exists(OS_RELEASE):
            return SystemRelease("unknown")

        values: Dict[str, str] = {}
        for line in self.host.files.read_file(OS_RELEASE).splitlines():
            key, sep, value = line.partition("=")
            if sep:
                values[key.strip()] = value.strip().strip('"').strip("'")

        return SystemRelease(
            distro=values.get("ID", "unknown").lower(),
            codename=values.get("VERSION_CODENAME") or None,
        )

    def _check_sudo(self) -> bool:
        """Check if current user can use sudo."""
        if self.is_root:
            return True

        if not self.host.command_exists("sudo"):
            return False

        return self.host.run("sudo -n true", needs_root=False).success

    def check_requirements(self) -> List[str]:
        """Check if system meets minimum requirements."""
        issues: List[str] = []

        if not self.can_be_root:
            issues.append("No root access available (need root or sudo)")

        if not self.host.command_exists("apt-get"):
            issues.append("apt-get not found; a Debian-based system is required")

        if not self.host.command_exists("systemctl"):
            issues.append("systemctl not found; systemd is required")

        if not self.host.files.exists(SSHD_CONFIG):
            issues.append(f"SSH config not found at {SSHD_CONFIG}")

        return issues

    def to_dict(self) -> Dict[str, str]:
        """Convert system info to dictionary."""
        return {
            "distro": self.release.distro,
            "codename": self.release.codename or "unknown",
            "is_root": str(self.is_root),
            "has_sudo": str(self.has_sudo),
        }
