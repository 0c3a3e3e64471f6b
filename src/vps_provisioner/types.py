"""Type definitions for VPS Provisioner."""

from enum import Enum
from typing import NamedTuple, Optional


class Protocol(str, Enum):
    """Packet protocols a firewall rule can match."""

    TCP = "tcp"
    UDP = "udp"
    ICMP = "icmp"


class Direction(str, Enum):
    """Traffic direction a firewall rule applies to."""

    INBOUND = "inbound"
    OUTBOUND = "outbound"
    LOOPBACK = "loopback"


class Action(str, Enum):
    """Firewall rule verdicts."""

    ACCEPT = "ACCEPT"
    DROP = "DROP"


class Outcome(str, Enum):
    """Outcome of a provisioning step."""

    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


class CommandOutcome(NamedTuple):
    """Result of command execution."""

    exit_code: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.exit_code == 0


class StepResult(NamedTuple):
    """Outcome of a single provisioning step."""

    name: str
    outcome: Outcome
    message: str = ""
    fatal: bool = False

    @classmethod
    def applied(cls, name: str, message: str = "") -> "StepResult":
        return cls(name, Outcome.SUCCESS, message)

    @classmethod
    def skipped(cls, name: str, message: str = "") -> "StepResult":
        return cls(name, Outcome.SKIPPED, message)

    @classmethod
    def failed(cls, name: str, message: str, fatal: bool) -> "StepResult":
        return cls(name, Outcome.FAILED, message, fatal)


class SystemRelease(NamedTuple):
    """Distribution identity read from os-release."""

    distro: str
    codename: Optional[str] = None
