"""Perimeter firewall construction on top of iptables."""

import shlex
from pathlib import Path
from typing import Iterable, List, NamedTuple, Optional, Set, Tuple

import structlog

from vps_provisioner.exceptions import StepFailure
from vps_provisioner.host import HostState
from vps_provisioner.types import Action, Direction, Protocol

logger = structlog.get_logger(__name__)

IPTABLES = "iptables"
RULES_V4 = Path("/etc/iptables/rules.v4")
CHAINS = ("INPUT", "FORWARD", "OUTPUT")
MAX_RULE_COPIES = 8

DEFAULT_SSH_PORT = 22
HTTP_PORT = 80
HTTPS_PORT = 443

PERSISTENCE_SELECTIONS = (
    "iptables-persistent iptables-persistent/autosave_v4 boolean true",
    "iptables-persistent iptables-persistent/autosave_v6 boolean true",
)


class FirewallRule(NamedTuple):
    """A single entry of the perimeter policy.

    Exactly one of ``port``, ``icmp_type`` or ``state`` is the match, except
    for loopback rules which match on the interface alone. ``comment`` is an
    operator-facing label for logs; it is not part of the iptables match, so
    a labelled rule and an unlabelled one address the same kernel entry.
    """

    direction: Direction
    action: Action = Action.ACCEPT
    protocol: Optional[Protocol] = None
    port: Optional[int] = None
    icmp_type: Optional[str] = None
    state: Optional[str] = None
    comment: Optional[str] = None

    def chain_args(self) -> List[Tuple[str, str]]:
        """Return (chain, rule specification) pairs this rule expands to."""
        target = f"-j {self.action.value}"
        if self.direction == Direction.LOOPBACK:
            return [("INPUT", f"-i lo {target}"), ("OUTPUT", f"-o lo {target}")]

        parts = []
        if self.protocol is not None:
            parts.append(f"-p {self.protocol.value}")
        if self.state is not None:
            parts.append(f"-m conntrack --ctstate {self.state}")
        if self.port is not None:
            parts.append(f"--dport {self.port}")
        if self.icmp_type is not None:
            parts.append(f"--icmp-type {self.icmp_type}")
        parts.append(target)

        chain = "OUTPUT" if self.direction == Direction.OUTBOUND else "INPUT"
        return [(chain, " ".join(parts))]

    def describe(self) -> str:
        if self.direction == Direction.LOOPBACK:
            match = "loopback"
        elif self.state is not None:
            match = f"state {self.state}"
        elif self.icmp_type is not None:
            match = f"icmp {self.icmp_type}"
        else:
            match = f"{self.protocol.value}/{self.port}"
        return f"{match} {self.action.value.lower()}"


def loopback_rule() -> FirewallRule:
    return FirewallRule(Direction.LOOPBACK, comment="loopback")


def established_rule() -> FirewallRule:
    return FirewallRule(
        Direction.INBOUND, state="ESTABLISHED,RELATED", comment="return traffic"
    )


def port_rule(
    protocol: Protocol, port: int, comment: Optional[str] = None
) -> FirewallRule:
    return FirewallRule(Direction.INBOUND, protocol=protocol, port=port, comment=comment)


def icmp_echo_rule() -> FirewallRule:
    return FirewallRule(
        Direction.INBOUND,
        protocol=Protocol.ICMP,
        icmp_type="echo-request",
        comment="ping",
    )


def build_ruleset(
    ssh_port: int,
    extra_tcp: Iterable[int] = (),
    extra_udp: Iterable[int] = (),
) -> List[FirewallRule]:
    """Build the ordered accept list for the perimeter policy.

    Loopback and established traffic come first, then SSH, web, ping and
    the operator's extra ports in ascending order. A port that is already
    allowed is not listed twice.
    """
    rules = [loopback_rule(), established_rule()]
    seen: Set[Tuple[Protocol, int]] = set()

    def add(protocol: Protocol, port: int, comment: str) -> None:
        if (protocol, port) not in seen:
            seen.add((protocol, port))
            rules.append(port_rule(protocol, port, comment))

    add(Protocol.TCP, ssh_port, "ssh")
    add(Protocol.TCP, HTTP_PORT, "http")
    add(Protocol.TCP, HTTPS_PORT, "https")
    rules.append(icmp_echo_rule())
    for port in sorted(extra_tcp):
        add(Protocol.TCP, port, "extra tcp")
    for port in sorted(extra_udp):
        add(Protocol.UDP, port, "extra udp")
    return rules


class FirewallEngine:
    """Build, commit and adjust the host's packet filter policy."""

    def __init__(self, host: HostState) -> None:
        self.host = host
        self.committed_rules: Optional[List[FirewallRule]] = None

    def install_persistence(self) -> None:
        """Install iptables-persistent without its interactive questions.

        Raises:
            StepFailure: If preseeding or installation fails
        """
        for selection in PERSISTENCE_SELECTIONS:
            self.host.run_checked(
                f"echo {shlex.quote(selection)} | debconf-set-selections",
                "Preseeding iptables-persistent",
            )
        self.host.run_checked(
            "DEBIAN_FRONTEND=noninteractive apt-get install -y iptables-persistent",
            "Installing iptables-persistent",
        )

    def commit(
        self,
        ssh_port: int = DEFAULT_SSH_PORT,
        extra_tcp: Iterable[int] = (),
        extra_udp: Iterable[int] = (),
    ) -> List[FirewallRule]:
        """Rebuild the whole policy from scratch and persist it.

        The default policies stay ACCEPT until every allow rule is in
        place; INPUT switches to DROP only after the SSH rule exists.

        Returns:
            The committed rule list

        Raises:
            StepFailure: If any iptables operation or persisting fails
        """
        extra_tcp = frozenset(extra_tcp)
        rules = build_ruleset(ssh_port, extra_tcp, extra_udp)
        logger.info("firewall_rebuild_started", ssh_port=ssh_port, rules=len(rules))

        self._iptables("-F", "Flushing firewall rules")
        self._iptables("-X", "Deleting custom chains")
        self._iptables("-Z", "Zeroing counters")
        for chain in CHAINS:
            self._iptables(f"-P {chain} ACCEPT", f"Setting {chain} policy to ACCEPT")

        for rule in rules:
            for chain, args in rule.chain_args():
                self._iptables(f"-A {chain} {args}", f"Adding rule {rule.describe()}")
            logger.info(
                "firewall_rule_added", rule=rule.describe(), comment=rule.comment
            )

        if ssh_port != DEFAULT_SSH_PORT and DEFAULT_SSH_PORT not in extra_tcp:
            self._remove_rule(port_rule(Protocol.TCP, DEFAULT_SSH_PORT))

        self._iptables("-P INPUT DROP", "Setting INPUT policy to DROP")
        self.committed_rules = rules
        logger.info("firewall_policy_committed", policy="DROP")

        self._persist()
        return rules

    def allow(self, rule: FirewallRule) -> bool:
        """Add a single rule to the live policy.

        Returns:
            False if the rule was already present and nothing changed
        """
        added = False
        for chain, args in rule.chain_args():
            if self._exists(chain, args):
                continue
            self._iptables(f"-I {chain} {args}", f"Allowing {rule.describe()}")
            added = True

        if added:
            logger.info("firewall_rule_opened", rule=rule.describe(), comment=rule.comment)
        return added

    def revoke(self, rule: FirewallRule) -> None:
        """Remove a single rule from the live policy."""
        self._remove_rule(rule)
        logger.info("firewall_rule_closed", rule=rule.describe())

    def _remove_rule(self, rule: FirewallRule) -> None:
        for chain, args in rule.chain_args():
            for _ in range(MAX_RULE_COPIES):
                if not self._exists(chain, args):
                    break
                self._iptables(f"-D {chain} {args}", f"Removing {rule.describe()}")

    def _exists(self, chain: str, args: str) -> bool:
        return self.host.run(f"{IPTABLES} -C {chain} {args}").success

    def _iptables(self, args: str, description: str) -> None:
        self.host.run_checked(f"{IPTABLES} {args}", description)

    def _persist(self) -> None:
        outcome = self.host.run(f"{IPTABLES}-save")
        if not outcome.success:
            raise StepFailure(
                f"Saving firewall rules failed (exit {outcome.exit_code}): "
                f"{outcome.stderr.strip()}; rules stay active until next boot"
            )
        try:
            self.host.files.write_file(RULES_V4, outcome.stdout)
        except OSError as e:
            raise StepFailure(
                f"Writing {RULES_V4} failed: {e}; rules stay active until next boot"
            ) from e
        logger.info("firewall_rules_persisted", path=str(RULES_V4))
