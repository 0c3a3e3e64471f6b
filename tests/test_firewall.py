"""Tests for the firewall engine."""

import pytest

from vps_provisioner.exceptions import StepFailure
from vps_provisioner.firewall import (
    FirewallEngine,
    FirewallRule,
    build_ruleset,
    port_rule,
)
from vps_provisioner.types import Direction, Protocol

DROP = "iptables -P INPUT DROP"


def iptables_commands(runner):
    return [c for c in runner.commands if c.startswith("iptables")]


def test_ruleset_order_for_custom_port():
    rules = build_ruleset(2222, {8080}, set())

    assert [r.describe() for r in rules] == [
        "loopback accept",
        "state ESTABLISHED,RELATED accept",
        "tcp/2222 accept",
        "tcp/80 accept",
        "tcp/443 accept",
        "icmp echo-request accept",
        "tcp/8080 accept",
    ]


def test_ruleset_extra_ports_sorted_and_deduplicated():
    rules = build_ruleset(443, {9000, 80, 8080}, {51820, 53})

    ports = [(r.protocol, r.port) for r in rules if r.port is not None]
    assert ports == [
        (Protocol.TCP, 443),
        (Protocol.TCP, 80),
        (Protocol.TCP, 8080),
        (Protocol.TCP, 9000),
        (Protocol.UDP, 53),
        (Protocol.UDP, 51820),
    ]


def test_loopback_rule_covers_both_directions():
    rule = FirewallRule(Direction.LOOPBACK)
    assert rule.chain_args() == [
        ("INPUT", "-i lo -j ACCEPT"),
        ("OUTPUT", "-o lo -j ACCEPT"),
    ]


def test_outbound_rule_uses_output_chain():
    rule = FirewallRule(Direction.OUTBOUND, protocol=Protocol.UDP, port=53)
    assert rule.chain_args() == [("OUTPUT", "-p udp --dport 53 -j ACCEPT")]


def test_commit_command_sequence(host, runner):
    engine = FirewallEngine(host)
    engine.commit(2222, {8080}, set())

    assert iptables_commands(runner) == [
        "iptables -F",
        "iptables -X",
        "iptables -Z",
        "iptables -P INPUT ACCEPT",
        "iptables -P FORWARD ACCEPT",
        "iptables -P OUTPUT ACCEPT",
        "iptables -A INPUT -i lo -j ACCEPT",
        "iptables -A OUTPUT -o lo -j ACCEPT",
        "iptables -A INPUT -m conntrack --ctstate ESTABLISHED,RELATED -j ACCEPT",
        "iptables -A INPUT -p tcp --dport 2222 -j ACCEPT",
        "iptables -A INPUT -p tcp --dport 80 -j ACCEPT",
        "iptables -A INPUT -p tcp --dport 443 -j ACCEPT",
        "iptables -A INPUT -p icmp --icmp-type echo-request -j ACCEPT",
        "iptables -A INPUT -p tcp --dport 8080 -j ACCEPT",
        "iptables -C INPUT -p tcp --dport 22 -j ACCEPT",
        DROP,
        "iptables-save",
    ]


@pytest.mark.parametrize(
    "port", [1, 22, 80, 443, 1024, 2222, 65535] + list(range(3, 65535, 4093))
)
def test_ssh_accept_precedes_drop_policy(host, runner, port):
    FirewallEngine(host).commit(port)

    accept = f"iptables -A INPUT -p tcp --dport {port} -j ACCEPT"
    assert accept in runner.commands
    assert runner.commands.count(DROP) == 1
    assert runner.index_of(accept) < runner.index_of(DROP)
    assert runner.commands[-1] == "iptables-save"


def test_policies_accept_before_any_rule(host, runner):
    FirewallEngine(host).commit(2222)

    first_append = next(i for i, c in enumerate(runner.commands) if " -A " in c)
    for chain in ("INPUT", "FORWARD", "OUTPUT"):
        assert runner.index_of(f"iptables -P {chain} ACCEPT") < first_append


def test_stale_port_22_rule_removed_before_drop(host, runner):
    runner.respond("iptables -C INPUT -p tcp --dport 22 -j ACCEPT", [0, 1])

    FirewallEngine(host).commit(2222)

    delete = "iptables -D INPUT -p tcp --dport 22 -j ACCEPT"
    assert runner.commands.count(delete) == 1
    assert runner.index_of(delete) < runner.index_of(DROP)


def test_port_22_kept_when_explicitly_allowed(host, runner):
    FirewallEngine(host).commit(2222, {22})

    assert "iptables -A INPUT -p tcp --dport 22 -j ACCEPT" in runner.commands
    assert not runner.ran("iptables -C")
    assert not runner.ran("iptables -D")


def test_default_port_needs_no_stale_check(host, runner):
    FirewallEngine(host).commit(22)
    assert not runner.ran("iptables -C")


def test_failed_append_never_sets_drop(host, runner):
    runner.respond("--dport 2222", 1, stderr="iptables: No chain/target/match")

    engine = FirewallEngine(host)
    with pytest.raises(StepFailure, match="tcp/2222"):
        engine.commit(2222)

    assert DROP not in runner.commands
    assert engine.committed_rules is None


def test_rules_persisted_to_file(host, host_root):
    FirewallEngine(host).commit(2222)

    saved = (host_root / "etc" / "iptables" / "rules.v4").read_text()
    assert ":INPUT DROP" in saved


def test_persist_failure_reported_after_drop(host, runner):
    runner.respond("iptables-save", 1, stderr="permission denied")

    engine = FirewallEngine(host)
    with pytest.raises(StepFailure, match="until next boot"):
        engine.commit(2222)

    assert DROP in runner.commands
    assert engine.committed_rules is not None


def test_rebuild_is_idempotent(host, runner):
    engine = FirewallEngine(host)

    first = engine.commit(2222, {8080}, {51820})
    first_commands = list(runner.commands)
    runner.commands.clear()
    second = engine.commit(2222, {8080}, {51820})

    assert first == second
    assert runner.commands == first_commands


def test_allow_adds_missing_rule(host, runner):
    engine = FirewallEngine(host)

    assert engine.allow(port_rule(Protocol.TCP, 8443)) is True
    assert "iptables -I INPUT -p tcp --dport 8443 -j ACCEPT" in runner.commands


def test_allow_is_noop_when_present(host, runner):
    runner.respond("iptables -C INPUT -p tcp --dport 80", 0)
    engine = FirewallEngine(host)

    assert engine.allow(port_rule(Protocol.TCP, 80)) is False
    assert not runner.ran("iptables -I")


def test_revoke_deletes_rule(host, runner):
    runner.respond("iptables -C INPUT -p tcp --dport 80", [0, 1])

    FirewallEngine(host).revoke(port_rule(Protocol.TCP, 80))

    assert runner.commands.count("iptables -D INPUT -p tcp --dport 80 -j ACCEPT") == 1


def test_install_persistence_preseeds_debconf(host, runner):
    FirewallEngine(host).install_persistence()

    preseeds = [c for c in runner.commands if "debconf-set-selections" in c]
    assert len(preseeds) == 2
    assert runner.index_of(preseeds[-1]) < len(runner.commands) - 1
    assert runner.commands[-1].endswith("apt-get install -y iptables-persistent")


def test_built_rules_are_labelled():
    rules = build_ruleset(2222, {8080}, {51820})

    assert [r.comment for r in rules] == [
        "loopback",
        "return traffic",
        "ssh",
        "http",
        "https",
        "ping",
        "extra tcp",
        "extra udp",
    ]


def test_label_not_part_of_match():
    labelled = port_rule(Protocol.TCP, 8080, "web app")
    assert labelled.chain_args() == port_rule(Protocol.TCP, 8080).chain_args()
