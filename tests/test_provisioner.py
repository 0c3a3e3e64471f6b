"""Tests for the provisioning orchestrator."""

import pytest
from conftest import make_config

from vps_provisioner.exceptions import ConfigurationError, ExecutionError, ValidationError
from vps_provisioner.provisioner import Provisioner, RunSummary
from vps_provisioner.steps import Step, default_steps
from vps_provisioner.types import Outcome, StepResult

STEP_NAMES = [
    "system update",
    "user creation",
    "ssh hardening",
    "ban policy",
    "congestion tuning",
    "firewall commit",
    "container runtime",
    "container group",
    "tls issuance",
]


class ExplodingStep(Step):
    name = "exploding"
    fatal = False

    def apply(self, ctx):
        raise ExecutionError("Cannot execute command: true")


class RecordingStep(Step):
    name = "recording"

    def __init__(self):
        self.calls = 0

    def apply(self, ctx):
        self.calls += 1
        return StepResult.applied(self.name)


@pytest.fixture
def fresh_user(runner):
    """The user does not exist before creation and does afterwards."""
    runner.respond("id -u deploy", [1, 0])
    return runner


def test_default_step_order():
    assert [step.name for step in default_steps()] == STEP_NAMES


def test_full_run_succeeds(host, fresh_user, test_config):
    summary = Provisioner(test_config, host).run()

    assert [r.name for r in summary.results] == STEP_NAMES
    assert all(r.outcome == Outcome.SUCCESS for r in summary.results), summary.render()
    assert summary.succeeded
    assert summary.exit_code == 0


def test_firewall_commits_after_ssh_hardening(host, fresh_user, test_config):
    Provisioner(test_config, host).run()

    restart = fresh_user.index_of("systemctl restart ssh")
    assert restart < fresh_user.index_of("iptables -P INPUT DROP")


def test_without_user_docker_group_skipped(host, runner):
    config = make_config(CREATE_NEW_USER="no", USER_NAME=None)

    summary = Provisioner(config, host).run()

    assert summary.outcome_of("user creation").outcome == Outcome.SKIPPED
    assert summary.outcome_of("container runtime").outcome == Outcome.SUCCESS
    group = summary.outcome_of("container group")
    assert group.outcome == Outcome.SKIPPED
    assert group.message == "no username resolved"
    assert summary.exit_code == 0


def test_disabled_features_skipped(host, runner):
    config = make_config(
        INSTALL_FAIL2BAN="no",
        ENABLE_BBR="no",
        INSTALL_ACME_SH="no",
        ACME_DOMAIN=None,
        ACME_EMAIL=None,
        INSTALL_DOCKER="no",
    )

    summary = Provisioner(config, host).run()

    for name in ("ban policy", "congestion tuning", "container runtime", "tls issuance"):
        assert summary.outcome_of(name).outcome == Outcome.SKIPPED
    assert not runner.ran("fail2ban")
    assert not runner.ran("acme.sh")


def test_ban_policy_failure_not_fatal(host, fresh_user, test_config):
    fresh_user.respond("systemctl restart fail2ban", 1, stderr="unit failed")

    summary = Provisioner(test_config, host).run()

    ban = summary.outcome_of("ban policy")
    assert ban.outcome == Outcome.FAILED
    assert not ban.fatal
    assert summary.outcome_of("congestion tuning").outcome == Outcome.SUCCESS
    assert summary.outcome_of("tls issuance").outcome == Outcome.SUCCESS
    assert summary.exit_code == 0
    assert "(non-fatal)" in summary.render()


def test_fatal_failure_aborts_remaining_steps(host, runner, test_config):
    runner.respond("apt-get update", 100, stderr="Could not resolve")

    summary = Provisioner(test_config, host).run()

    first = summary.results[0]
    assert first.outcome == Outcome.FAILED
    assert first.fatal
    for result in summary.results[1:]:
        assert result.outcome == Outcome.SKIPPED
        assert result.message == "not run: aborted after system update"
    assert summary.exit_code == 1
    assert summary.fatal_failure is first
    assert not runner.ran("iptables")


def test_execution_error_is_fatal(host, test_config):
    recording = RecordingStep()

    summary = Provisioner(test_config, host, steps=[ExplodingStep(), recording]).run()

    assert summary.results[0].outcome == Outcome.FAILED
    assert summary.results[0].fatal
    assert recording.calls == 0
    assert summary.exit_code == 1


def test_preflight_failure_stops_before_changes(host, runner, test_config):
    runner.respond("command -v apt-get", 1)

    with pytest.raises(ConfigurationError, match="apt-get"):
        Provisioner(test_config, host).run()
    assert not runner.ran("apt-get update")


def test_default_port_used_everywhere(host, fresh_user, host_root):
    config = make_config(SSH_PORT=None)

    Provisioner(config, host).run()

    sshd = (host_root / "etc/ssh/sshd_config").read_text()
    assert "Port 22\n" in sshd
    assert "iptables -A INPUT -p tcp --dport 22 -j ACCEPT" in fresh_user.commands
    jail = (host_root / "etc/fail2ban/jail.d/sshd-custom.conf").read_text()
    assert "port = 22\n" in jail


def test_tls_validation_fails_before_commands(runner):
    with pytest.raises(ValidationError):
        make_config(ACME_DOMAIN=None)
    assert runner.commands == []


def test_summary_render():
    summary = RunSummary([
        StepResult.applied("system update", "system packages updated"),
        StepResult.skipped("ban policy", "disabled"),
        StepResult.failed("tls issuance", "issuance failed", fatal=False),
    ])

    rendered = summary.render()

    assert "system update" in rendered
    assert "skipped - disabled" in rendered
    assert "failed (non-fatal) - issuance failed" in rendered
    assert summary.succeeded


def test_file_error_in_optional_step_keeps_summary(
    host, fresh_user, host_root, test_config
):
    (host_root / "etc" / "fail2ban").mkdir(parents=True)
    (host_root / "etc" / "fail2ban" / "jail.d").write_text("not a directory")

    summary = Provisioner(test_config, host).run()

    ban = summary.outcome_of("ban policy")
    assert ban.outcome == Outcome.FAILED
    assert not ban.fatal
    assert ban.message.startswith("File operation failed")
    assert summary.outcome_of("congestion tuning").outcome == Outcome.SUCCESS
    assert summary.exit_code == 0


def test_file_error_in_fatal_step_aborts(host, fresh_user, host_root, test_config):
    sshd_config = host_root / "etc" / "ssh" / "sshd_config"
    sshd_config.unlink()
    sshd_config.mkdir()

    summary = Provisioner(test_config, host).run()

    ssh = summary.outcome_of("ssh hardening")
    assert ssh.outcome == Outcome.FAILED
    assert ssh.fatal
    assert summary.outcome_of("firewall commit").message == (
        "not run: aborted after ssh hardening"
    )
    assert summary.exit_code == 1
