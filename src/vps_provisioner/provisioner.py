"""Provisioning orchestrator."""

import os
from typing import Iterable, List, Optional

import structlog

from vps_provisioner.config import ProvisioningConfig
from vps_provisioner.exceptions import ConfigurationError, ExecutionError, StepFailure
from vps_provisioner.firewall import FirewallEngine
from vps_provisioner.host import HostState
from vps_provisioner.steps import Step, StepContext, default_steps
from vps_provisioner.system_info import SystemInfo
from vps_provisioner.types import Outcome, StepResult

logger = structlog.get_logger(__name__)

_OUTCOME_MARKS = {
    Outcome.SUCCESS: "✅",
    Outcome.SKIPPED: "⏭️ ",
    Outcome.FAILED: "❌",
}


class RunSummary:
    """Outcome of every step of one run, in execution order."""

    def __init__(self, results: Iterable[StepResult]) -> None:
        self.results: List[StepResult] = list(results)

    @property
    def fatal_failure(self) -> Optional[StepResult]:
        for result in self.results:
            if result.outcome == Outcome.FAILED and result.fatal:
                return result
        return None

    @property
    def succeeded(self) -> bool:
        return self.fatal_failure is None

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1

    def outcome_of(self, name: str) -> Optional[StepResult]:
        for result in self.results:
            if result.name == name:
                return result
        return None

    def render(self) -> str:
        lines = []
        for result in self.results:
            mark = _OUTCOME_MARKS[result.outcome]
            label = result.outcome.value
            if result.outcome == Outcome.FAILED:
                label += " (fatal)" if result.fatal else " (non-fatal)"
            line = f"  {mark} {result.name:<18} {label}"
            if result.message:
                line += f" - {result.message}"
            lines.append(line)
        return "\n".join(lines)


class Provisioner:
    """Main provisioning orchestrator."""

    def __init__(
        self,
        config: ProvisioningConfig,
        host: HostState,
        steps: Optional[List[Step]] = None,
    ) -> None:
        """Initialize provisioner.

        Args:
            config: Validated operator configuration
            host: Handle on the host to provision
            steps: Steps to run, in order; defaults to the full sequence
        """
        self.config = config
        self.host = host
        self.steps = steps if steps is not None else default_steps()

        self.system = SystemInfo(host)
        self.firewall = FirewallEngine(host)

    def preflight_checks(self) -> None:
        """Verify the host can be provisioned before anything changes.

        Raises:
            ConfigurationError: If system requirements are not met
        """
        logger.info("Starting preflight checks", **self.system.to_dict())

        issues = self.system.check_requirements()
        if issues:
            for issue in issues:
                logger.error("preflight_issue", issue=issue)
            raise ConfigurationError("Preflight checks failed: " + "; ".join(issues))

        if "SSH_CONNECTION" in os.environ and self.config.ssh_port != 22:
            logger.warning(
                "ssh_port_changing",
                port=self.config.ssh_port,
                hint="keep this session open and reconnect on the new port",
            )

        logger.info("Preflight checks passed")

    def run(self) -> RunSummary:
        """Execute every step in order.

        A fatal failure stops the run; the remaining steps are reported as
        not run. Non-fatal failures are recorded and the run continues.

        Raises:
            ConfigurationError: If preflight checks fail
        """
        self.preflight_checks()

        ctx = StepContext(
            config=self.config,
            host=self.host,
            firewall=self.firewall,
            release=self.system.release,
        )

        results: List[StepResult] = []
        aborted_after: Optional[str] = None
        for step in self.steps:
            if aborted_after is not None:
                results.append(
                    StepResult.skipped(step.name, f"not run: aborted after {aborted_after}")
                )
                continue

            result = self._run_step(step, ctx)
            results.append(result)
            if result.outcome == Outcome.FAILED and result.fatal:
                aborted_after = step.name
                logger.error("provisioning_aborted", step=step.name)

        summary = RunSummary(results)
        if summary.succeeded:
            logger.info("Provisioning completed")
        return summary

    def _run_step(self, step: Step, ctx: StepContext) -> StepResult:
        if not step.applies(self.config):
            logger.info("step_skipped", step=step.name)
            return StepResult.skipped(step.name, "disabled")

        logger.info("step_started", step=step.name)
        try:
            result = step.apply(ctx)
        except StepFailure as e:
            result = StepResult.failed(step.name, str(e), step.fatal)
        except ExecutionError as e:
            result = StepResult.failed(step.name, str(e), fatal=True)
        except OSError as e:
            result = StepResult.failed(step.name, f"File operation failed: {e}", step.fatal)

        if result.outcome == Outcome.FAILED:
            logger.error(
                "step_failed", step=step.name, fatal=result.fatal, error=result.message
            )
        else:
            logger.info(
                "step_finished",
                step=step.name,
                outcome=result.outcome.value,
                detail=result.message,
            )
        return result
