"""Command execution utilities."""

import shlex
import subprocess
from typing import List, Optional

import structlog

from vps_provisioner.exceptions import ExecutionError
from vps_provisioner.types import CommandOutcome

logger = structlog.get_logger(__name__)


class CommandRunner:
    """Execute system commands and report their outcome."""

    def __init__(self, use_sudo: bool = False, dry_run: bool = False) -> None:
        """Initialize command runner.

        Args:
            use_sudo: Whether to prepend sudo to commands requiring root
            dry_run: If True, only log commands without executing
        """
        self.use_sudo = use_sudo
        self.dry_run = dry_run
        self.history: List[str] = []

    def run(
        self,
        cmd: str,
        needs_root: bool = True,
        input_text: Optional[str] = None,
    ) -> CommandOutcome:
        """Execute a shell command.

        A non-zero exit status is returned to the caller, never raised.

        Args:
            cmd: Command to execute
            needs_root: Whether command requires root privileges
            input_text: Data fed to the command's stdin

        Returns:
            CommandOutcome with exit code and captured output

        Raises:
            ExecutionError: If the command cannot be spawned
        """
        if needs_root and self.use_sudo:
            cmd = f"sudo sh -c {shlex.quote(cmd)}"

        self.history.append(cmd)

        if self.dry_run:
            logger.info("dry_run_command", command=cmd)
            return CommandOutcome(0, "", "")

        logger.debug("running_command", command=cmd)
        try:
            result = subprocess.run(
                cmd,
                shell=True,
                capture_output=True,
                text=True,
                input=input_text,
                check=False,
            )
        except OSError as e:
            raise ExecutionError(f"Cannot execute command: {cmd}\nError: {e}") from e

        outcome = CommandOutcome(
            exit_code=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )
        if outcome.success:
            logger.debug("command_succeeded", command=cmd)
        else:
            logger.warning(
                "command_failed",
                command=cmd,
                exit_code=outcome.exit_code,
                stderr=outcome.stderr.strip(),
            )
        return outcome

    def command_exists(self, command: str) -> bool:
        """Check if command is available on system."""
        outcome = self.run(f"command -v {shlex.quote(command)}", needs_root=False)
        return outcome.success
