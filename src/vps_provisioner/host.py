"""Handle on the host operating system being provisioned."""

import os
import shlex
from typing import Optional

from vps_provisioner.exceptions import StepFailure
from vps_provisioner.types import CommandOutcome
from vps_provisioner.utils.command import CommandRunner
from vps_provisioner.utils.file import FileManager


class HostState:
    """All access to host state goes through this object.

    Steps and the firewall engine receive it explicitly, so tests can pass
    one built on a recording runner and a file manager rooted in a
    temporary directory.
    """

    def __init__(self, runner: CommandRunner, files: FileManager) -> None:
        self.runner = runner
        self.files = files

    @classmethod
    def local(cls, dry_run: bool = False) -> "HostState":
        """Build a handle on the machine this process runs on."""
        use_sudo = os.geteuid() != 0
        runner = CommandRunner(use_sudo=use_sudo, dry_run=dry_run)
        files = FileManager(dry_run=dry_run, runner=runner if use_sudo else None)
        return cls(runner, files)

    def run(
        self, cmd: str, needs_root: bool = True, input_text: Optional[str] = None
    ) -> CommandOutcome:
        return self.runner.run(cmd, needs_root=needs_root, input_text=input_text)

    def run_checked(self, cmd: str, description: str) -> CommandOutcome:
        """Run a command and raise StepFailure if it exits non-zero.

        Raises:
            StepFailure: If the command reports failure
        """
        outcome = self.runner.run(cmd)
        if not outcome.success:
            detail = outcome.stderr.strip() or outcome.stdout.strip()
            raise StepFailure(
                f"{description} failed (exit {outcome.exit_code}): {detail}"
            )
        return outcome

    def command_exists(self, command: str) -> bool:
        return self.runner.command_exists(command)

    def user_exists(self, username: str) -> bool:
        outcome = self.runner.run(f"id -u {shlex.quote(username)}", needs_root=False)
        return outcome.success
