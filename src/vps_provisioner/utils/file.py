"""File management utilities."""

import shlex
import shutil
from pathlib import Path
from typing import Optional

import structlog

from vps_provisioner.utils.command import CommandRunner

logger = structlog.get_logger(__name__)


class FileManager:
    """Read and write host configuration files.

    Paths are always given as absolute host paths (``/etc/ssh/sshd_config``).
    When ``root`` is set they are resolved beneath it, which lets the same
    code operate on a staged tree. When ``runner`` is set, file access goes
    through shell commands on that runner so it gains the runner's sudo.
    """

    def __init__(
        self,
        root: Optional[Path] = None,
        dry_run: bool = False,
        runner: Optional[CommandRunner] = None,
    ) -> None:
        """Initialize file manager.

        Args:
            root: Directory host paths are resolved under; None for ``/``
            dry_run: If True, log writes without touching the filesystem
            runner: Runner used for privileged access; None for direct I/O
        """
        self.root = root
        self.dry_run = dry_run
        self.runner = runner

    def resolve(self, filepath: Path) -> Path:
        """Map a host path to the path actually touched."""
        filepath = Path(filepath)
        if self.root is None:
            return filepath
        return self.root / filepath.relative_to(filepath.anchor)

    def _shell(self, cmd: str, action: str, input_text: Optional[str] = None) -> str:
        outcome = self.runner.run(cmd, input_text=input_text)
        if not outcome.success:
            raise OSError(f"{action} failed: {outcome.stderr.strip()}")
        return outcome.stdout

    def exists(self, filepath: Path) -> bool:
        target = self.resolve(filepath)
        if self.runner is not None:
            return self.runner.run(f"test -e {shlex.quote(str(target))}").success
        return target.exists()

    def backup_file(self, filepath: Path, suffix: str = ".bak") -> Optional[Path]:
        """Copy a file next to itself with ``suffix`` appended.

        Args:
            filepath: Path to file to backup
            suffix: Suffix for the backup copy

        Returns:
            Host path of the backup or None if source doesn't exist
        """
        if not self.exists(filepath):
            return None

        backup_path = Path(f"{filepath}{suffix}")
        if self.dry_run:
            logger.info("dry_run_backup", path=str(filepath))
            return backup_path

        source = self.resolve(filepath)
        target = self.resolve(backup_path)
        if self.runner is not None:
            self._shell(
                f"cp -p {shlex.quote(str(source))} {shlex.quote(str(target))}",
                f"Backing up {filepath}",
            )
        else:
            shutil.copy2(source, target)
        logger.info("file_backed_up", path=str(filepath), backup=str(backup_path))
        return backup_path

    def read_file(self, filepath: Path) -> str:
        """Read file content.

        Args:
            filepath: Path to file

        Returns:
            File content as string
        """
        target = self.resolve(filepath)
        if self.runner is not None:
            return self._shell(f"cat {shlex.quote(str(target))}", f"Reading {filepath}")
        with open(target) as f:
            return f.read()

    def write_file(self, filepath: Path, content: str) -> None:
        """Write content to file, creating parent directories.

        Args:
            filepath: Path to file
            content: Content to write
        """
        self._store(filepath, content, append=False)

    def append_file(self, filepath: Path, content: str) -> None:
        """Append content to file.

        Args:
            filepath: Path to file
            content: Content to append
        """
        self._store(filepath, content, append=True)

    def _store(self, filepath: Path, content: str, append: bool) -> None:
        if self.dry_run:
            logger.info("dry_run_append" if append else "dry_run_write", path=str(filepath))
            return

        target = self.resolve(filepath)
        if self.runner is not None:
            parent = shlex.quote(str(target.parent))
            tee = "tee -a" if append else "tee"
            self._shell(
                f"mkdir -p {parent} && {tee} {shlex.quote(str(target))} >/dev/null",
                f"Writing {filepath}",
                input_text=content,
            )
        else:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "a" if append else "w") as f:
                f.write(content)
        logger.debug("file_appended" if append else "file_written", path=str(filepath))
