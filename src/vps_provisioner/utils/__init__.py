"""Utility modules for VPS Provisioner."""

from vps_provisioner.utils.command import CommandRunner
from vps_provisioner.utils.file import FileManager
from vps_provisioner.utils.validation import Validator

__all__ = ["CommandRunner", "FileManager", "Validator"]
