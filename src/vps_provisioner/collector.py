"""Operator input collection and validation."""

from pathlib import Path
from typing import Callable, Dict, Mapping, Optional, TypeVar

from pydantic import ValidationError as PydanticValidationError

from vps_provisioner.config import (
    DEFAULT_BAN_MAX_RETRY,
    DEFAULT_BAN_TIME,
    DEFAULT_SSH_PORT,
    EnvironmentInput,
    ProvisioningConfig,
)
from vps_provisioner.exceptions import ValidationError
from vps_provisioner.utils.validation import Validator

T = TypeVar("T")


def validate(raw: Mapping[str, object]) -> ProvisioningConfig:
    """Build a ProvisioningConfig from raw, environment-style answers.

    Pure: reads nothing but ``raw`` and touches nothing on the host.

    Raises:
        ValidationError: On the first missing or malformed value
    """
    try:
        return ProvisioningConfig.model_validate(dict(raw))
    except PydanticValidationError as e:
        first = e.errors()[0]
        cause = first.get("ctx", {}).get("error")
        if isinstance(cause, ValidationError):
            raise ValidationError(str(cause), field=cause.field) from e

        loc = first.get("loc") or ()
        field = str(loc[0]) if loc else None
        message = f"{field}: {first['msg']}" if field else first["msg"]
        raise ValidationError(message, field=field) from e


def collect_from_environment(env_file: Optional[Path] = None) -> ProvisioningConfig:
    """Read answers from the environment and a dotenv file.

    Raises:
        ValidationError: If the answers are incomplete or malformed
    """
    settings = EnvironmentInput(_env_file=env_file) if env_file else EnvironmentInput()
    return validate(settings.to_raw())


class InputCollector:
    """Interactive question sequence producing a ProvisioningConfig."""

    def __init__(
        self,
        prompt: Callable[[str], str] = input,
        echo: Callable[[str], None] = print,
    ) -> None:
        """Initialize input collector.

        Args:
            prompt: Reads one answer after showing a question
            echo: Shows informational and warning lines
        """
        self.prompt = prompt
        self.echo = echo

    def collect_interactive(self) -> ProvisioningConfig:
        """Ask every question, re-prompting until each answer is valid."""
        self.echo("Starting interactive setup. Please provide the following information.")
        raw: Dict[str, object] = {}

        raw["SSH_PORT"] = self._ask(
            f"Enter the SSH port you want to use [{DEFAULT_SSH_PORT}]: ",
            lambda a: Validator.parse_port(a, DEFAULT_SSH_PORT, "SSH_PORT"),
        )

        raw["CREATE_NEW_USER"] = self._confirm(
            "Do you want to create a new user with sudo privileges? (Recommended)"
        )
        if raw["CREATE_NEW_USER"]:
            raw["USER_NAME"] = self._ask(
                "Enter the username for the new user: ",
                lambda a: Validator.validate_username(a, "USER_NAME"),
            )
        else:
            self.echo("[WARN] Continuing setup as root. This is not recommended for production.")

        raw["INSTALL_FAIL2BAN"] = self._confirm(
            "Do you want to install Fail2Ban to protect against brute-force attacks?"
        )
        if raw["INSTALL_FAIL2BAN"]:
            raw["F2B_MAX_RETRY"] = self._ask(
                f"Failed attempts before a ban [{DEFAULT_BAN_MAX_RETRY}]: ",
                lambda a: Validator.parse_positive_int(
                    a, DEFAULT_BAN_MAX_RETRY, "F2B_MAX_RETRY"
                ),
            )
            raw["F2B_BAN_TIME"] = self._ask(
                f"Ban duration in seconds [{DEFAULT_BAN_TIME}]: ",
                lambda a: Validator.parse_positive_int(a, DEFAULT_BAN_TIME, "F2B_BAN_TIME"),
            )

        raw["ENABLE_BBR"] = self._confirm(
            "Do you want to enable TCP BBR for better network performance?"
        )

        raw["INSTALL_ACME_SH"] = self._confirm(
            "Do you want to install acme.sh for SSL certificates?"
        )
        if raw["INSTALL_ACME_SH"]:
            raw["ACME_DOMAIN"] = self._ask(
                "Enter your domain name (e.g., example.com): ",
                lambda a: Validator.validate_domain(a, "ACME_DOMAIN"),
            )
            raw["ACME_EMAIL"] = self._ask(
                "Enter your email for Let's Encrypt notifications: ",
                lambda a: Validator.validate_email(a, "ACME_EMAIL"),
            )

        raw["INSTALL_DOCKER"] = self._confirm(
            "Do you want to install Docker and Docker Compose?"
        )

        raw["EXTRA_TCP_PORTS"] = self._ask(
            "Enter any additional TCP ports to allow (space-separated, e.g., '8080 8888'): ",
            lambda a: Validator.parse_port_list(a, "EXTRA_TCP_PORTS"),
        )
        raw["EXTRA_UDP_PORTS"] = self._ask(
            "Enter any additional UDP ports to allow (space-separated, e.g., '51820'): ",
            lambda a: Validator.parse_port_list(a, "EXTRA_UDP_PORTS"),
        )

        return validate(raw)

    def _ask(self, question: str, parse: Callable[[str], T]) -> T:
        while True:
            answer = self.prompt(question)
            try:
                return parse(answer)
            except ValidationError as e:
                self.echo(f"[WARN] {e}")

    def _confirm(self, question: str) -> bool:
        return self._ask(f"{question} [Y/n]: ", Validator.parse_toggle)
