"""Input validation utilities."""

import re
from typing import FrozenSet, Optional

from vps_provisioner.exceptions import ValidationError

_TRUE_ANSWERS = {"y", "yes", "true", "1", "on"}
_FALSE_ANSWERS = {"n", "no", "false", "0", "off"}

_USERNAME_RE = re.compile(r"^[a-z_][a-z0-9_-]*$")
_HOSTNAME_LABEL_RE = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _is_number(text: str) -> bool:
    """True for plain ASCII decimal digits only."""
    return text.isascii() and text.isdigit()


class Validator:
    """Validate raw operator input."""

    @staticmethod
    def validate_port(port: int, field: Optional[str] = None) -> int:
        """Validate port number.

        Args:
            port: Port number to validate
            field: Input key reported on failure

        Returns:
            The port, unchanged

        Raises:
            ValidationError: If port is invalid
        """
        if not (1 <= port <= 65535):
            raise ValidationError(
                f"Invalid port: {port}. Must be between 1-65535", field=field
            )
        return port

    @staticmethod
    def parse_port(raw: object, default: int, field: Optional[str] = None) -> int:
        """Parse a single port, falling back to ``default`` when empty."""
        if raw is None:
            return default
        if isinstance(raw, int) and not isinstance(raw, bool):
            return Validator.validate_port(raw, field)

        text = str(raw).strip()
        if not text:
            return default
        if not _is_number(text):
            raise ValidationError(f"Port must be a number, got {text!r}", field=field)
        return Validator.validate_port(int(text), field)

    @staticmethod
    def parse_port_list(raw: object, field: Optional[str] = None) -> FrozenSet[int]:
        """Parse whitespace-separated port tokens.

        Malformed tokens are rejected rather than dropped.
        """
        if raw is None:
            return frozenset()
        if isinstance(raw, (set, frozenset, list, tuple)):
            tokens = [str(item) for item in raw]
        else:
            tokens = str(raw).split()

        ports = set()
        for token in tokens:
            if not _is_number(token):
                raise ValidationError(f"Invalid port token: {token!r}", field=field)
            ports.add(Validator.validate_port(int(token), field))
        return frozenset(ports)

    @staticmethod
    def parse_toggle(raw: object, field: Optional[str] = None) -> bool:
        """Parse a yes/no answer. Unanswered means yes."""
        if raw is None:
            return True
        if isinstance(raw, bool):
            return raw

        answer = str(raw).strip().lower()
        if not answer or answer in _TRUE_ANSWERS:
            return True
        if answer in _FALSE_ANSWERS:
            return False
        raise ValidationError(f"Expected yes or no, got {raw!r}", field=field)

    @staticmethod
    def parse_positive_int(
        raw: object, default: int, field: Optional[str] = None
    ) -> int:
        """Parse a positive integer, falling back to ``default`` when empty."""
        if raw is None:
            return default
        if isinstance(raw, int) and not isinstance(raw, bool):
            value = raw
        else:
            text = str(raw).strip()
            if not text:
                return default
            if not _is_number(text):
                raise ValidationError(f"Expected a number, got {text!r}", field=field)
            value = int(text)

        if value < 1:
            raise ValidationError(f"Expected a positive number, got {value}", field=field)
        return value

    @staticmethod
    def validate_username(username: str, field: Optional[str] = None) -> str:
        """Validate a Linux account name.

        Args:
            username: Username to validate
            field: Input key reported on failure

        Returns:
            The stripped username

        Raises:
            ValidationError: If username is empty or malformed
        """
        username = username.strip()
        if not username:
            raise ValidationError("Username cannot be empty.", field=field)

        if len(username) > 32:
            raise ValidationError(f"Username too long: {username}", field=field)

        if not _USERNAME_RE.match(username):
            raise ValidationError(f"Invalid username format: {username}", field=field)

        return username

    @staticmethod
    def validate_domain(domain: str, field: Optional[str] = None) -> str:
        """Validate a fully qualified domain name."""
        domain = domain.strip().rstrip(".").lower()
        if not domain:
            raise ValidationError("Domain name cannot be empty.", field=field)

        labels = domain.split(".")
        if (
            len(domain) > 253
            or len(labels) < 2
            or not all(_HOSTNAME_LABEL_RE.match(label) for label in labels)
        ):
            raise ValidationError(f"Invalid domain name: {domain}", field=field)

        return domain

    @staticmethod
    def validate_email(email: str, field: Optional[str] = None) -> str:
        """Validate a contact email address."""
        email = email.strip()
        if not email:
            raise ValidationError("Email cannot be empty.", field=field)

        if not _EMAIL_RE.match(email):
            raise ValidationError(f"Invalid email address: {email}", field=field)

        return email
