"""Configuration management for VPS Provisioner."""

from pathlib import Path
from typing import Dict, FrozenSet, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from vps_provisioner.exceptions import ValidationError
from vps_provisioner.utils.validation import Validator

DEFAULT_SSH_PORT = 22
DEFAULT_BAN_MAX_RETRY = 5
DEFAULT_BAN_TIME = 3600


class ProvisioningConfig(BaseModel):
    """Validated operator choices for a provisioning run.

    Fields are populated from raw, environment-style keys (``SSH_PORT``,
    ``INSTALL_DOCKER`` ...) so that the interactive prompts and the
    environment both produce the same shape. Instances are immutable.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    ssh_port: int = Field(
        default=DEFAULT_SSH_PORT, ge=1, le=65535, alias="SSH_PORT"
    )
    create_user: bool = Field(default=True, alias="CREATE_NEW_USER")
    user_name: Optional[str] = Field(default=None, alias="USER_NAME")
    install_ban_policy: bool = Field(default=True, alias="INSTALL_FAIL2BAN")
    ban_max_retry: int = Field(
        default=DEFAULT_BAN_MAX_RETRY, ge=1, alias="F2B_MAX_RETRY"
    )
    ban_time: int = Field(default=DEFAULT_BAN_TIME, ge=1, alias="F2B_BAN_TIME")
    enable_congestion_tuning: bool = Field(default=True, alias="ENABLE_BBR")
    install_tls: bool = Field(default=True, alias="INSTALL_ACME_SH")
    acme_domain: Optional[str] = Field(default=None, alias="ACME_DOMAIN")
    acme_email: Optional[str] = Field(default=None, alias="ACME_EMAIL")
    install_container_runtime: bool = Field(default=True, alias="INSTALL_DOCKER")
    extra_tcp_ports: FrozenSet[int] = Field(
        default_factory=frozenset, alias="EXTRA_TCP_PORTS"
    )
    extra_udp_ports: FrozenSet[int] = Field(
        default_factory=frozenset, alias="EXTRA_UDP_PORTS"
    )

    @field_validator("ssh_port", mode="before")
    @classmethod
    def parse_ssh_port(cls, v: object) -> int:
        return Validator.parse_port(v, DEFAULT_SSH_PORT, field="SSH_PORT")

    @field_validator(
        "create_user",
        "install_ban_policy",
        "enable_congestion_tuning",
        "install_tls",
        "install_container_runtime",
        mode="before",
    )
    @classmethod
    def parse_toggle(cls, v: object, info: ValidationInfo) -> bool:
        """Parse yes/no toggles; an empty answer means yes."""
        field = cls.model_fields[info.field_name].alias
        return Validator.parse_toggle(v, field=field)

    @field_validator("ban_max_retry", mode="before")
    @classmethod
    def parse_ban_max_retry(cls, v: object) -> int:
        return Validator.parse_positive_int(
            v, DEFAULT_BAN_MAX_RETRY, field="F2B_MAX_RETRY"
        )

    @field_validator("ban_time", mode="before")
    @classmethod
    def parse_ban_time(cls, v: object) -> int:
        return Validator.parse_positive_int(v, DEFAULT_BAN_TIME, field="F2B_BAN_TIME")

    @field_validator("user_name", mode="before")
    @classmethod
    def parse_user_name(cls, v: object) -> Optional[str]:
        if v is None or not str(v).strip():
            return None
        return Validator.validate_username(str(v), field="USER_NAME")

    @field_validator("acme_domain", mode="before")
    @classmethod
    def parse_acme_domain(cls, v: object) -> Optional[str]:
        if v is None or not str(v).strip():
            return None
        return Validator.validate_domain(str(v), field="ACME_DOMAIN")

    @field_validator("acme_email", mode="before")
    @classmethod
    def parse_acme_email(cls, v: object) -> Optional[str]:
        if v is None or not str(v).strip():
            return None
        return Validator.validate_email(str(v), field="ACME_EMAIL")

    @field_validator("extra_tcp_ports", mode="before")
    @classmethod
    def parse_extra_tcp_ports(cls, v: object) -> FrozenSet[int]:
        return Validator.parse_port_list(v, field="EXTRA_TCP_PORTS")

    @field_validator("extra_udp_ports", mode="before")
    @classmethod
    def parse_extra_udp_ports(cls, v: object) -> FrozenSet[int]:
        return Validator.parse_port_list(v, field="EXTRA_UDP_PORTS")

    @model_validator(mode="after")
    def check_conditional_fields(self) -> "ProvisioningConfig":
        """Every conditional field is present iff its toggle is on."""
        if self.create_user and self.user_name is None:
            raise ValidationError(
                "USER_NAME is required when CREATE_NEW_USER is enabled",
                field="USER_NAME",
            )
        if not self.create_user and self.user_name is not None:
            raise ValidationError(
                "USER_NAME is set but CREATE_NEW_USER is disabled", field="USER_NAME"
            )

        if self.install_tls:
            if self.acme_domain is None:
                raise ValidationError(
                    "ACME_DOMAIN is required when INSTALL_ACME_SH is enabled",
                    field="ACME_DOMAIN",
                )
            if self.acme_email is None:
                raise ValidationError(
                    "ACME_EMAIL is required when INSTALL_ACME_SH is enabled",
                    field="ACME_EMAIL",
                )
        elif self.acme_domain is not None or self.acme_email is not None:
            raise ValidationError(
                "ACME_DOMAIN/ACME_EMAIL are set but INSTALL_ACME_SH is disabled",
                field="ACME_DOMAIN" if self.acme_domain else "ACME_EMAIL",
            )

        if not self.install_ban_policy:
            given = self.model_fields_set & {"ban_max_retry", "ban_time"}
            if given:
                raise ValidationError(
                    "F2B_MAX_RETRY/F2B_BAN_TIME are set but INSTALL_FAIL2BAN "
                    "is disabled",
                    field="F2B_MAX_RETRY" if "ban_max_retry" in given else "F2B_BAN_TIME",
                )

        return self


class EnvironmentInput(BaseSettings):
    """Raw provisioning answers read from the environment or a dotenv file."""

    ssh_port: Optional[str] = None
    create_new_user: Optional[str] = None
    user_name: Optional[str] = None
    install_fail2ban: Optional[str] = None
    f2b_max_retry: Optional[str] = None
    f2b_ban_time: Optional[str] = None
    enable_bbr: Optional[str] = None
    install_acme_sh: Optional[str] = None
    acme_domain: Optional[str] = None
    acme_email: Optional[str] = None
    install_docker: Optional[str] = None
    extra_tcp_ports: Optional[str] = None
    extra_udp_ports: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def to_raw(self) -> Dict[str, str]:
        """Return the supplied answers keyed by their environment names."""
        return {
            key.upper(): value
            for key, value in self.model_dump().items()
            if value is not None
        }


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    level: str = Field(default="INFO")
    file: Optional[Path] = Field(default=None)

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
