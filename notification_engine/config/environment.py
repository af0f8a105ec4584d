"""Environment variable loading and validation.

Provider credentials live in the environment (or a ``.env`` file loaded by the
CLI). A missing credential is not an error: the corresponding channel is simply
reported as unconfigured. Malformed values are rejected.
"""

import os
from typing import List, Optional

from email_validator import EmailNotValidError, validate_email

from .exceptions import ConfigurationError

DEFAULT_DATABASE_URL = "sqlite:///./data/notifications.db"
VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class EnvironmentConfig:
    """Environment variable configuration holder."""

    def __init__(
        self,
        database_url: Optional[str] = None,
        log_level: Optional[str] = None,
        sms_gateway_token: Optional[str] = None,
        smtp_host: Optional[str] = None,
        smtp_port: Optional[int] = None,
        smtp_user: Optional[str] = None,
        smtp_pass: Optional[str] = None,
        email_from_address: Optional[str] = None,
        email_from_name: Optional[str] = None,
    ):
        self.database_url = database_url or DEFAULT_DATABASE_URL
        self.log_level = log_level
        self.sms_gateway_token = sms_gateway_token
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port or 587
        self.smtp_user = smtp_user
        self.smtp_pass = smtp_pass
        self.email_from_address = email_from_address
        self.email_from_name = email_from_name

    @property
    def sms_configured(self) -> bool:
        return bool(self.sms_gateway_token)

    @property
    def email_configured(self) -> bool:
        return bool(self.smtp_host and self.email_from_address)

    def missing_sms_credentials(self) -> List[str]:
        return [] if self.sms_gateway_token else ["SMS_GATEWAY_TOKEN"]

    def missing_email_credentials(self) -> List[str]:
        missing = []
        if not self.smtp_host:
            missing.append("SMTP_HOST")
        if not self.email_from_address:
            missing.append("EMAIL_FROM_ADDRESS")
        return missing


def _getenv(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def load_environment_config() -> EnvironmentConfig:
    """
    Load and validate environment variables.

    Optional environment variables:
    - DATABASE_URL: SQLAlchemy database URL (default: sqlite:///./data/notifications.db)
    - LOG_LEVEL: Override log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - SMS_GATEWAY_TOKEN: Bulk SMS gateway API token (SMS disabled when absent)
    - SMTP_HOST, SMTP_PORT: SMTP transport (e-mail disabled when host absent)
    - SMTP_USER, SMTP_PASS: SMTP authentication (both or neither)
    - EMAIL_FROM_ADDRESS, EMAIL_FROM_NAME: sender identity

    Returns:
        EnvironmentConfig object with validated values

    Raises:
        ConfigurationError: If a variable is present but malformed
    """
    errors = []

    database_url = _getenv("DATABASE_URL")
    log_level = _getenv("LOG_LEVEL")
    sms_gateway_token = _getenv("SMS_GATEWAY_TOKEN")
    smtp_host = _getenv("SMTP_HOST")
    smtp_port_str = _getenv("SMTP_PORT")
    smtp_user = _getenv("SMTP_USER")
    smtp_pass = _getenv("SMTP_PASS")
    email_from_address = _getenv("EMAIL_FROM_ADDRESS")
    email_from_name = _getenv("EMAIL_FROM_NAME")

    smtp_port = None
    if smtp_port_str:
        try:
            smtp_port = int(smtp_port_str)
            if smtp_port < 1 or smtp_port > 65535:
                errors.append(f"Invalid SMTP_PORT: {smtp_port}. Must be between 1 and 65535.")
        except ValueError:
            errors.append(f"Invalid SMTP_PORT: '{smtp_port_str}'. Must be a valid integer.")

    if email_from_address:
        try:
            validate_email(email_from_address, check_deliverability=False)
        except EmailNotValidError as e:
            errors.append(f"Invalid EMAIL_FROM_ADDRESS '{email_from_address}': {e}")

    if log_level and log_level.upper() not in VALID_LOG_LEVELS:
        errors.append(
            f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(VALID_LOG_LEVELS)}"
        )

    if smtp_user and not smtp_pass:
        errors.append("SMTP_USER is set but SMTP_PASS is not. Both must be set for authentication.")
    elif smtp_pass and not smtp_user:
        errors.append("SMTP_PASS is set but SMTP_USER is not. Both must be set for authentication.")

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Copy .env.example to .env and fill in your credentials",
                "Leave provider variables unset to disable a channel",
                "Verify SMTP_PORT is a number between 1 and 65535",
            ],
        )

    return EnvironmentConfig(
        database_url=database_url,
        log_level=log_level,
        sms_gateway_token=sms_gateway_token,
        smtp_host=smtp_host,
        smtp_port=smtp_port,
        smtp_user=smtp_user,
        smtp_pass=smtp_pass,
        email_from_address=email_from_address,
        email_from_name=email_from_name,
    )
