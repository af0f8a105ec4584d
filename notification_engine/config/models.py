"""Configuration schema models using Pydantic."""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..domain.catalog import CATALOG
from ..domain.models import Channel
from ..utils.timestamps import get_timezone
from .duration import DurationParseError, parse_duration, validate_duration_range

MIN_SEND_TIMEOUT_SECONDS = 1
MAX_SEND_TIMEOUT_SECONDS = 300


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


class DispatchConfig(BaseModel):
    """Worker pool, timeouts, and run window."""

    max_workers: int = Field(5, ge=1, le=32, description="Concurrent event workers")
    send_timeout: str = Field("15s", description="Per-call provider timeout")
    timezone: str = Field("UTC", description="IANA timezone defining the calendar day")
    event_types: List[str] = Field(
        default_factory=lambda: list(CATALOG),
        description="Categories swept when a request does not name any",
    )
    demo_institutions: List[str] = Field(
        default_factory=list,
        description="Institutions that never reach external providers",
    )

    # Computed field
    send_timeout_seconds: Optional[int] = None

    @field_validator("send_timeout")
    @classmethod
    def validate_send_timeout(cls, v: str) -> str:
        try:
            seconds = parse_duration(v)
            validate_duration_range(
                seconds,
                min_seconds=MIN_SEND_TIMEOUT_SECONDS,
                max_seconds=MAX_SEND_TIMEOUT_SECONDS,
                label="Send timeout",
            )
            return v
        except DurationParseError as e:
            raise ValueError(str(e)) from e

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        get_timezone(v)
        return v

    @field_validator("event_types")
    @classmethod
    def validate_event_types(cls, v: List[str]) -> List[str]:
        unknown = [event_type for event_type in v if event_type not in CATALOG]
        if unknown:
            raise ValueError(f"Unknown event types: {', '.join(unknown)}")
        # Preserve order, drop duplicates
        return list(dict.fromkeys(v))

    @model_validator(mode="after")
    def compute_fields(self):
        self.send_timeout_seconds = parse_duration(self.send_timeout)
        return self


class ChannelsConfig(BaseModel):
    """Channel ordering and per-channel daily ceilings."""

    preference_order: List[Channel] = Field(
        default_factory=lambda: [Channel.SMS, Channel.EMAIL, Channel.IN_APP]
    )
    rate_limits: Dict[Channel, Optional[int]] = Field(
        default_factory=lambda: {Channel.SMS: 3, Channel.EMAIL: None, Channel.IN_APP: None},
        description="Daily sends per recipient; null means unlimited",
    )

    @field_validator("preference_order")
    @classmethod
    def validate_preference_order(cls, v: List[Channel]) -> List[Channel]:
        if len(v) != len(set(v)):
            raise ValueError("preference_order must not list a channel twice")
        if not v:
            raise ValueError("preference_order must list at least one channel")
        return v

    @field_validator("rate_limits")
    @classmethod
    def validate_rate_limits(cls, v: Dict[Channel, Optional[int]]) -> Dict[Channel, Optional[int]]:
        for channel, ceiling in v.items():
            if ceiling is not None and ceiling < 0:
                raise ValueError(f"rate limit for {channel.value} must be >= 0 or null")
        return v

    def ceiling_for(self, channel: Channel) -> Optional[int]:
        return self.rate_limits.get(channel)


class SmsGatewayConfig(BaseModel):
    """Bulk SMS gateway settings (the token comes from the environment)."""

    api_url: str = Field("https://endpint.roberms.com/roberms/bulk_api/", min_length=1)
    username: str = Field("ZIRA TECH", min_length=1)
    sender_name: str = Field("ZIRA TECH", min_length=1)
    sender_type: int = Field(0, ge=0, description="0 = transactional")

    @field_validator("api_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped.startswith(("http://", "https://")):
            raise ValueError("api_url must start with http:// or https://")
        return stripped


class EmailConfig(BaseModel):
    """Email transport settings."""

    use_tls: bool = Field(True, description="Use TLS/STARTTLS for secure connection")
    sender_name: str = Field("School Notifications", description="Default display name")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(LogFormat.KEY_VALUE, description="Log output format (json or key-value)")

    model_config = {"use_enum_values": True}


class AppConfig(BaseModel):
    """Root configuration object for the notification engine."""

    dispatch: DispatchConfig = Field(default_factory=DispatchConfig)
    channels: ChannelsConfig = Field(default_factory=ChannelsConfig)
    sms: SmsGatewayConfig = Field(default_factory=SmsGatewayConfig)
    email: EmailConfig = Field(default_factory=EmailConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def is_demo_institution(self, institution_id: str) -> bool:
        return institution_id in self.dispatch.demo_institutions
