"""Configuration management for the notification engine."""

from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .loader import load_config, parse_app_config
from .models import (
    AppConfig,
    ChannelsConfig,
    DispatchConfig,
    EmailConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    SmsGatewayConfig,
)

__all__ = [
    # Loader functions
    "load_config",
    "parse_app_config",
    "load_environment_config",
    # Configuration models
    "AppConfig",
    "DispatchConfig",
    "ChannelsConfig",
    "SmsGatewayConfig",
    "EmailConfig",
    "LoggingConfig",
    "EnvironmentConfig",
    # Enums
    "LogLevel",
    "LogFormat",
    # Exceptions
    "ConfigurationError",
]
