"""Configuration loader for the notification engine."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .models import AppConfig
from .validators import check_for_warnings, emit_warnings


def load_config(config_path: Optional[Path] = None) -> tuple[AppConfig, EnvironmentConfig]:
    """
    Load and validate configuration from YAML file and environment variables.

    Config file location:
    1. Use provided config_path if given
    2. Try config.yaml in current directory
    3. Try ./config/config.yaml
    4. Fail with helpful error message

    Args:
        config_path: Optional path to configuration file

    Returns:
        Tuple of (AppConfig, EnvironmentConfig) with validated configuration

    Raises:
        ConfigurationError: If configuration is invalid or file not found
    """
    config_file = _find_config_file(config_path)

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Failed to parse YAML configuration: {e}",
            suggestions=[
                "Check YAML syntax in your config file",
                "Ensure proper indentation (use spaces, not tabs)",
            ],
        )
    except OSError as e:
        raise ConfigurationError(
            f"Failed to read configuration file: {e}",
            suggestions=[
                f"Ensure {config_file} is readable",
                "Check file permissions",
            ],
        )

    app_config = parse_app_config(config_dict or {})
    env_config = load_environment_config()

    return app_config, env_config


def parse_app_config(config_dict: Dict[str, Any]) -> AppConfig:
    """
    Validate a raw configuration mapping.

    An empty mapping is valid and yields every default.

    Raises:
        ConfigurationError: If the mapping does not match the schema
    """
    if not isinstance(config_dict, dict):
        raise ConfigurationError(
            "Configuration root must be a mapping",
            suggestions=["Review config.example.yaml for correct format"],
        )

    warnings = check_for_warnings(config_dict)
    if warnings:
        emit_warnings(warnings)

    try:
        return AppConfig.model_validate(config_dict)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            field_path = " -> ".join(str(loc) for loc in error["loc"])
            error_type = error["type"]

            if error_type in ["string_type", "int_type", "bool_type", "list_type", "dict_type"]:
                expected_type = error_type.replace("_type", "")
                errors.append(
                    f"Invalid type for '{field_path}': expected {expected_type}, got {error.get('input')}"
                )
            elif "enum" in error_type:
                errors.append(f"Invalid value for '{field_path}': {error['msg']}")
            else:
                errors.append(f"{field_path}: {error['msg']}")

        raise ConfigurationError(
            "Configuration validation failed",
            errors=errors,
            suggestions=[
                "Review config.example.yaml for correct format",
                "Verify field types match the expected schema",
            ],
        )


def _find_config_file(config_path: Optional[Path] = None) -> Path:
    """
    Find configuration file using fallback logic.

    Raises:
        ConfigurationError: If no config file is found
    """
    if config_path:
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigurationError(
                f"Specified configuration file not found: {config_path}",
                suggestions=[
                    f"Ensure {config_path} exists",
                    "Check the path and try again",
                ],
            )
        return config_path

    candidates = [
        Path("config.yaml"),
        Path("config") / "config.yaml",
    ]

    for candidate in candidates:
        if candidate.exists():
            return candidate

    raise ConfigurationError(
        "Configuration file not found",
        errors=[
            "Tried: config.yaml",
            "Tried: config/config.yaml",
        ],
        suggestions=[
            "Copy config.example.yaml to config.yaml",
            "Use --config flag to specify a custom location",
        ],
    )
