"""Soft checks on raw configuration that produce warnings, not errors."""

import warnings
from typing import Any, Dict, List

KNOWN_CHANNELS = ("sms", "email", "in_app")


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """
    Check configuration for potential issues and return warnings.

    Args:
        config_dict: Raw configuration dictionary

    Returns:
        List of warning messages
    """
    warning_messages = []

    channels = config_dict.get("channels", {})
    if isinstance(channels, dict):
        rate_limits = channels.get("rate_limits", {})
        if isinstance(rate_limits, dict):
            for channel, ceiling in rate_limits.items():
                if ceiling == 0:
                    warning_messages.append(
                        f"Rate limit for '{channel}' is 0; the channel will never be used"
                    )

        preference_order = channels.get("preference_order")
        if isinstance(preference_order, list):
            missing = [c for c in KNOWN_CHANNELS if c not in preference_order]
            if missing:
                warning_messages.append(
                    f"Channels missing from preference_order will never be used: {', '.join(missing)}"
                )

    dispatch = config_dict.get("dispatch", {})
    if isinstance(dispatch, dict):
        max_workers = dispatch.get("max_workers")
        if isinstance(max_workers, int) and max_workers > 10:
            warning_messages.append(
                f"High max_workers ({max_workers}) may overwhelm SMS and e-mail providers"
            )

        event_types = dispatch.get("event_types")
        if isinstance(event_types, list) and not event_types:
            warning_messages.append("dispatch.event_types is empty; sweeps will find no events")

    return warning_messages


def emit_warnings(warning_messages: List[str]) -> None:
    """
    Emit warning messages using Python's warnings module.

    Args:
        warning_messages: List of warning messages to emit
    """
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)
