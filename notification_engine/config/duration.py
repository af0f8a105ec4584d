"""Duration parsing utilities for configuration."""

import re


class DurationParseError(ValueError):
    """Raised when a duration string cannot be parsed."""

    pass


def parse_duration(duration_str: str) -> int:
    """
    Parse a duration string to seconds.

    Supports both human-readable formats and ISO-8601 durations:
    - Human-readable: "15s", "2m", "1m30s"
    - ISO-8601: "PT15S", "PT2M", "PT1M30S"

    Args:
        duration_str: Duration string to parse

    Returns:
        Duration in seconds

    Raises:
        DurationParseError: If the duration string is invalid

    Examples:
        >>> parse_duration("15s")
        15
        >>> parse_duration("PT2M")
        120
    """
    duration_str = duration_str.strip()

    if not duration_str:
        raise DurationParseError("Duration string cannot be empty")

    if duration_str.upper().startswith("P"):
        return _parse_iso8601_duration(duration_str)

    return _parse_human_readable_duration(duration_str)


def _parse_iso8601_duration(duration_str: str) -> int:
    """Parse ISO-8601 duration format: P[n]D, PT[n]H[n]M[n]S."""
    duration_str = duration_str.upper()

    pattern = r"^P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+(?:\.\d+)?)S)?)?$"
    match = re.match(pattern, duration_str)

    if not match:
        raise DurationParseError(
            f"Invalid ISO-8601 duration format: '{duration_str}'. "
            "Expected format like 'PT15S', 'PT2M', or 'PT1M30S'"
        )

    days, hours, minutes, seconds = match.groups()

    total_seconds = 0
    if days:
        total_seconds += int(days) * 86400
    if hours:
        total_seconds += int(hours) * 3600
    if minutes:
        total_seconds += int(minutes) * 60
    if seconds:
        total_seconds += int(float(seconds))

    if total_seconds == 0:
        raise DurationParseError(f"Duration cannot be zero: '{duration_str}'")

    return total_seconds


def _parse_human_readable_duration(duration_str: str) -> int:
    """Parse human-readable durations such as 30s, 2m, 1m30s."""
    pattern = r"(\d+)\s*([smhd])"
    matches = re.findall(pattern, duration_str.lower())

    if not matches:
        raise DurationParseError(
            f"Invalid duration format: '{duration_str}'. "
            "Expected format like '15s', '2m', or combinations like '1m30s'"
        )

    # Reject anything the pattern did not consume
    parsed_str = "".join(f"{num}{unit}" for num, unit in matches)
    cleaned_input = re.sub(r"\s+", "", duration_str.lower())
    if parsed_str != cleaned_input:
        raise DurationParseError(
            f"Invalid characters in duration: '{duration_str}'. "
            "Use only digits and units: s (seconds), m (minutes), h (hours), d (days)"
        )

    unit_multipliers = {
        "s": 1,
        "m": 60,
        "h": 3600,
        "d": 86400,
    }

    total_seconds = sum(int(num) * unit_multipliers[unit] for num, unit in matches)

    if total_seconds == 0:
        raise DurationParseError(f"Duration cannot be zero: '{duration_str}'")

    return total_seconds


def validate_duration_range(
    duration_seconds: int,
    min_seconds: int = 1,
    max_seconds: int = 300,
    label: str = "Duration",
) -> None:
    """
    Validate that a duration is within acceptable range.

    Args:
        duration_seconds: Duration in seconds to validate
        min_seconds: Minimum allowed duration (default: 1 second)
        max_seconds: Maximum allowed duration (default: 5 minutes)
        label: Name used in the error message

    Raises:
        DurationParseError: If duration is outside the valid range
    """
    if duration_seconds < min_seconds:
        raise DurationParseError(
            f"{label} too short: {_seconds_to_human_readable(duration_seconds)}. "
            f"Minimum is {_seconds_to_human_readable(min_seconds)}."
        )

    if duration_seconds > max_seconds:
        raise DurationParseError(
            f"{label} too long: {_seconds_to_human_readable(duration_seconds)}. "
            f"Maximum is {_seconds_to_human_readable(max_seconds)}."
        )


def _seconds_to_human_readable(seconds: int) -> str:
    """Convert seconds to e.g. "15 seconds", "2 minutes", "1 hour"."""
    if seconds < 60:
        return f"{seconds} second{'s' if seconds != 1 else ''}"
    elif seconds < 3600:
        minutes = seconds // 60
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    elif seconds < 86400:
        hours = seconds // 3600
        return f"{hours} hour{'s' if hours != 1 else ''}"
    else:
        days = seconds // 86400
        return f"{days} day{'s' if days != 1 else ''}"
