"""Masking of contact addresses before they reach the logs."""

from typing import Optional


def mask_address(address: Optional[str]) -> str:
    """Mask a phone number or e-mail address for logging.

    Phone numbers keep their last three digits, e-mail addresses keep the
    first character of the local part and the domain.

    Example:
        >>> mask_address("254700000001")
        '*********001'
        >>> mask_address("jane.doe@example.com")
        'j***@example.com'
    """
    if not address:
        return ""

    if "@" in address:
        local, _, domain = address.partition("@")
        head = local[:1]
        return f"{head}***@{domain}"

    if len(address) <= 3:
        return "*" * len(address)
    return "*" * (len(address) - 3) + address[-3:]
