"""Phone number normalization for the bulk SMS gateway."""

import re

DEFAULT_COUNTRY_CODE = "254"


def normalize_phone(phone: str, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """Normalize a local or international number to the gateway format.

    The gateway expects digits only, with the country code and no leading
    plus sign or trunk zero.

    Example:
        >>> normalize_phone("+254 700 000 001")
        '254700000001'
        >>> normalize_phone("0700000001")
        '254700000001'
        >>> normalize_phone("700000001")
        '254700000001'
    """
    digits = re.sub(r"\D", "", phone or "")
    if not digits:
        return ""

    if digits.startswith(country_code):
        return digits
    if digits.startswith("0"):
        return country_code + digits[1:]
    if len(digits) == 9:
        return country_code + digits
    return digits
