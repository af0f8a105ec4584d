"""Literal ``{field}`` placeholder substitution for notification templates."""

import re
from typing import Any, Mapping

PLACEHOLDER_PATTERN = re.compile(r"\{(\w+)\}")


def render_template(template: str, payload: Mapping[str, Any]) -> str:
    """Substitute ``{field}`` placeholders with values from ``payload``.

    Unresolved placeholders (missing key or ``None`` value) render as an empty
    string so that a partially populated payload still yields a sendable
    message. Any other text, including unmatched braces, is left untouched.

    Example:
        >>> render_template("Receipt: {receipt_number}.", {"amount": 500})
        'Receipt: .'
    """

    def _substitute(match: "re.Match[str]") -> str:
        value = payload.get(match.group(1))
        if value is None:
            return ""
        return str(value)

    return PLACEHOLDER_PATTERN.sub(_substitute, template)

