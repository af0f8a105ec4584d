"""Shared helpers: time, placeholder rendering, address masking, phone numbers."""

from .masking import mask_address
from .phone import normalize_phone
from .placeholders import render_template
from .timestamps import parse_day, today_in, utc_now

__all__ = [
    "mask_address",
    "normalize_phone",
    "parse_day",
    "render_template",
    "today_in",
    "utc_now",
]
