"""Per-recipient, per-channel daily send ceilings."""

from .limiter import RateLimiter

__all__ = ["RateLimiter"]
