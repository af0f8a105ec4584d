"""School notification dispatch engine.

Decides, for each domain event (absence, fee due, payment received, birthday),
whether and how to notify guardians exactly once, through the configured
channels, within per-recipient rate limits.
"""

__version__ = "1.0.0"
