"""Recipient resolution: guardians of a subject with per-channel opt-in state."""

from .resolver import RecipientResolver

__all__ = ["RecipientResolver"]
