"""Test helper utilities for notification engine tests."""

from .stubs import StubSender, seed_event, seed_guardian

__all__ = ["StubSender", "seed_event", "seed_guardian"]
