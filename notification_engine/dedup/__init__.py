"""Idempotency ledger for delivered notifications."""

from .ledger import DedupLedger

__all__ = ["DedupLedger"]
