"""Ledger contract and the in-memory reference ledger."""

from .base import Ledger
from .memory import InMemoryLedger

__all__ = ["Ledger", "InMemoryLedger"]
