"""
FireChain - Ledger Collaborator
Append-only log interface and its in-memory and SQL backends.
"""

from src.ledger.base import (
    Adjust,
    Append,
    Confirmation,
    ConfirmationStatus,
    LedgerClient,
    PendingHandle,
    RejectionKind,
    Update,
)
from src.ledger.memory import InMemoryLedger
from src.ledger.sql import SQLLedger

__all__ = [
    # Interface
    "LedgerClient",
    "PendingHandle",
    "Confirmation",
    "ConfirmationStatus",
    "RejectionKind",
    # Operations
    "Append",
    "Update",
    "Adjust",
    # Backends
    "InMemoryLedger",
    "SQLLedger",
]
