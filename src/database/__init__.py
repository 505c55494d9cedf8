"""
Database module for FireChain
SQLAlchemy persistence for the SQL ledger backend
"""

from .connection import DatabaseConnection, get_db
from .models import (
    Base,
    LedgerRecord,
    LedgerSequence,
    LedgerSubmission,
    SubmissionStatus,
)

__all__ = [
    "DatabaseConnection",
    "get_db",
    "Base",
    "LedgerRecord",
    "LedgerSequence",
    "LedgerSubmission",
    "SubmissionStatus",
]
