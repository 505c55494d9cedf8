"""
SQLAlchemy models for FireChain
Tables backing the SQL ledger: confirmed records, id sequences and
submissions awaiting confirmation
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, JSON,
    Index, UniqueConstraint, Enum as SQLEnum
)
from sqlalchemy.orm import declarative_base

import enum

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SubmissionStatus(enum.Enum):
    """Lifecycle of a ledger submission."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class LedgerRecord(Base):
    """
    Confirmed ledger record.

    One row per (collection, key); payload holds the record fields.
    """
    __tablename__ = "ledger_records"

    id = Column(Integer, primary_key=True, index=True)

    collection = Column(String(64), nullable=False)
    key = Column(String(128), nullable=False)
    payload = Column(JSON, nullable=False)

    # Managed by the ORM: updates match on the version read, so a row changed
    # by another writer since it was loaded raises StaleDataError on flush
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        UniqueConstraint("collection", "key", name="uq_ledger_record_collection_key"),
        Index("idx_ledger_record_collection", collection),
    )
    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<LedgerRecord({self.collection}/{self.key}, v{self.version})>"


class LedgerSequence(Base):
    """Highest id assigned by a confirmed append, per collection."""
    __tablename__ = "ledger_sequences"

    collection = Column(String(64), primary_key=True)
    last_id = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<LedgerSequence({self.collection}={self.last_id})>"


class LedgerSubmission(Base):
    """
    Submitted transaction.

    Stays PENDING until awaited; the outcome is stored so repeated awaits
    return the same confirmation.
    """
    __tablename__ = "ledger_submissions"

    handle = Column(String(36), primary_key=True)
    operations = Column(JSON, nullable=False)

    status = Column(SQLEnum(SubmissionStatus), nullable=False, default=SubmissionStatus.PENDING)
    error_kind = Column(String(32))
    detail = Column(Text)
    assigned_ids = Column(JSON, default=list)

    submitted_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    confirmed_at = Column(DateTime(timezone=True))

    __table_args__ = (
        Index("idx_ledger_submission_status", status),
        Index("idx_ledger_submission_submitted_at", submitted_at),
    )

    def __repr__(self):
        return f"<LedgerSubmission({self.handle}, status={self.status.value})>"

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "handle": self.handle,
            "status": self.status.value,
            "error_kind": self.error_kind,
            "detail": self.detail,
            "assigned_ids": self.assigned_ids or [],
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "confirmed_at": self.confirmed_at.isoformat() if self.confirmed_at else None,
        }
