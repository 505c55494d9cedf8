"""
SQL ledger backend for FireChain
Transactional store on SQLAlchemy; submissions are persisted as pending
rows and applied in a single database transaction when awaited
"""

import copy
import logging
import threading
import time
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Sequence, Tuple, Union

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from src.core.config import settings
from src.core.exceptions import LedgerReadError, LedgerRejected, NotFoundError
from src.database.connection import DatabaseConnection, get_db
from src.database.models import (
    LedgerRecord,
    LedgerSequence,
    LedgerSubmission,
    SubmissionStatus,
)
from src.ledger.base import (
    Confirmation,
    ConfirmationStatus,
    LedgerClient,
    Operation,
    PendingHandle,
    RejectionKind,
    TransactionRejected,
    apply_operations,
    operation_from_dict,
    operation_to_dict,
    utc_now,
)

logger = logging.getLogger(__name__)

_STATUS_MAP = {
    SubmissionStatus.PENDING: ConfirmationStatus.TIMEOUT,
    SubmissionStatus.CONFIRMED: ConfirmationStatus.CONFIRMED,
    SubmissionStatus.REJECTED: ConfirmationStatus.REJECTED,
}


class SQLLedger(LedgerClient):
    """
    Ledger persisted through SQLAlchemy.

    Transient database errors (OperationalError) are retried with linear
    backoff up to max_retries; after that the submission is reported as
    rejected with kind UNAVAILABLE.

    Compare-and-set is enforced by the database, not the in-process lock:
    record rows are versioned and sequence rows are unique, so when another
    process commits between our read and our write the flush fails and the
    submission is re-applied against fresh state. A writer that keeps
    losing past max_retries is rejected with kind CONFLICT.
    """

    def __init__(
        self,
        db: Optional[DatabaseConnection] = None,
        max_retries: Optional[int] = None,
        retry_backoff_seconds: Optional[float] = None,
        default_timeout: Optional[float] = None,
        clock: Optional[Callable] = None
    ):
        """
        Initialize SQL ledger.

        Args:
            db: Database connection (global connection if omitted)
            max_retries: Retries for transient database errors
            retry_backoff_seconds: Base delay between retries
            default_timeout: Timeout used by commit() when none is given
            clock: Callable returning the confirmation timestamp
        """
        self.db = db or get_db()
        self.max_retries = settings.ledger_max_retries if max_retries is None else max_retries
        self.retry_backoff_seconds = (
            settings.ledger_retry_backoff_seconds
            if retry_backoff_seconds is None else retry_backoff_seconds
        )
        self.default_timeout = default_timeout
        self._clock = clock or utc_now

        # Serializes appliers within this process
        self._lock = threading.Lock()

        self.db.create_tables()
        logger.info("SQLLedger initialized")

    # =========================================================================
    # Submission
    # =========================================================================

    def submit(self, operations: Sequence[Operation]) -> PendingHandle:
        handle = PendingHandle(handle_id=str(uuid.uuid4()), submitted_at=self._clock())
        serialized = [operation_to_dict(op) for op in operations]

        attempt = 0
        while True:
            try:
                with self.db.get_session() as session:
                    session.add(LedgerSubmission(
                        handle=handle.handle_id,
                        operations=serialized,
                        status=SubmissionStatus.PENDING,
                        assigned_ids=[],
                        submitted_at=handle.submitted_at,
                    ))
                break
            except OperationalError as e:
                attempt += 1
                if attempt > self.max_retries:
                    logger.error(f"Ledger submission failed after {attempt} attempts: {e}")
                    raise LedgerRejected(
                        "Ledger unavailable, submission not accepted",
                        error_kind=RejectionKind.UNAVAILABLE.value,
                    ) from e
                logger.warning(f"Ledger submission attempt {attempt} failed, retrying: {e}")
                time.sleep(self.retry_backoff_seconds * attempt)

        logger.debug(f"Submitted {len(serialized)} operation(s) as {handle.handle_id}")
        return handle

    def await_confirmation(
        self,
        handle: PendingHandle,
        timeout: Optional[float] = None
    ) -> Confirmation:
        deadline = None if timeout is None else time.monotonic() + timeout
        timed_out = Confirmation(handle_id=handle.handle_id, status=ConfirmationStatus.TIMEOUT)

        if not self._lock.acquire(timeout=timeout if timeout is not None else -1):
            return timed_out

        try:
            attempt = 0
            while True:
                try:
                    return self._confirm(handle.handle_id)
                except (StaleDataError, IntegrityError) as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        logger.error(f"Ledger confirmation of {handle.handle_id} kept conflicting: {e}")
                        return Confirmation(
                            handle_id=handle.handle_id,
                            status=ConfirmationStatus.REJECTED,
                            error_kind=RejectionKind.CONFLICT,
                            detail=f"concurrent writers after {attempt} attempts",
                        )
                    logger.info(f"Concurrent write during {handle.handle_id}, re-applying: {e}")
                except OperationalError as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        logger.error(f"Ledger confirmation of {handle.handle_id} failed: {e}")
                        return Confirmation(
                            handle_id=handle.handle_id,
                            status=ConfirmationStatus.REJECTED,
                            error_kind=RejectionKind.UNAVAILABLE,
                            detail=f"database unavailable after {attempt} attempts",
                        )
                    delay = self.retry_backoff_seconds * attempt
                    if deadline is not None and time.monotonic() + delay > deadline:
                        return timed_out
                    logger.warning(f"Ledger confirmation attempt {attempt} failed, retrying: {e}")
                    time.sleep(delay)
        finally:
            self._lock.release()

    def _confirm(self, handle_id: str) -> Confirmation:
        with self.db.get_session() as session:
            submission = (
                session.query(LedgerSubmission)
                .filter_by(handle=handle_id)
                .with_for_update()
                .one_or_none()
            )
            if submission is None:
                return Confirmation(
                    handle_id=handle_id,
                    status=ConfirmationStatus.REJECTED,
                    error_kind=RejectionKind.INVALID,
                    detail="unknown submission handle",
                )

            if submission.status != SubmissionStatus.PENDING:
                return self._to_confirmation(submission)

            now = self._clock()
            try:
                operations = [operation_from_dict(data) for data in submission.operations]
                staged, sequences, assigned_ids = apply_operations(
                    operations,
                    lambda collection, key: self._load(session, collection, key),
                    lambda collection: self._last_id(session, collection),
                    now,
                )
            except (KeyError, ValueError, TypeError) as e:
                self._mark_rejected(submission, RejectionKind.INVALID, f"malformed operation: {e}", now)
            except TransactionRejected as e:
                self._mark_rejected(submission, e.kind, e.detail, now)
            else:
                self._persist(session, staged, sequences, now)
                submission.status = SubmissionStatus.CONFIRMED
                submission.assigned_ids = assigned_ids
                submission.confirmed_at = now

            return self._to_confirmation(submission)

    def _mark_rejected(
        self,
        submission: LedgerSubmission,
        kind: RejectionKind,
        detail: str,
        now: datetime
    ) -> None:
        submission.status = SubmissionStatus.REJECTED
        submission.error_kind = kind.value
        submission.detail = detail
        submission.confirmed_at = now
        logger.info(f"Ledger rejected {submission.handle}: {kind.value} ({detail})")

    def _to_confirmation(self, submission: LedgerSubmission) -> Confirmation:
        return Confirmation(
            handle_id=submission.handle,
            status=_STATUS_MAP[submission.status],
            error_kind=RejectionKind(submission.error_kind) if submission.error_kind else None,
            detail=submission.detail or "",
            assigned_ids=list(submission.assigned_ids or []),
            confirmed_at=submission.confirmed_at,
        )

    def _load(self, session: Session, collection: str, key: str) -> Optional[Dict[str, Any]]:
        row = (
            session.query(LedgerRecord)
            .filter_by(collection=collection, key=key)
            .with_for_update()
            .one_or_none()
        )
        session.info.setdefault("records", {})[(collection, key)] = row
        if row is None:
            return None
        if not isinstance(row.payload, dict):
            raise TransactionRejected(
                RejectionKind.INVALID,
                f"{collection}/{key} holds an unreadable payload",
            )
        return row.payload

    def _last_id(self, session: Session, collection: str) -> int:
        sequence = (
            session.query(LedgerSequence)
            .filter_by(collection=collection)
            .with_for_update()
            .one_or_none()
        )
        session.info.setdefault("sequences", {})[collection] = sequence
        return sequence.last_id if sequence else 0

    def _persist(
        self,
        session: Session,
        staged: Dict[Tuple[str, str], Dict[str, Any]],
        sequences: Dict[str, int],
        now: datetime
    ) -> None:
        # Rows as read while applying; one that was missing is inserted, so a
        # concurrent insert of the same key fails on the unique constraint
        records = session.info.get("records", {})
        loaded_sequences = session.info.get("sequences", {})

        for (collection, key), payload in staged.items():
            row = records.get((collection, key))
            if row is None:
                session.add(LedgerRecord(
                    collection=collection,
                    key=key,
                    payload=payload,
                    created_at=now,
                    updated_at=now,
                ))
            else:
                # Assign a new object so the JSON column is flagged dirty
                row.payload = copy.deepcopy(payload)
                row.updated_at = now

        for collection, last_id in sequences.items():
            sequence = loaded_sequences.get(collection)
            if sequence is None:
                session.add(LedgerSequence(collection=collection, last_id=last_id))
            else:
                sequence.last_id = last_id

    # =========================================================================
    # Reads
    # =========================================================================

    def read_record(self, collection: str, key: Union[int, str]) -> Dict[str, Any]:
        try:
            with self.db.get_session() as session:
                row = (
                    session.query(LedgerRecord)
                    .filter_by(collection=collection, key=str(key))
                    .one_or_none()
                )
                payload = row.payload if row is not None else None
                found = row is not None
        except SQLAlchemyError as e:
            raise LedgerReadError(
                f"Failed to read {collection}/{key}",
                {"collection": collection, "key": str(key)},
            ) from e

        if not found:
            raise NotFoundError(
                f"{collection}/{key} not found",
                {"collection": collection, "key": str(key)},
            )
        if not isinstance(payload, dict):
            raise LedgerReadError(
                f"{collection}/{key} holds an unreadable payload",
                {"collection": collection, "key": str(key)},
            )
        return copy.deepcopy(payload)

    def count(self, collection: str) -> int:
        try:
            with self.db.get_session() as session:
                sequence = session.query(LedgerSequence).filter_by(collection=collection).one_or_none()
                return sequence.last_id if sequence else 0
        except SQLAlchemyError as e:
            raise LedgerReadError(f"Failed to count {collection}") from e

    def is_available(self) -> bool:
        return self.db.check_connection()

    def get_submission(self, handle_id: str) -> Optional[Dict[str, Any]]:
        """Get a submission's stored state, or None if unknown."""
        with self.db.get_session() as session:
            submission = session.query(LedgerSubmission).filter_by(handle=handle_id).one_or_none()
            return submission.to_dict() if submission else None
