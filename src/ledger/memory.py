"""
In-memory ledger backend
Thread-safe transactional store used for tests, demos and local runs
"""

import copy
import logging
import threading
import uuid
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from src.core.exceptions import NotFoundError
from src.ledger.base import (
    Confirmation,
    ConfirmationStatus,
    LedgerClient,
    Operation,
    PendingHandle,
    RejectionKind,
    TransactionRejected,
    apply_operations,
    utc_now,
)

logger = logging.getLogger(__name__)


class InMemoryLedger(LedgerClient):
    """
    Ledger kept in process memory.

    Submissions are queued and applied when awaited. Records are replaced,
    never mutated in place, so lock-free reads always see a whole record.
    """

    def __init__(
        self,
        clock: Optional[Callable] = None,
        default_timeout: Optional[float] = None,
        max_retained: int = 1024
    ):
        """
        Initialize in-memory ledger.

        Args:
            clock: Callable returning the confirmation timestamp
            default_timeout: Timeout used by commit() when none is given
            max_retained: Outcomes kept for repeated awaits, and unawaited
                submissions kept before the oldest are dropped
        """
        self._clock = clock or utc_now
        self.default_timeout = default_timeout

        self._records: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._sequences: Dict[str, int] = {}
        self.max_retained = max_retained
        self._pending: "OrderedDict[str, List[Operation]]" = OrderedDict()
        self._outcomes: "OrderedDict[str, Confirmation]" = OrderedDict()
        self._lock = threading.Lock()
        # Guards _pending only; submit never waits on an apply in progress
        self._pending_lock = threading.Lock()

        logger.info("InMemoryLedger initialized")

    def submit(self, operations: Sequence[Operation]) -> PendingHandle:
        handle = PendingHandle(handle_id=uuid.uuid4().hex, submitted_at=self._clock())
        with self._pending_lock:
            self._pending[handle.handle_id] = list(operations)
            while len(self._pending) > self.max_retained:
                dropped, _ = self._pending.popitem(last=False)
                logger.warning(f"Dropped unawaited submission {dropped}")
        logger.debug(f"Submitted {len(operations)} operation(s) as {handle.handle_id}")
        return handle

    def await_confirmation(
        self,
        handle: PendingHandle,
        timeout: Optional[float] = None
    ) -> Confirmation:
        acquired = self._lock.acquire(timeout=timeout if timeout is not None else -1)
        if not acquired:
            return Confirmation(handle_id=handle.handle_id, status=ConfirmationStatus.TIMEOUT)

        try:
            outcome = self._outcomes.get(handle.handle_id)
            if outcome is not None:
                return outcome

            with self._pending_lock:
                operations = self._pending.pop(handle.handle_id, None)
            if operations is None:
                return Confirmation(
                    handle_id=handle.handle_id,
                    status=ConfirmationStatus.REJECTED,
                    error_kind=RejectionKind.INVALID,
                    detail="unknown submission handle",
                )

            now = self._clock()
            try:
                staged, sequences, assigned_ids = apply_operations(
                    operations, self._load, self._last_id, now
                )
            except TransactionRejected as e:
                outcome = Confirmation(
                    handle_id=handle.handle_id,
                    status=ConfirmationStatus.REJECTED,
                    error_kind=e.kind,
                    detail=e.detail,
                )
                logger.info(f"Ledger rejected {handle.handle_id}: {e.kind.value} ({e.detail})")
            else:
                for (collection, key), record in staged.items():
                    self._records.setdefault(collection, {})[key] = record
                self._sequences.update(sequences)
                outcome = Confirmation(
                    handle_id=handle.handle_id,
                    status=ConfirmationStatus.CONFIRMED,
                    assigned_ids=assigned_ids,
                    confirmed_at=now,
                )

            self._outcomes[handle.handle_id] = outcome
            while len(self._outcomes) > self.max_retained:
                self._outcomes.popitem(last=False)
            return outcome
        finally:
            self._lock.release()

    def read_record(self, collection: str, key: Union[int, str]) -> Dict[str, Any]:
        record = self._records.get(collection, {}).get(str(key))
        if record is None:
            raise NotFoundError(
                f"{collection}/{key} not found",
                {"collection": collection, "key": str(key)},
            )
        return copy.deepcopy(record)

    def count(self, collection: str) -> int:
        return self._sequences.get(collection, 0)

    @property
    def pending_count(self) -> int:
        """Number of submissions not yet awaited."""
        return len(self._pending)

    def _load(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        return self._records.get(collection, {}).get(key)

    def _last_id(self, collection: str) -> int:
        return self._sequences.get(collection, 0)
