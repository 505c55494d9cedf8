"""
Ledger collaborator interface for FireChain
Abstract append-only log with asynchronous confirmation
"""

import copy
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from src.core.exceptions import ConfirmationTimeoutError, LedgerRejected

logger = logging.getLogger(__name__)


class ConfirmationStatus(str, Enum):
    """Outcome of awaiting a submitted transaction."""
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    TIMEOUT = "timeout"


class RejectionKind(str, Enum):
    """Why the ledger refused a transaction."""
    CONFLICT = "conflict"                          # expected field values did not match
    NOT_FOUND = "not_found"                        # update/read of a missing record
    INSUFFICIENT_BALANCE = "insufficient_balance"  # adjust would go below minimum
    INVALID = "invalid"                            # malformed transaction or unknown handle
    UNAVAILABLE = "unavailable"                    # backend failed after retries


# =============================================================================
# OPERATIONS
# =============================================================================

@dataclass(frozen=True)
class Append:
    """Append a record; the next sequential id is assigned on confirmation."""
    collection: str
    payload: Dict[str, Any]
    id_field: str = "id"
    stamp: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Update:
    """Compare-and-set update of an existing record."""
    collection: str
    key: Union[int, str]
    changes: Dict[str, Any]
    expect: Dict[str, Any] = field(default_factory=dict)
    stamp: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Adjust:
    """Atomic counter change; the record is created at zero if missing."""
    collection: str
    key: Union[int, str]
    field_name: str
    delta: int
    minimum: Optional[int] = None


Operation = Union[Append, Update, Adjust]


def operation_to_dict(operation: Operation) -> Dict[str, Any]:
    """Serialize an operation for persistence."""
    if isinstance(operation, Append):
        return {
            "op": "append",
            "collection": operation.collection,
            "payload": operation.payload,
            "id_field": operation.id_field,
            "stamp": list(operation.stamp),
        }
    if isinstance(operation, Update):
        return {
            "op": "update",
            "collection": operation.collection,
            "key": str(operation.key),
            "changes": operation.changes,
            "expect": operation.expect,
            "stamp": list(operation.stamp),
        }
    if isinstance(operation, Adjust):
        return {
            "op": "adjust",
            "collection": operation.collection,
            "key": str(operation.key),
            "field_name": operation.field_name,
            "delta": operation.delta,
            "minimum": operation.minimum,
        }
    raise TypeError(f"Unknown ledger operation: {operation!r}")


def operation_from_dict(data: Dict[str, Any]) -> Operation:
    """Rebuild an operation from its serialized form."""
    kind = data.get("op")
    if kind == "append":
        return Append(
            collection=data["collection"],
            payload=data["payload"],
            id_field=data.get("id_field", "id"),
            stamp=tuple(data.get("stamp", ())),
        )
    if kind == "update":
        return Update(
            collection=data["collection"],
            key=data["key"],
            changes=data["changes"],
            expect=data.get("expect", {}),
            stamp=tuple(data.get("stamp", ())),
        )
    if kind == "adjust":
        return Adjust(
            collection=data["collection"],
            key=data["key"],
            field_name=data["field_name"],
            delta=data["delta"],
            minimum=data.get("minimum"),
        )
    raise ValueError(f"Unknown ledger operation kind: {kind!r}")


# =============================================================================
# SUBMISSION HANDLES AND CONFIRMATIONS
# =============================================================================

@dataclass(frozen=True)
class PendingHandle:
    """Handle for a submitted, not yet confirmed transaction."""
    handle_id: str
    submitted_at: datetime


@dataclass
class Confirmation:
    """Result of awaiting a submitted transaction."""
    handle_id: str
    status: ConfirmationStatus
    error_kind: Optional[RejectionKind] = None
    detail: str = ""
    assigned_ids: List[int] = field(default_factory=list)
    confirmed_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        return self.status == ConfirmationStatus.CONFIRMED


class TransactionRejected(Exception):
    """Raised while applying operations; the whole transaction is discarded."""

    def __init__(self, kind: RejectionKind, detail: str):
        super().__init__(detail)
        self.kind = kind
        self.detail = detail


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


RecordLoader = Callable[[str, str], Optional[Dict[str, Any]]]
SequenceLoader = Callable[[str], int]


def apply_operations(
    operations: Sequence[Operation],
    load: RecordLoader,
    last_id: SequenceLoader,
    now: datetime
) -> Tuple[Dict[Tuple[str, str], Dict[str, Any]], Dict[str, int], List[int]]:
    """
    Apply operations against a staging view, all-or-nothing.

    Nothing is written here: the caller persists the returned records and
    sequences only if no TransactionRejected is raised.

    Args:
        operations: Operations in submission order
        load: Returns a copy of the stored payload, or None if missing
        last_id: Returns the highest assigned id for a collection
        now: Confirmation timestamp used for stamped fields

    Returns:
        (staged records keyed by (collection, key), sequences, assigned ids)
    """
    if not operations:
        raise TransactionRejected(RejectionKind.INVALID, "empty transaction")

    staged: Dict[Tuple[str, str], Dict[str, Any]] = {}
    sequences: Dict[str, int] = {}
    assigned_ids: List[int] = []
    timestamp = now.isoformat()

    def current(collection: str, key: str) -> Optional[Dict[str, Any]]:
        if (collection, key) in staged:
            return staged[(collection, key)]
        record = load(collection, key)
        return copy.deepcopy(record) if record is not None else None

    for operation in operations:
        if isinstance(operation, Append):
            next_id = sequences.get(operation.collection, last_id(operation.collection)) + 1
            key = str(next_id)
            if current(operation.collection, key) is not None:
                raise TransactionRejected(
                    RejectionKind.CONFLICT,
                    f"{operation.collection}/{key} already exists",
                )
            record = copy.deepcopy(operation.payload)
            record[operation.id_field] = next_id
            for name in operation.stamp:
                record[name] = timestamp
            staged[(operation.collection, key)] = record
            sequences[operation.collection] = next_id
            assigned_ids.append(next_id)

        elif isinstance(operation, Update):
            key = str(operation.key)
            record = current(operation.collection, key)
            if record is None:
                raise TransactionRejected(
                    RejectionKind.NOT_FOUND,
                    f"{operation.collection}/{key} does not exist",
                )
            for name, expected in operation.expect.items():
                if record.get(name) != expected:
                    raise TransactionRejected(
                        RejectionKind.CONFLICT,
                        f"{operation.collection}/{key}.{name} is {record.get(name)!r}, "
                        f"expected {expected!r}",
                    )
            record.update(copy.deepcopy(operation.changes))
            for name in operation.stamp:
                record[name] = timestamp
            staged[(operation.collection, key)] = record

        elif isinstance(operation, Adjust):
            key = str(operation.key)
            record = current(operation.collection, key) or {operation.field_name: 0}
            value = record.get(operation.field_name, 0) + operation.delta
            if operation.minimum is not None and value < operation.minimum:
                raise TransactionRejected(
                    RejectionKind.INSUFFICIENT_BALANCE,
                    f"{operation.collection}/{key}.{operation.field_name} would become "
                    f"{value}, minimum is {operation.minimum}",
                )
            record[operation.field_name] = value
            staged[(operation.collection, key)] = record

        else:
            raise TransactionRejected(RejectionKind.INVALID, f"unknown operation {operation!r}")

    return staged, sequences, assigned_ids


# =============================================================================
# CLIENT INTERFACE
# =============================================================================

class LedgerClient(ABC):
    """
    Narrow ledger interface the core is written against.

    Every mutation is two-phase: submit() returns a PendingHandle, then
    await_confirmation() reports success, rejection or timeout. Nothing
    is visible to reads until confirmed.
    """

    default_timeout: Optional[float] = None

    @abstractmethod
    def submit(self, operations: Sequence[Operation]) -> PendingHandle:
        """Submit a transaction for asynchronous application."""

    @abstractmethod
    def await_confirmation(
        self,
        handle: PendingHandle,
        timeout: Optional[float] = None
    ) -> Confirmation:
        """Wait for a submitted transaction to be confirmed or rejected."""

    @abstractmethod
    def read_record(self, collection: str, key: Union[int, str]) -> Dict[str, Any]:
        """
        Read a confirmed record.

        Raises:
            NotFoundError: If the record was never confirmed
            LedgerReadError: If the backend cannot return the record
        """

    @abstractmethod
    def count(self, collection: str) -> int:
        """Highest id assigned by a confirmed append (0 if none)."""

    def is_available(self) -> bool:
        """Whether the backend can currently be reached."""
        return True

    def submit_append(
        self,
        collection: str,
        payload: Dict[str, Any],
        stamp: Sequence[str] = ()
    ) -> PendingHandle:
        """Submit a single append."""
        return self.submit([Append(collection, payload, stamp=tuple(stamp))])

    def commit(
        self,
        operations: Sequence[Operation],
        timeout: Optional[float] = None
    ) -> Confirmation:
        """
        Submit and await a transaction.

        Returns the confirmation for both success and rejection so callers
        can interpret rejection kinds.

        Raises:
            ConfirmationTimeoutError: If not confirmed within timeout
        """
        handle = self.submit(operations)
        confirmation = self.await_confirmation(
            handle,
            timeout if timeout is not None else self.default_timeout,
        )
        if confirmation.status == ConfirmationStatus.TIMEOUT:
            logger.warning(f"Ledger submission {handle.handle_id} not confirmed in time")
            raise ConfirmationTimeoutError(
                "Ledger did not confirm the submission in time; re-query state before retrying",
                {"handle_id": handle.handle_id},
            )
        return confirmation


def rejection_error(confirmation: Confirmation, action: str) -> LedgerRejected:
    """Build the LedgerRejected error for a rejected confirmation."""
    kind = confirmation.error_kind.value if confirmation.error_kind else None
    return LedgerRejected(
        f"Ledger rejected {action}: {confirmation.detail or kind}",
        error_kind=kind,
        details={"handle_id": confirmation.handle_id},
    )
