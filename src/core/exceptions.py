"""
FireChain - Error Taxonomy
Exceptions raised by the registry, workflow and ledger layers.
"""

from typing import Any, Dict, Optional


class FireChainError(Exception):
    """Base class for all FireChain errors."""

    code: str = "firechain_error"
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(FireChainError):
    """Bad input shape or range. Never retried automatically."""
    code = "validation_error"
    status_code = 422


class OutOfRangeError(ValidationError):
    """Coordinate outside the valid latitude/longitude range."""
    code = "out_of_range"


class NotFoundError(FireChainError):
    """Unknown incident, fund request or ledger record."""
    code = "not_found"
    status_code = 404


class UnauthorizedError(FireChainError):
    """Actor is not permitted to perform the operation."""
    code = "unauthorized"
    status_code = 403


class IllegalTransitionError(FireChainError):
    """State machine rule violated."""
    code = "illegal_transition"
    status_code = 409


class AlreadyClaimedError(FireChainError):
    """Reward for the incident has already been credited."""
    code = "already_claimed"
    status_code = 409


class InsufficientFundsError(FireChainError):
    """Fund pool balance is lower than the requested disbursement."""
    code = "insufficient_funds"
    status_code = 409


class LedgerError(FireChainError):
    """Base class for ledger collaborator failures."""
    code = "ledger_error"
    status_code = 503


class LedgerRejected(LedgerError):
    """Submission refused or failed after the ledger's retry policy."""
    code = "ledger_rejected"

    def __init__(
        self,
        message: str,
        error_kind: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, details)
        self.error_kind = error_kind
        self.details.setdefault("error_kind", error_kind)


class ConfirmationTimeoutError(LedgerError):
    """
    Submission was not confirmed within the timeout.

    The outcome is unknown: callers must re-query state before retrying.
    """
    code = "confirmation_timeout"
    status_code = 504


class LedgerReadError(LedgerError):
    """A stored record could not be read or decoded."""
    code = "ledger_read_error"


class NotificationError(FireChainError):
    """An on-demand SMS alert was not accepted by the gateway."""
    code = "notification_failed"
    status_code = 502
