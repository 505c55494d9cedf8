"""
Emergency fund request types for FireChain
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from src.core.constants import FUND_REQUEST_RECORD_FIELDS


class FundRequestState(str, Enum):
    """Lifecycle of a fund request."""
    REQUESTED = "Requested"
    APPROVED = "Approved"
    DISBURSED = "Disbursed"


def _format_time(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class FundRequest:
    """Request for emergency funds tied to an incident."""
    id: int
    incident_id: int
    requested_amount: int
    requester: str
    justification: str
    created_at: datetime
    approved: bool = False
    approver: Optional[str] = None
    approved_at: Optional[datetime] = None
    disbursed: bool = False
    disbursed_at: Optional[datetime] = None

    @property
    def state(self) -> FundRequestState:
        if self.disbursed:
            return FundRequestState.DISBURSED
        if self.approved:
            return FundRequestState.APPROVED
        return FundRequestState.REQUESTED

    def to_record(self) -> Dict[str, Any]:
        """Serialize to the persisted record shape."""
        values = (
            self.id,
            self.incident_id,
            self.requested_amount,
            self.requester,
            self.justification,
            _format_time(self.created_at),
            self.approved,
            self.approver,
            _format_time(self.approved_at),
            self.disbursed,
            _format_time(self.disbursed_at),
        )
        return dict(zip(FUND_REQUEST_RECORD_FIELDS, values))

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "FundRequest":
        """
        Build a fund request from a persisted record.

        Raises:
            KeyError, ValueError, TypeError: If the record is malformed
        """
        for name in ("id", "incidentId", "requestedAmount"):
            value = record[name]
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"{name} must be an integer, got {value!r}")

        return cls(
            id=record["id"],
            incident_id=record["incidentId"],
            requested_amount=record["requestedAmount"],
            requester=str(record["requester"]),
            justification=str(record["justification"]),
            created_at=_parse_time(record["createdAt"]),
            approved=bool(record.get("approved", False)),
            approver=record.get("approver"),
            approved_at=_parse_time(record.get("approvedAt")),
            disbursed=bool(record.get("disbursed", False)),
            disbursed_at=_parse_time(record.get("disbursedAt")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "incident_id": self.incident_id,
            "requested_amount": self.requested_amount,
            "requester": self.requester,
            "justification": self.justification,
            "created_at": _format_time(self.created_at),
            "state": self.state.value,
            "approved": self.approved,
            "approver": self.approver,
            "approved_at": _format_time(self.approved_at),
            "disbursed": self.disbursed,
            "disbursed_at": _format_time(self.disbursed_at),
        }
