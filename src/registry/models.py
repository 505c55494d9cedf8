"""
Incident record types for FireChain
Tagged, validated record shapes for incidents stored on the ledger
"""

from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from typing import Any, Dict, Optional, Union

from src.core.constants import INCIDENT_RECORD_FIELDS
from src.core.exceptions import ValidationError
from src.core.geo_codec import decode


class Severity(IntEnum):
    """Reported fire severity (ordinal values are stored on the ledger)."""
    LOW = 0
    MEDIUM = 1
    HIGH = 2
    CRITICAL = 3

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @classmethod
    def parse(cls, value: Union["Severity", int, str]) -> "Severity":
        """
        Parse a severity from its ordinal or name.

        Raises:
            ValidationError: If the value is not one of the four severities
        """
        return _parse_ordinal(cls, value, "severity")


class IncidentStatus(IntEnum):
    """Verification status (ordinal values are stored on the ledger)."""
    REPORTED = 0
    VERIFIED = 1
    RESOLVED = 2
    FALSE_REPORT = 3

    @property
    def label(self) -> str:
        return "".join(part.capitalize() for part in self.name.split("_"))

    @property
    def is_terminal(self) -> bool:
        return self in (IncidentStatus.RESOLVED, IncidentStatus.FALSE_REPORT)

    @classmethod
    def parse(cls, value: Union["IncidentStatus", int, str]) -> "IncidentStatus":
        """
        Parse a status from its ordinal or name.

        Accepts "FalseReport", "false_report" and "FALSE_REPORT".

        Raises:
            ValidationError: If the value is not one of the four statuses
        """
        return _parse_ordinal(cls, value, "status")


def _parse_ordinal(enum_cls, value, field_name: str):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field_name}: {value!r}", {field_name: value})
    if isinstance(value, int):
        try:
            return enum_cls(value)
        except ValueError:
            raise ValidationError(f"Invalid {field_name}: {value!r}", {field_name: value})
    if isinstance(value, str):
        normalized = value.strip().replace("-", "_").replace(" ", "_")
        if normalized.isdigit():
            return _parse_ordinal(enum_cls, int(normalized), field_name)
        for member in enum_cls:
            if normalized.upper() in (member.name, member.name.replace("_", "")):
                return member
    raise ValidationError(f"Invalid {field_name}: {value!r}", {field_name: value})


def _format_time(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class Incident:
    """
    Fire incident recorded on the ledger.

    Coordinates are kept as fixed-point integers; latitude/longitude are
    decoded on access.
    """
    id: int
    location: str
    description: str
    lat_int: int
    lng_int: int
    created_at: datetime
    reporter: str
    severity: Severity
    status: IncidentStatus = IncidentStatus.REPORTED
    verifier: Optional[str] = None
    verified_at: Optional[datetime] = None
    reward_claimed: bool = False

    @property
    def latitude(self) -> float:
        return decode(self.lat_int, self.lng_int)[0]

    @property
    def longitude(self) -> float:
        return decode(self.lat_int, self.lng_int)[1]

    def to_record(self) -> Dict[str, Any]:
        """Serialize to the persisted record shape (stable field order)."""
        values = (
            self.id,
            self.location,
            self.description,
            self.lat_int,
            self.lng_int,
            _format_time(self.created_at),
            self.reporter,
            int(self.severity),
            int(self.status),
            self.verifier,
            _format_time(self.verified_at),
            self.reward_claimed,
        )
        return dict(zip(INCIDENT_RECORD_FIELDS, values))

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Incident":
        """
        Build an incident from a persisted record.

        Raises:
            KeyError, ValueError, TypeError: If the record is malformed
        """
        incident_id = record["id"]
        lat_int = record["latInt"]
        lng_int = record["lngInt"]
        for name, value in (("id", incident_id), ("latInt", lat_int), ("lngInt", lng_int)):
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"{name} must be an integer, got {value!r}")

        return cls(
            id=incident_id,
            location=str(record["location"]),
            description=str(record["description"]),
            lat_int=lat_int,
            lng_int=lng_int,
            created_at=_parse_time(record["createdAt"]),
            reporter=str(record["reporter"]),
            severity=Severity(record["severity"]),
            status=IncidentStatus(record["status"]),
            verifier=record.get("verifier"),
            verified_at=_parse_time(record.get("verifiedAt")),
            reward_claimed=bool(record.get("rewardClaimed", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for presentation layers."""
        return {
            "id": self.id,
            "location": self.location,
            "description": self.description,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "lat_int": self.lat_int,
            "lng_int": self.lng_int,
            "created_at": _format_time(self.created_at),
            "reporter": self.reporter,
            "severity": self.severity.label,
            "status": self.status.label,
            "verifier": self.verifier,
            "verified_at": _format_time(self.verified_at),
            "reward_claimed": self.reward_claimed,
        }
