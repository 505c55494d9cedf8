"""
Projection and query service for FireChain
Read-only listings and summaries built from the incident registry
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from src.core.exceptions import LedgerError, NotFoundError, ValidationError
from src.core.geo_codec import BoundingBox
from src.registry.incident_registry import IncidentRegistry
from src.registry.models import Incident, IncidentStatus, Severity

logger = logging.getLogger(__name__)


@dataclass
class IncidentListing:
    """
    Result of a tolerant range read.

    Ids that could not be read are reported in failed_ids instead of
    failing the whole listing.
    """
    incidents: List[Incident] = field(default_factory=list)
    failed_ids: List[int] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.incidents)

    @property
    def partial(self) -> bool:
        return bool(self.failed_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "incidents": [incident.to_dict() for incident in self.incidents],
            "failed_ids": list(self.failed_ids),
        }


class ProjectionService:
    """Builds client-facing views over confirmed incidents."""

    def __init__(self, registry: IncidentRegistry):
        self.registry = registry

    def list_incidents(self, from_id: int, to_id: int) -> IncidentListing:
        """
        List incidents with ids in [from_id, to_id], ascending.

        A missing or unreadable id is logged and skipped.

        Args:
            from_id: First id (inclusive)
            to_id: Last id (inclusive)

        Returns:
            IncidentListing with the readable incidents and the skipped ids
        """
        for name, value in (("from_id", from_id), ("to_id", to_id)):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(f"{name} must be an integer", {name: value})

        upper = min(to_id, self.registry.count_incidents())
        listing = IncidentListing()

        for incident_id in range(max(from_id, 1), upper + 1):
            try:
                listing.incidents.append(self.registry.get_incident(incident_id))
            except NotFoundError:
                logger.warning(f"Incident {incident_id} not found, skipping")
                listing.failed_ids.append(incident_id)
            except LedgerError as e:
                logger.warning(f"Incident {incident_id} unreadable, skipping: {e}")
                listing.failed_ids.append(incident_id)

        return listing

    def list_all(self) -> IncidentListing:
        """List every confirmed incident."""
        return self.list_incidents(1, self.registry.count_incidents())

    def incidents_by_reporter(self, reporter: str) -> IncidentListing:
        listing = self.list_all()
        listing.incidents = [i for i in listing.incidents if i.reporter == reporter]
        return listing

    def incidents_in_area(
        self,
        west: float,
        south: float,
        east: float,
        north: float
    ) -> IncidentListing:
        """
        Get incidents within a geographic area.

        Args:
            west, south, east, north: Bounding box

        Returns:
            IncidentListing of incidents inside the box
        """
        if west > east or south > north:
            raise ValidationError(
                "Bounding box must satisfy west <= east and south <= north",
                {"bbox": [west, south, east, north]},
            )
        bbox = BoundingBox(west=west, south=south, east=east, north=north)

        listing = self.list_all()
        listing.incidents = [
            i for i in listing.incidents
            if bbox.contains(i.latitude, i.longitude)
        ]
        return listing

    def statistics(self, pool_balance: Optional[int] = None) -> Dict[str, Any]:
        """Get incident statistics."""
        listing = self.list_all()

        by_status = {status.label: 0 for status in IncidentStatus}
        by_severity = {severity.label: 0 for severity in Severity}
        rewards_claimed = 0

        for incident in listing.incidents:
            by_status[incident.status.label] += 1
            by_severity[incident.severity.label] += 1
            if incident.reward_claimed:
                rewards_claimed += 1

        decided = (
            by_status[IncidentStatus.VERIFIED.label] +
            by_status[IncidentStatus.RESOLVED.label] +
            by_status[IncidentStatus.FALSE_REPORT.label]
        )
        confirmed = decided - by_status[IncidentStatus.FALSE_REPORT.label]

        stats = {
            "total_incidents": self.registry.count_incidents(),
            "readable_incidents": listing.count,
            "unreadable_ids": listing.failed_ids,
            "by_status": by_status,
            "by_severity": by_severity,
            "rewards_claimed": rewards_claimed,
            "verification_rate": round(confirmed / decided * 100, 1) if decided > 0 else 0,
        }
        if pool_balance is not None:
            stats["fund_pool_balance"] = pool_balance
        return stats
