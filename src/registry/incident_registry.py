"""
Incident registry for FireChain
Authoritative, append-only store of fire-incident reports
"""

import logging
from typing import Iterator, Optional, Union

from src.alerts.dispatcher import IncidentEvent
from src.core.constants import INCIDENTS_COLLECTION, INCIDENT_RECORD_FIELDS
from src.core.exceptions import LedgerError, LedgerReadError, NotFoundError
from src.core.geo_codec import encode
from src.core.validators import require_actor, require_record_id, require_text
from src.ledger.base import Append, LedgerClient, rejection_error
from src.registry.models import Incident, IncidentStatus, Severity

logger = logging.getLogger(__name__)


class ReporterIncidentIds:
    """
    Ids of one reporter's incidents, ascending.

    Lazy and restartable: every iteration rescans the registry up to the
    count observed when that iteration starts.
    """

    def __init__(self, registry: "IncidentRegistry", reporter: str):
        self._registry = registry
        self.reporter = reporter

    def __iter__(self) -> Iterator[int]:
        upper = self._registry.count_incidents()
        for incident_id in range(1, upper + 1):
            try:
                incident = self._registry.get_incident(incident_id)
            except NotFoundError:
                continue
            except LedgerError as e:
                logger.warning(f"Incident {incident_id} unreadable, skipping: {e}")
                continue
            if incident.reporter == self.reporter:
                yield incident_id

    def __repr__(self):
        return f"<ReporterIncidentIds({self.reporter})>"


class IncidentRegistry:
    """
    Records incidents on the ledger.

    Ids are issued by the ledger on confirmed append, so a rejected or
    timed-out submission never consumes an id.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        notifier=None,
        confirmation_timeout: Optional[float] = None
    ):
        """
        Initialize incident registry.

        Args:
            ledger: Ledger collaborator
            notifier: Optional NotificationDispatcher for new-incident events
            confirmation_timeout: Seconds to wait for ledger confirmation
        """
        self.ledger = ledger
        self.notifier = notifier
        self.confirmation_timeout = confirmation_timeout

        logger.info("IncidentRegistry initialized")

    def create_incident(
        self,
        location: str,
        description: str,
        latitude: float,
        longitude: float,
        severity: Union[Severity, int, str],
        reporter: str
    ) -> Incident:
        """
        Record a new incident.

        Args:
            location: Free-form location label
            description: What was observed
            latitude: Latitude in decimal degrees
            longitude: Longitude in decimal degrees
            severity: Low, Medium, High or Critical (name or ordinal)
            reporter: Identity of the submitting actor

        Returns:
            The confirmed Incident

        Raises:
            ValidationError: Bad input (OutOfRangeError for coordinates)
            LedgerRejected: Ledger refused the append
            ConfirmationTimeoutError: Outcome unknown; re-query before retrying
        """
        location = require_text("location", location)
        description = require_text("description", description)
        reporter = require_actor("reporter", reporter)
        severity = Severity.parse(severity)
        lat_int, lng_int = encode(latitude, longitude)

        values = {
            "id": None,
            "location": location,
            "description": description,
            "latInt": lat_int,
            "lngInt": lng_int,
            "createdAt": None,
            "reporter": reporter,
            "severity": int(severity),
            "status": int(IncidentStatus.REPORTED),
            "verifier": None,
            "verifiedAt": None,
            "rewardClaimed": False,
        }
        payload = {name: values[name] for name in INCIDENT_RECORD_FIELDS}

        confirmation = self.ledger.commit(
            [Append(INCIDENTS_COLLECTION, payload, stamp=("createdAt",))],
            self.confirmation_timeout,
        )
        if not confirmation.success:
            raise rejection_error(confirmation, "incident creation")

        incident = Incident(
            id=confirmation.assigned_ids[0],
            location=location,
            description=description,
            lat_int=lat_int,
            lng_int=lng_int,
            created_at=confirmation.confirmed_at,
            reporter=reporter,
            severity=severity,
        )

        logger.info(
            f"Incident {incident.id} recorded at {location} "
            f"({incident.latitude}, {incident.longitude}) severity={severity.label}"
        )

        self._emit(incident)
        return incident

    def get_incident(self, incident_id: int) -> Incident:
        """
        Get a confirmed incident.

        Raises:
            NotFoundError: If the id was never confirmed
            LedgerReadError: If the stored record cannot be decoded
        """
        incident_id = require_record_id("Incident", incident_id)
        try:
            record = self.ledger.read_record(INCIDENTS_COLLECTION, incident_id)
        except NotFoundError:
            raise NotFoundError(f"Incident {incident_id} not found", {"incident_id": incident_id})

        try:
            return Incident.from_record(record)
        except (KeyError, ValueError, TypeError) as e:
            raise LedgerReadError(
                f"Incident {incident_id} record is corrupted: {e}",
                {"incident_id": incident_id},
            ) from e

    def count_incidents(self) -> int:
        """Highest confirmed incident id (0 if none)."""
        return self.ledger.count(INCIDENTS_COLLECTION)

    def list_incidents_by_reporter(self, reporter: str) -> ReporterIncidentIds:
        """Lazy, restartable ids of the reporter's incidents, ascending."""
        return ReporterIncidentIds(self, reporter)

    def _emit(self, incident: Incident) -> None:
        if self.notifier is None:
            return
        event = IncidentEvent(
            incident_id=incident.id,
            reporter=incident.reporter,
            location=incident.location,
            severity=incident.severity.label,
        )
        try:
            self.notifier.publish(event)
        except Exception as e:
            logger.error(f"Failed to publish notification for incident {incident.id}: {e}")
