"""
Verification state machine for FireChain
Legal incident status transitions and who may perform them
"""

import logging
from typing import Dict, FrozenSet, Iterable, Optional, Union

from src.core.constants import INCIDENTS_COLLECTION
from src.core.exceptions import (
    AlreadyClaimedError,
    IllegalTransitionError,
    NotFoundError,
    UnauthorizedError,
)
from src.core.validators import require_actor
from src.ledger.base import RejectionKind, Update, rejection_error
from src.registry.incident_registry import IncidentRegistry
from src.registry.models import Incident, IncidentStatus
from src.rewards.reward_ledger import RewardLedger

logger = logging.getLogger(__name__)


LEGAL_TRANSITIONS: Dict[IncidentStatus, FrozenSet[IncidentStatus]] = {
    IncidentStatus.REPORTED: frozenset({
        IncidentStatus.VERIFIED,
        IncidentStatus.RESOLVED,
        IncidentStatus.FALSE_REPORT,
    }),
    IncidentStatus.VERIFIED: frozenset({IncidentStatus.RESOLVED}),
    IncidentStatus.RESOLVED: frozenset(),
    IncidentStatus.FALSE_REPORT: frozenset(),
}

# Statuses that earn the reporter a reward
REWARDED_STATUSES: FrozenSet[IncidentStatus] = frozenset({
    IncidentStatus.VERIFIED,
    IncidentStatus.RESOLVED,
})


def allowed_transitions(status: IncidentStatus) -> FrozenSet[IncidentStatus]:
    """Statuses reachable from status in one step."""
    return LEGAL_TRANSITIONS[status]


def is_legal_transition(current: IncidentStatus, target: IncidentStatus) -> bool:
    return target in LEGAL_TRANSITIONS[current]


class VerificationStateMachine:
    """
    Moves incidents through Reported -> Verified/Resolved/FalseReport.

    The status write is a compare-and-set on the status the caller observed,
    so of two racing verifiers at most one wins; the loser re-reads and
    either finds its own target already applied or gets
    IllegalTransitionError.
    """

    def __init__(
        self,
        registry: IncidentRegistry,
        rewards: RewardLedger,
        reward_amount: int,
        authorized_verifiers: Optional[Iterable[str]] = None,
        confirmation_timeout: Optional[float] = None
    ):
        """
        Initialize state machine.

        Args:
            registry: Incident registry
            rewards: Reward ledger credited on successful verification
            reward_amount: Reward credited to the reporter
            authorized_verifiers: Allow-list of verifiers (empty allows anyone
                except the reporter)
            confirmation_timeout: Seconds to wait for ledger confirmation
        """
        self.registry = registry
        self.rewards = rewards
        self.reward_amount = reward_amount
        self.authorized_verifiers = frozenset(authorized_verifiers or ())
        self.confirmation_timeout = confirmation_timeout

    def verify(
        self,
        incident_id: int,
        target_status: Union[IncidentStatus, int, str],
        verifier: str
    ) -> Incident:
        """
        Transition an incident to target_status.

        Re-invoking with the status already applied is a no-op that returns
        the current state.

        Args:
            incident_id: Incident to transition
            target_status: Verified, Resolved or FalseReport
            verifier: Acting verifier identity

        Returns:
            The incident after the transition

        Raises:
            NotFoundError: Unknown incident
            UnauthorizedError: Verifier is the reporter or not allow-listed
            IllegalTransitionError: Transition not in the legal graph
            LedgerRejected: Ledger refused the update or the reward credit
            ConfirmationTimeoutError: Outcome unknown; re-query before retrying
        """
        verifier = require_actor("verifier", verifier)
        target = IncidentStatus.parse(target_status)
        incident = self.registry.get_incident(incident_id)

        if verifier == incident.reporter:
            raise UnauthorizedError(
                f"Reporter {verifier} cannot verify their own incident {incident.id}",
                {"incident_id": incident.id, "verifier": verifier},
            )
        if self.authorized_verifiers and verifier not in self.authorized_verifiers:
            raise UnauthorizedError(
                f"{verifier} is not an authorized verifier",
                {"verifier": verifier},
            )

        if incident.status == target and target != IncidentStatus.REPORTED:
            logger.info(f"Incident {incident.id} already {target.label}, nothing to do")
            self._settle_reward(incident)
            return self.registry.get_incident(incident.id)

        if not is_legal_transition(incident.status, target):
            raise IllegalTransitionError(
                f"Incident {incident.id} cannot move from {incident.status.label} to {target.label}",
                {"incident_id": incident.id, "from": incident.status.label, "to": target.label},
            )

        confirmation = self.registry.ledger.commit(
            [
                Update(
                    INCIDENTS_COLLECTION,
                    incident.id,
                    changes={"status": int(target), "verifier": verifier},
                    expect={"status": int(incident.status)},
                    stamp=("verifiedAt",),
                )
            ],
            self.confirmation_timeout,
        )

        if not confirmation.success:
            if confirmation.error_kind == RejectionKind.CONFLICT:
                return self._resolve_race(incident.id, target)
            if confirmation.error_kind == RejectionKind.NOT_FOUND:
                raise NotFoundError(f"Incident {incident.id} not found", {"incident_id": incident.id})
            raise rejection_error(confirmation, "status transition")

        logger.info(
            f"Incident {incident.id}: {incident.status.label} -> {target.label} by {verifier}"
        )

        updated = self.registry.get_incident(incident.id)
        if incident.status == IncidentStatus.REPORTED:
            self._settle_reward(updated)
            updated = self.registry.get_incident(incident.id)

        return updated

    def _resolve_race(self, incident_id: int, target: IncidentStatus) -> Incident:
        current = self.registry.get_incident(incident_id)
        if current.status == target:
            logger.info(f"Incident {incident_id} reached {target.label} through a concurrent verifier")
            return current
        raise IllegalTransitionError(
            f"Incident {incident_id} changed concurrently to {current.status.label}",
            {"incident_id": incident_id, "from": current.status.label, "to": target.label},
        )

    def _settle_reward(self, incident: Incident) -> None:
        """Credit the reporter once an incident sits in a rewarded status."""
        if incident.status not in REWARDED_STATUSES or incident.reward_claimed:
            return
        try:
            self.rewards.credit(incident.reporter, incident.id, self.reward_amount)
        except AlreadyClaimedError:
            logger.info(f"Reward for incident {incident.id} settled concurrently")
