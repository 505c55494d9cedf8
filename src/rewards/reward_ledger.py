"""
Reward ledger for FireChain
Per-actor reward balances, the once-per-incident claim gate and transfers
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from src.core.constants import BALANCES_COLLECTION, INCIDENTS_COLLECTION
from src.core.exceptions import AlreadyClaimedError, InsufficientFundsError, NotFoundError, ValidationError
from src.core.validators import require_actor, require_amount, require_record_id
from src.ledger.base import Adjust, LedgerClient, RejectionKind, Update, rejection_error

logger = logging.getLogger(__name__)


@dataclass
class RewardCredit:
    """A confirmed reward credit."""
    actor: str
    incident_id: int
    amount: int
    credited_at: Optional[datetime]


@dataclass
class RewardTransfer:
    """A confirmed move of balance between two actors."""
    sender: str
    recipient: str
    amount: int
    transferred_at: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sender": self.sender,
            "recipient": self.recipient,
            "amount": self.amount,
            "transferred_at": self.transferred_at.isoformat() if self.transferred_at else None,
        }


class RewardLedger:
    """
    Credits rewards to reporters.

    The claim flag on the incident and the balance increment are written in
    one ledger transaction, guarded by a compare-and-set on rewardClaimed,
    so concurrent credits for the same incident can never both apply.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        confirmation_timeout: Optional[float] = None
    ):
        self.ledger = ledger
        self.confirmation_timeout = confirmation_timeout

    def credit(self, actor: str, incident_id: int, amount: int) -> RewardCredit:
        """
        Credit a reward for an incident, at most once.

        Args:
            actor: Actor whose balance is credited
            incident_id: Incident the reward is for
            amount: Reward amount (positive integer)

        Returns:
            RewardCredit for the confirmed credit

        Raises:
            AlreadyClaimedError: If the incident's reward was already claimed
            NotFoundError: If the incident does not exist
            ValidationError: If actor or amount are invalid
            LedgerRejected: If the ledger refused the transaction
        """
        actor = require_actor("actor", actor)
        amount = require_amount("amount", amount)
        incident_id = require_record_id("Incident", incident_id)

        try:
            record = self.ledger.read_record(INCIDENTS_COLLECTION, incident_id)
        except NotFoundError:
            raise NotFoundError(f"Incident {incident_id} not found", {"incident_id": incident_id})

        if record.get("rewardClaimed"):
            raise AlreadyClaimedError(
                f"Reward for incident {incident_id} already claimed",
                {"incident_id": incident_id},
            )

        confirmation = self.ledger.commit(
            [
                Update(
                    INCIDENTS_COLLECTION,
                    incident_id,
                    changes={"rewardClaimed": True},
                    expect={"rewardClaimed": False},
                ),
                Adjust(BALANCES_COLLECTION, actor, "balance", amount),
            ],
            self.confirmation_timeout,
        )

        if not confirmation.success:
            if confirmation.error_kind == RejectionKind.CONFLICT:
                raise AlreadyClaimedError(
                    f"Reward for incident {incident_id} was claimed concurrently",
                    {"incident_id": incident_id},
                )
            if confirmation.error_kind == RejectionKind.NOT_FOUND:
                raise NotFoundError(f"Incident {incident_id} not found", {"incident_id": incident_id})
            raise rejection_error(confirmation, "reward credit")

        logger.info(f"Credited {amount} to {actor} for incident {incident_id}")

        return RewardCredit(
            actor=actor,
            incident_id=incident_id,
            amount=amount,
            credited_at=confirmation.confirmed_at,
        )

    def transfer(self, sender: str, recipient: str, amount: int) -> RewardTransfer:
        """
        Move balance from one actor to another.

        The debit and credit are one ledger transaction; the debit carries a
        minimum of zero, so a sender can never go negative even when racing
        another transfer.

        Raises:
            ValidationError: Invalid actors or amount, or sender == recipient
            InsufficientFundsError: Sender balance below amount
            LedgerRejected: If the ledger refused the transaction
        """
        sender = require_actor("sender", sender)
        recipient = require_actor("recipient", recipient)
        amount = require_amount("amount", amount)
        if sender == recipient:
            raise ValidationError("Cannot transfer to the same actor", {"actor": sender})

        confirmation = self.ledger.commit(
            [
                Adjust(BALANCES_COLLECTION, sender, "balance", -amount, minimum=0),
                Adjust(BALANCES_COLLECTION, recipient, "balance", amount),
            ],
            self.confirmation_timeout,
        )

        if not confirmation.success:
            if confirmation.error_kind == RejectionKind.INSUFFICIENT_BALANCE:
                raise InsufficientFundsError(
                    f"{sender} holds {self.balance_of(sender)}, transfer needs {amount}",
                    {"sender": sender, "amount": amount},
                )
            raise rejection_error(confirmation, "balance transfer")

        logger.info(f"Transferred {amount} from {sender} to {recipient}")

        return RewardTransfer(
            sender=sender,
            recipient=recipient,
            amount=amount,
            transferred_at=confirmation.confirmed_at,
        )

    def balance_of(self, actor: str) -> int:
        """Current balance of an actor (0 if never credited)."""
        try:
            record = self.ledger.read_record(BALANCES_COLLECTION, actor)
        except NotFoundError:
            return 0
        return int(record.get("balance", 0))

    def is_claimed(self, incident_id: int) -> bool:
        """Whether the incident's reward has been claimed."""
        incident_id = require_record_id("Incident", incident_id)
        try:
            record = self.ledger.read_record(INCIDENTS_COLLECTION, incident_id)
        except NotFoundError:
            raise NotFoundError(f"Incident {incident_id} not found", {"incident_id": incident_id})
        return bool(record.get("rewardClaimed", False))
