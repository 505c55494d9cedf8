"""
Emergency fund workflow for FireChain
Requested -> Approved -> Disbursed, paid out of a shared fund pool
"""

import logging
from typing import Iterable, Optional

from src.core.constants import (
    FUND_POOL_COLLECTION,
    FUND_POOL_KEY,
    FUND_REQUEST_RECORD_FIELDS,
    FUND_REQUESTS_COLLECTION,
)
from src.core.exceptions import (
    IllegalTransitionError,
    InsufficientFundsError,
    LedgerReadError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from src.core.validators import require_actor, require_amount, require_record_id, require_text
from src.funds.models import FundRequest
from src.ledger.base import Adjust, Append, LedgerClient, RejectionKind, Update, rejection_error
from src.registry.incident_registry import IncidentRegistry
from src.registry.models import IncidentStatus

logger = logging.getLogger(__name__)


class EmergencyFundWorkflow:
    """
    Manages emergency fund requests.

    Approval and disbursement are compare-and-set updates on the request
    record. Disbursement debits the pool in the same transaction and the
    ledger refuses it if the pool would go negative.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        registry: IncidentRegistry,
        approvers: Optional[Iterable[str]] = None,
        confirmation_timeout: Optional[float] = None
    ):
        """
        Initialize fund workflow.

        Args:
            ledger: Ledger collaborator
            registry: Incident registry used to check referenced incidents
            approvers: Allow-list of approvers (empty allows anyone except
                the requester)
            confirmation_timeout: Seconds to wait for ledger confirmation
        """
        self.ledger = ledger
        self.registry = registry
        self.approvers = frozenset(approvers or ())
        self.confirmation_timeout = confirmation_timeout

        logger.info("EmergencyFundWorkflow initialized")

    # =========================================================================
    # REQUESTS
    # =========================================================================

    def request_funds(
        self,
        incident_id: int,
        amount: int,
        justification: str,
        requester: str
    ) -> FundRequest:
        """
        Open a fund request for an incident.

        Args:
            incident_id: Incident the funds are for
            amount: Requested amount (positive integer)
            justification: Why the funds are needed
            requester: Requesting actor

        Returns:
            The confirmed FundRequest

        Raises:
            NotFoundError: Unknown incident
            ValidationError: Bad amount or justification, or the incident
                was marked as a false report
            LedgerRejected: Ledger refused the append
        """
        amount = require_amount("amount", amount)
        justification = require_text("justification", justification)
        requester = require_actor("requester", requester)

        incident = self.registry.get_incident(incident_id)
        if incident.status == IncidentStatus.FALSE_REPORT:
            raise ValidationError(
                f"Incident {incident.id} was marked as a false report",
                {"incident_id": incident.id},
            )

        values = {
            "id": None,
            "incidentId": incident.id,
            "requestedAmount": amount,
            "requester": requester,
            "justification": justification,
            "createdAt": None,
            "approved": False,
            "approver": None,
            "approvedAt": None,
            "disbursed": False,
            "disbursedAt": None,
        }
        payload = {name: values[name] for name in FUND_REQUEST_RECORD_FIELDS}

        confirmation = self.ledger.commit(
            [Append(FUND_REQUESTS_COLLECTION, payload, stamp=("createdAt",))],
            self.confirmation_timeout,
        )
        if not confirmation.success:
            raise rejection_error(confirmation, "fund request")

        request = FundRequest(
            id=confirmation.assigned_ids[0],
            incident_id=incident.id,
            requested_amount=amount,
            requester=requester,
            justification=justification,
            created_at=confirmation.confirmed_at,
        )

        logger.info(
            f"Fund request {request.id} for incident {incident.id}: {amount} by {requester}"
        )
        return request

    def get_fund_request(self, request_id: int) -> FundRequest:
        """
        Get a confirmed fund request.

        Raises:
            NotFoundError: If the id was never confirmed
            LedgerReadError: If the stored record cannot be decoded
        """
        request_id = require_record_id("Fund request", request_id)
        try:
            record = self.ledger.read_record(FUND_REQUESTS_COLLECTION, request_id)
        except NotFoundError:
            raise NotFoundError(f"Fund request {request_id} not found", {"request_id": request_id})

        try:
            return FundRequest.from_record(record)
        except (KeyError, ValueError, TypeError) as e:
            raise LedgerReadError(
                f"Fund request {request_id} record is corrupted: {e}",
                {"request_id": request_id},
            ) from e

    def count_fund_requests(self) -> int:
        return self.ledger.count(FUND_REQUESTS_COLLECTION)

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def approve(self, request_id: int, approver: str) -> FundRequest:
        """
        Approve a requested fund request.

        Raises:
            NotFoundError: Unknown request
            IllegalTransitionError: Request is not in Requested
            UnauthorizedError: Approver is the requester or not allow-listed
        """
        approver = require_actor("approver", approver)
        request = self.get_fund_request(request_id)

        if request.approved:
            raise IllegalTransitionError(
                f"Fund request {request.id} is already {request.state.value}",
                {"request_id": request.id, "state": request.state.value},
            )
        if approver == request.requester:
            raise UnauthorizedError(
                f"{approver} cannot approve their own fund request {request.id}",
                {"request_id": request.id, "approver": approver},
            )
        if self.approvers and approver not in self.approvers:
            raise UnauthorizedError(
                f"{approver} is not an authorized fund approver",
                {"approver": approver},
            )

        confirmation = self.ledger.commit(
            [
                Update(
                    FUND_REQUESTS_COLLECTION,
                    request.id,
                    changes={"approved": True, "approver": approver},
                    expect={"approved": False, "disbursed": False},
                    stamp=("approvedAt",),
                )
            ],
            self.confirmation_timeout,
        )

        if not confirmation.success:
            if confirmation.error_kind == RejectionKind.CONFLICT:
                raise IllegalTransitionError(
                    f"Fund request {request.id} was approved concurrently",
                    {"request_id": request.id},
                )
            raise rejection_error(confirmation, "fund approval")

        logger.info(f"Fund request {request.id} approved by {approver}")
        return self.get_fund_request(request.id)

    def disburse(self, request_id: int) -> FundRequest:
        """
        Pay out an approved fund request from the pool.

        Disbursing an already disbursed request returns it unchanged.

        Raises:
            NotFoundError: Unknown request
            IllegalTransitionError: Request has not been approved
            InsufficientFundsError: Pool balance below the requested amount
        """
        request = self.get_fund_request(request_id)

        if request.disbursed:
            logger.info(f"Fund request {request.id} already disbursed")
            return request
        if not request.approved:
            raise IllegalTransitionError(
                f"Fund request {request.id} must be approved before disbursement",
                {"request_id": request.id, "state": request.state.value},
            )

        available = self.pool_balance()
        if request.requested_amount > available:
            raise InsufficientFundsError(
                f"Fund pool holds {available}, request {request.id} needs {request.requested_amount}",
                {"request_id": request.id, "available": available},
            )

        confirmation = self.ledger.commit(
            [
                Update(
                    FUND_REQUESTS_COLLECTION,
                    request.id,
                    changes={"disbursed": True},
                    expect={"approved": True, "disbursed": False},
                    stamp=("disbursedAt",),
                ),
                Adjust(
                    FUND_POOL_COLLECTION,
                    FUND_POOL_KEY,
                    "balance",
                    -request.requested_amount,
                    minimum=0,
                ),
            ],
            self.confirmation_timeout,
        )

        if not confirmation.success:
            if confirmation.error_kind == RejectionKind.INSUFFICIENT_BALANCE:
                raise InsufficientFundsError(
                    f"Fund pool cannot cover request {request.id}",
                    {"request_id": request.id},
                )
            if confirmation.error_kind == RejectionKind.CONFLICT:
                current = self.get_fund_request(request.id)
                if current.disbursed:
                    return current
                raise IllegalTransitionError(
                    f"Fund request {request.id} changed concurrently",
                    {"request_id": request.id, "state": current.state.value},
                )
            raise rejection_error(confirmation, "fund disbursement")

        logger.info(f"Disbursed {request.requested_amount} for fund request {request.id}")
        return self.get_fund_request(request.id)

    # =========================================================================
    # POOL
    # =========================================================================

    def pool_balance(self) -> int:
        try:
            record = self.ledger.read_record(FUND_POOL_COLLECTION, FUND_POOL_KEY)
        except NotFoundError:
            return 0
        return int(record.get("balance", 0))

    def deposit(self, amount: int, depositor: str) -> int:
        """
        Add funds to the pool.

        Returns:
            Pool balance after the deposit
        """
        amount = require_amount("amount", amount)
        depositor = require_actor("depositor", depositor)

        confirmation = self.ledger.commit(
            [Adjust(FUND_POOL_COLLECTION, FUND_POOL_KEY, "balance", amount)],
            self.confirmation_timeout,
        )
        if not confirmation.success:
            raise rejection_error(confirmation, "fund deposit")

        logger.info(f"{depositor} deposited {amount} into the fund pool")
        return self.pool_balance()
