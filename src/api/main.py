"""
FireChain - REST API

FastAPI application exposing the incident registry, verification,
rewards and emergency fund workflow.

Run with: uvicorn src.api.main:app --reload
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.core.config import settings
from src.core.exceptions import FireChainError, UnauthorizedError
from src.core.logging import setup_logging
from src.funds.models import FundRequest
from src.projection.query_service import IncidentListing
from src.registry.models import Incident
from src.system.container import FireChainSystem, get_system
from src.verification.state_machine import allowed_transitions

API_VERSION = "0.1.0"

setup_logging()
logger = logging.getLogger(__name__)

# FastAPI app
app = FastAPI(
    title="FireChain",
    description="Community fire-incident registry with verification, reporter rewards and emergency funds",
    version=API_VERSION,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
    debug=settings.debug,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Pydantic Models
# ============================================================================

class HealthResponse(BaseModel):
    """API health check response."""
    status: str
    version: str
    timestamp: str
    ledger: str
    ledger_available: bool
    incident_count: int


class IncidentCreateRequest(BaseModel):
    """Request to record a fire incident."""
    location: str = Field(description="Free-form location label")
    description: str
    latitude: float = Field(description="Decimal degrees, -90..90")
    longitude: float = Field(description="Decimal degrees, -180..180")
    severity: Union[int, str] = Field(description="Low, Medium, High, Critical or 0-3")


class IncidentResponse(BaseModel):
    """Fire incident."""
    id: int
    location: str
    description: str
    latitude: float
    longitude: float
    lat_int: int
    lng_int: int
    created_at: Optional[str] = None
    reporter: str
    severity: str
    status: str
    verifier: Optional[str] = None
    verified_at: Optional[str] = None
    reward_claimed: bool
    allowed_transitions: List[str] = []


class IncidentListResponse(BaseModel):
    """List of incidents; failed_ids were skipped as unreadable."""
    count: int
    incidents: List[IncidentResponse]
    failed_ids: List[int]


class IncidentCountResponse(BaseModel):
    count: int


class VerifyRequest(BaseModel):
    """Request to change an incident's status."""
    status: Union[int, str] = Field(description="Verified, Resolved or FalseReport")


class BalanceResponse(BaseModel):
    actor: str
    balance: int


class TransferRequest(BaseModel):
    """Request to move balance to another actor."""
    recipient: str
    amount: int = Field(description="Positive integer amount")


class TransferResponse(BaseModel):
    sender: str
    recipient: str
    amount: int
    transferred_at: Optional[str] = None


class NotifyRequest(BaseModel):
    """Request to send an SMS alert now."""
    phone_number: str
    message: str
    incident_id: Optional[int] = None


class NotifyResponse(BaseModel):
    to: str
    status: str
    message_sid: Optional[str] = None
    incident_id: Optional[int] = None


class FundRequestCreateRequest(BaseModel):
    """Request for emergency funds."""
    incident_id: int
    amount: int = Field(description="Positive integer amount")
    justification: str


class FundRequestResponse(BaseModel):
    """Emergency fund request."""
    id: int
    incident_id: int
    requested_amount: int
    requester: str
    justification: str
    created_at: Optional[str] = None
    state: str
    approved: bool
    approver: Optional[str] = None
    approved_at: Optional[str] = None
    disbursed: bool
    disbursed_at: Optional[str] = None


class DepositRequest(BaseModel):
    amount: int = Field(description="Positive integer amount")


class PoolResponse(BaseModel):
    balance: int


# ============================================================================
# Dependencies and error handling
# ============================================================================

def current_system() -> FireChainSystem:
    """Get the FireChain system serving requests."""
    return get_system()


def current_actor(x_actor_id: Optional[str] = Header(None, alias="X-Actor-Id")) -> str:
    """Identity of the calling actor, taken from the X-Actor-Id header."""
    if not x_actor_id or not x_actor_id.strip():
        raise UnauthorizedError("X-Actor-Id header is required")
    return x_actor_id.strip()


@app.exception_handler(FireChainError)
async def firechain_error_handler(request: Request, exc: FireChainError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def _incident_response(incident: Incident) -> IncidentResponse:
    return IncidentResponse(
        **incident.to_dict(),
        allowed_transitions=[s.label for s in sorted(allowed_transitions(incident.status))],
    )


def _listing_response(listing: IncidentListing) -> IncidentListResponse:
    return IncidentListResponse(
        count=listing.count,
        incidents=[_incident_response(i) for i in listing.incidents],
        failed_ids=listing.failed_ids,
    )


def _fund_response(request: FundRequest) -> FundRequestResponse:
    return FundRequestResponse(**request.to_dict())


# ============================================================================
# System Routes
# ============================================================================

@app.get("/health", response_model=HealthResponse, tags=["System"])
def health_check(system: FireChainSystem = Depends(current_system)):
    """Check API health and ledger reachability."""
    available = system.ledger.is_available()
    return HealthResponse(
        status="healthy" if available else "degraded",
        version=API_VERSION,
        timestamp=datetime.now(timezone.utc).isoformat(),
        ledger=type(system.ledger).__name__,
        ledger_available=available,
        incident_count=system.registry.count_incidents(),
    )


# ============================================================================
# Incident Routes
# ============================================================================

@app.post("/api/v1/incidents", response_model=IncidentResponse, status_code=201, tags=["Incidents"])
def create_incident(
    request: IncidentCreateRequest,
    actor: str = Depends(current_actor),
    system: FireChainSystem = Depends(current_system),
):
    """Record a new fire incident reported by the calling actor."""
    incident = system.registry.create_incident(
        location=request.location,
        description=request.description,
        latitude=request.latitude,
        longitude=request.longitude,
        severity=request.severity,
        reporter=actor,
    )
    return _incident_response(incident)


@app.get("/api/v1/incidents", response_model=IncidentListResponse, tags=["Incidents"])
def list_incidents(
    from_id: int = Query(1, ge=1, description="First incident id"),
    to_id: Optional[int] = Query(None, ge=1, description="Last incident id (default: latest)"),
    system: FireChainSystem = Depends(current_system),
):
    """
    List incidents in an id range.

    Unreadable ids are skipped and reported in failed_ids.
    """
    if to_id is None:
        to_id = system.registry.count_incidents()
    return _listing_response(system.projection.list_incidents(from_id, to_id))


@app.get("/api/v1/incidents/count", response_model=IncidentCountResponse, tags=["Incidents"])
def count_incidents(system: FireChainSystem = Depends(current_system)):
    return IncidentCountResponse(count=system.registry.count_incidents())


@app.get("/api/v1/incidents/area", response_model=IncidentListResponse, tags=["Incidents"])
def incidents_in_area(
    west: float = Query(..., ge=-180, le=180),
    south: float = Query(..., ge=-90, le=90),
    east: float = Query(..., ge=-180, le=180),
    north: float = Query(..., ge=-90, le=90),
    system: FireChainSystem = Depends(current_system),
):
    """Get incidents inside a bounding box."""
    return _listing_response(system.projection.incidents_in_area(west, south, east, north))


@app.get("/api/v1/incidents/stats", tags=["Incidents"])
def incident_statistics(system: FireChainSystem = Depends(current_system)) -> Dict[str, Any]:
    """Incident counts by status and severity, plus the fund pool balance."""
    return system.projection.statistics(pool_balance=system.funds.pool_balance())


@app.get("/api/v1/incidents/{incident_id}", response_model=IncidentResponse, tags=["Incidents"])
def get_incident(incident_id: int, system: FireChainSystem = Depends(current_system)):
    return _incident_response(system.registry.get_incident(incident_id))


@app.post("/api/v1/incidents/{incident_id}/verify", response_model=IncidentResponse, tags=["Verification"])
def verify_incident(
    incident_id: int,
    request: VerifyRequest,
    actor: str = Depends(current_actor),
    system: FireChainSystem = Depends(current_system),
):
    """
    Move an incident to Verified, Resolved or FalseReport.

    The first move from Reported to Verified or Resolved credits the
    reporter's reward.
    """
    incident = system.verification.verify(incident_id, request.status, actor)
    return _incident_response(incident)


@app.get("/api/v1/reporters/{reporter}/incidents", response_model=IncidentListResponse, tags=["Incidents"])
def reporter_incidents(reporter: str, system: FireChainSystem = Depends(current_system)):
    return _listing_response(system.projection.incidents_by_reporter(reporter))


# ============================================================================
# Reward Routes
# ============================================================================

@app.get("/api/v1/balances/{actor}", response_model=BalanceResponse, tags=["Rewards"])
def get_balance(actor: str, system: FireChainSystem = Depends(current_system)):
    return BalanceResponse(actor=actor, balance=system.rewards.balance_of(actor))


@app.post("/api/v1/balances/transfer", response_model=TransferResponse, tags=["Rewards"])
def transfer_balance(
    request: TransferRequest,
    actor: str = Depends(current_actor),
    system: FireChainSystem = Depends(current_system),
):
    """Move part of the calling actor's balance to another actor."""
    transfer = system.rewards.transfer(actor, request.recipient, request.amount)
    return TransferResponse(**transfer.to_dict())


# ============================================================================
# Emergency Fund Routes
# ============================================================================

@app.post("/api/v1/funds", response_model=FundRequestResponse, status_code=201, tags=["Funds"])
def request_funds(
    request: FundRequestCreateRequest,
    actor: str = Depends(current_actor),
    system: FireChainSystem = Depends(current_system),
):
    """Open an emergency fund request for an incident."""
    fund_request = system.funds.request_funds(
        incident_id=request.incident_id,
        amount=request.amount,
        justification=request.justification,
        requester=actor,
    )
    return _fund_response(fund_request)


@app.get("/api/v1/funds/pool", response_model=PoolResponse, tags=["Funds"])
def get_pool(system: FireChainSystem = Depends(current_system)):
    return PoolResponse(balance=system.funds.pool_balance())


@app.post("/api/v1/funds/pool/deposit", response_model=PoolResponse, tags=["Funds"])
def deposit(
    request: DepositRequest,
    actor: str = Depends(current_actor),
    system: FireChainSystem = Depends(current_system),
):
    return PoolResponse(balance=system.funds.deposit(request.amount, actor))


@app.get("/api/v1/funds/{request_id}", response_model=FundRequestResponse, tags=["Funds"])
def get_fund_request(request_id: int, system: FireChainSystem = Depends(current_system)):
    return _fund_response(system.funds.get_fund_request(request_id))


@app.post("/api/v1/funds/{request_id}/approve", response_model=FundRequestResponse, tags=["Funds"])
def approve_fund_request(
    request_id: int,
    actor: str = Depends(current_actor),
    system: FireChainSystem = Depends(current_system),
):
    return _fund_response(system.funds.approve(request_id, actor))


@app.post("/api/v1/funds/{request_id}/disburse", response_model=FundRequestResponse, tags=["Funds"])
def disburse_fund_request(
    request_id: int,
    actor: str = Depends(current_actor),
    system: FireChainSystem = Depends(current_system),
):
    """Pay out an approved request from the fund pool."""
    logger.info(f"Disbursement of fund request {request_id} requested by {actor}")
    return _fund_response(system.funds.disburse(request_id))


# ============================================================================
# Notification Routes
# ============================================================================

@app.post("/api/v1/notify", response_model=NotifyResponse, tags=["Notifications"])
def send_notification(
    request: NotifyRequest,
    actor: str = Depends(current_actor),
    system: FireChainSystem = Depends(current_system),
):
    """Send an SMS alert, optionally about a recorded incident."""
    logger.info(f"SMS alert to {request.phone_number} requested by {actor}")
    sms = system.notify(request.phone_number, request.message, request.incident_id)
    return NotifyResponse(
        to=sms.to,
        status=sms.status,
        message_sid=sms.message_sid,
        incident_id=request.incident_id,
    )


# ============================================================================
# Main
# ============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "src.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        workers=settings.server_workers,
    )
