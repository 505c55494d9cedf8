"""
FireChain - Constants and Reference Data
Static values used throughout the application.
"""

from typing import Tuple

# =============================================================================
# GEOGRAPHIC ENCODING
# =============================================================================

# Fixed-point scale for stored coordinates (six decimal digits)
GEO_SCALE: int = 1_000_000

MAX_LATITUDE: float = 90.0
MAX_LONGITUDE: float = 180.0

# =============================================================================
# LEDGER COLLECTIONS
# =============================================================================

INCIDENTS_COLLECTION: str = "incidents"
FUND_REQUESTS_COLLECTION: str = "fund_requests"
BALANCES_COLLECTION: str = "balances"
FUND_POOL_COLLECTION: str = "fund_pool"

# Single shared pool record
FUND_POOL_KEY: str = "main"

# Persisted/transmitted incident record shape (field order is stable)
INCIDENT_RECORD_FIELDS: Tuple[str, ...] = (
    "id",
    "location",
    "description",
    "latInt",
    "lngInt",
    "createdAt",
    "reporter",
    "severity",
    "status",
    "verifier",
    "verifiedAt",
    "rewardClaimed",
)

FUND_REQUEST_RECORD_FIELDS: Tuple[str, ...] = (
    "id",
    "incidentId",
    "requestedAmount",
    "requester",
    "justification",
    "createdAt",
    "approved",
    "approver",
    "approvedAt",
    "disbursed",
    "disbursedAt",
)

# =============================================================================
# NOTIFICATIONS
# =============================================================================

SMS_MAX_LENGTH: int = 160
